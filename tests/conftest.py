"""Shared fakes: a gateway whose rounds complete on demand and manual timers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import pytest

from uhfscan.gateway import RoundOutcome, RoundSucceeded, TagDetection
from uhfscan.reader import UhfReader


@dataclass
class PendingRound:
    max_tags: int
    on_tag: Callable[[TagDetection], None]
    on_done: Callable[[RoundOutcome], None]
    done: bool = False

    def tag(self, epc: str, **fields: int) -> None:
        self.on_tag(TagDetection(epc=epc, **fields))

    def complete(
        self, epcs: tuple[str, ...] = (), outcome: RoundOutcome | None = None
    ) -> None:
        for epc in epcs:
            self.tag(epc)
        if outcome is None:
            outcome = RoundSucceeded(tag_count=len(epcs), read_count=len(epcs))
        self.done = True
        self.on_done(outcome)


class FakeGateway:
    """Records inventory rounds instead of talking to hardware."""

    def __init__(self, *, init_ok: bool = True) -> None:
        self.init_ok = init_ok
        self.initialized = False
        self.power = 0
        self.accept_power = True
        self.power_error: Exception | None = None
        self.round_error: Exception | None = None
        self.rounds: list[PendingRound] = []
        self.deinit_calls = 0

    def init(self) -> bool:
        self.initialized = self.init_ok
        return self.init_ok

    def is_initialized(self) -> bool:
        return self.initialized

    def deinit(self) -> None:
        self.initialized = False
        self.deinit_calls += 1

    def set_power(self, dbm: int) -> bool:
        if self.power_error is not None:
            raise self.power_error
        if self.accept_power:
            self.power = dbm
        return self.accept_power

    def get_power(self) -> int | None:
        if self.power_error is not None:
            raise self.power_error
        return self.power

    def run_inventory_round(self, max_tags, on_tag, on_done) -> None:
        if self.round_error is not None:
            raise self.round_error
        self.rounds.append(PendingRound(max_tags, on_tag, on_done))

    @property
    def outstanding(self) -> list[PendingRound]:
        return [r for r in self.rounds if not r.done]


@dataclass
class FakeTimer:
    delay: float
    function: Callable[[], None]
    started: bool = False
    cancelled: bool = False
    fired: bool = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.fired = True
            self.function()


@dataclass
class FakeTimerFactory:
    timers: list[FakeTimer] = field(default_factory=list)

    def __call__(self, delay: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, function)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [
            t for t in self.timers if t.started and not t.cancelled and not t.fired
        ]


@dataclass
class Recorder:
    """Collects delivered events in arrival order."""

    events: list[tuple[str, object]] = field(default_factory=list)

    def on_tag(self, message: dict) -> None:
        self.events.append(("tag", message))

    def on_state(self, state: str) -> None:
        self.events.append(("state", state))

    @property
    def states(self) -> list[str]:
        return [payload for kind, payload in self.events if kind == "state"]

    @property
    def epcs(self) -> list[str]:
        return [payload["epc"] for kind, payload in self.events if kind == "tag"]


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def timers():
    return FakeTimerFactory()


@pytest.fixture()
def reader(gateway, timers):
    rdr = UhfReader(gateway, timer_factory=timers)
    yield rdr
    rdr.dispose()


@pytest.fixture()
def recorder(reader):
    rec = Recorder()
    reader.events.subscribe_tags(rec.on_tag)
    reader.events.subscribe_state(rec.on_state)
    return rec
