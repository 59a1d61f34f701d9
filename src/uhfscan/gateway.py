"""Device gateway contract and the values that cross it.

A gateway is the thin synchronous adapter over a reader driver.  It owns no
policy: the scheduler decides when rounds run, the power controller decides
what to cache.  Rounds are asynchronous; the gateway calls ``on_tag`` for
every detection and then ``on_done`` exactly once, from whatever thread the
driver uses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, Union


def epc_to_hex(epc: bytes | list[int]) -> str:
    """Convert an EPC byte sequence to an uppercase hex string.

    Example: ``b"\\xaa\\xbb"`` → ``"AABB"``
    """
    return "".join(f"{byte:02X}" for byte in epc)


@dataclass(frozen=True)
class TagDetection:
    """One tag seen during one inventory round."""

    epc: str
    rssi: int | None = None
    antenna_id: int | None = None
    frequency_khz: int | None = None

    def to_message(self) -> dict[str, Any]:
        """Return the tag-stream message, omitting absent fields."""
        message: dict[str, Any] = {"epc": self.epc}
        if self.rssi is not None:
            message["rssi"] = self.rssi
        if self.frequency_khz is not None:
            message["frequencyKHz"] = self.frequency_khz
        if self.antenna_id is not None:
            message["antennaId"] = self.antenna_id
        return message


@dataclass(frozen=True)
class RoundSucceeded:
    tag_count: int
    read_count: int


@dataclass(frozen=True)
class RoundFailed:
    error_code: Any = None


RoundOutcome = Union[RoundSucceeded, RoundFailed]

TagCallback = Callable[[TagDetection], None]
DoneCallback = Callable[[RoundOutcome], None]


class DeviceGateway(Protocol):
    """What the reader core needs from the hardware."""

    def init(self) -> bool: ...

    def is_initialized(self) -> bool: ...

    def deinit(self) -> None: ...

    def set_power(self, dbm: int) -> bool: ...

    def get_power(self) -> int | None: ...

    def run_inventory_round(
        self,
        max_tags: int,
        on_tag: TagCallback,
        on_done: DoneCallback,
    ) -> None: ...
