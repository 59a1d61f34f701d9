"""Simulated device gateway for development without hardware.

Every round reports each tag of a fixed population with a random RSSI,
antenna and hop frequency, or fails outright with probability
*failure_rate*.
"""

from __future__ import annotations

import logging
import random
import threading

from uhfscan.errors import DeviceUninitializedError
from uhfscan.gateway import (
    DoneCallback,
    RoundFailed,
    RoundSucceeded,
    TagCallback,
    TagDetection,
)

logger = logging.getLogger(__name__)

DEFAULT_TAGS = (
    "E28011606000020D8A2F2B51",
    "E28011606000020D8A2F2B62",
    "300833B2DDD9014000000000",
)

# FCC hop table bounds, kHz.
_FREQ_MIN_KHZ = 902_750
_FREQ_MAX_KHZ = 927_250
_FREQ_STEP_KHZ = 500


class SimulatedGateway:
    """In-process stand-in for a UHF reader."""

    def __init__(
        self,
        tags: list[str] | tuple[str, ...] = DEFAULT_TAGS,
        *,
        failure_rate: float = 0.0,
        round_time: float = 0.05,
        antennas: int = 4,
        rng: random.Random | None = None,
    ) -> None:
        self._tags = [tag.upper() for tag in tags]
        self._failure_rate = failure_rate
        self._round_time = round_time
        self._antennas = antennas
        self._rng = rng if rng is not None else random.Random()
        self._initialized = False
        self._power = 0
        logger.info("Simulated reader with %d tags", len(self._tags))

    def init(self) -> bool:
        self._initialized = True
        return True

    def is_initialized(self) -> bool:
        return self._initialized

    def deinit(self) -> None:
        self._initialized = False

    def set_power(self, dbm: int) -> bool:
        if not self._initialized:
            raise DeviceUninitializedError("Simulated reader is not initialized.")
        if not 0 <= dbm <= 33:
            return False
        self._power = dbm
        return True

    def get_power(self) -> int | None:
        if not self._initialized:
            raise DeviceUninitializedError("Simulated reader is not initialized.")
        return self._power

    def run_inventory_round(
        self, max_tags: int, on_tag: TagCallback, on_done: DoneCallback
    ) -> None:
        if not self._initialized:
            raise DeviceUninitializedError("Simulated reader is not initialized.")
        timer = threading.Timer(
            self._round_time, self._finish_round, args=(max_tags, on_tag, on_done)
        )
        timer.daemon = True
        timer.start()

    def _finish_round(
        self, max_tags: int, on_tag: TagCallback, on_done: DoneCallback
    ) -> None:
        if self._rng.random() < self._failure_rate:
            on_done(RoundFailed("simulated failure"))
            return
        seen = self._tags[:max_tags]
        for epc in seen:
            on_tag(
                TagDetection(
                    epc=epc,
                    rssi=self._rng.randint(-75, -35),
                    antenna_id=self._rng.randint(1, self._antennas),
                    frequency_khz=self._rng.randrange(
                        _FREQ_MIN_KHZ, _FREQ_MAX_KHZ + 1, _FREQ_STEP_KHZ
                    ),
                )
            )
        on_done(RoundSucceeded(tag_count=len(seen), read_count=len(seen)))
