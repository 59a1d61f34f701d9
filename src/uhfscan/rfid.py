"""Device gateway for an MFRC522 reader on a Raspberry Pi.

Uses the pirc522 library, which is only importable on a Pi, so it is
imported when the device is initialized rather than at module load.

Each inventory round performs one request/anticollision exchange on a
background thread.  The MFRC522 singulates a single card per exchange, so a
round reports at most one tag.  "Transmit power" maps onto the chip's
receiver gain (RxGain in RFCfgReg).  Only the gains in :data:`GAIN_CODES`
are accepted, so a confirmed power is always the one the chip applies.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from uhfscan.errors import DeviceCommandFailedError, DeviceUninitializedError
from uhfscan.gateway import (
    DoneCallback,
    RoundFailed,
    RoundSucceeded,
    TagCallback,
    TagDetection,
    epc_to_hex,
)

logger = logging.getLogger(__name__)

_RF_CFG_REG = 0x26
_RX_GAIN_MASK = 0x70

# Receiver gain in dB -> RxGain register code.
GAIN_CODES: dict[int, int] = {
    18: 0b010,
    23: 0b011,
    33: 0b100,
    38: 0b101,
    43: 0b110,
    48: 0b111,
}
_GAIN_BY_CODE = {0b000: 18, 0b001: 23, **{code: db for db, code in GAIN_CODES.items()}}


class Rc522Gateway:
    """Adapts a pirc522 ``RFID`` object to the device gateway contract.

    Parameters
    ----------
    pin_rst:
        RST pin for the MFRC522 reader (default 22).
    """

    def __init__(self, *, pin_rst: int = 22) -> None:
        self._pin_rst = pin_rst
        self._rdr = None
        self._lock = threading.Lock()
        self._round_thread: threading.Thread | None = None

    def init(self) -> bool:
        if self._rdr is not None:
            return True
        try:
            from pirc522 import RFID

            self._rdr = RFID(pin_rst=self._pin_rst, pin_irq=None)
        except Exception as exc:
            logger.error("RC522 init failed: %s", exc)
            return False
        return True

    def is_initialized(self) -> bool:
        return self._rdr is not None

    def deinit(self) -> None:
        if self._round_thread is not None:
            self._round_thread.join(timeout=2.0)
            self._round_thread = None
        with self._lock:
            if self._rdr is not None:
                self._rdr.cleanup()
                self._rdr = None

    def set_power(self, dbm: int) -> bool:
        if dbm not in GAIN_CODES:
            logger.warning(
                "RC522 supports gains %s dB only, got %s", sorted(GAIN_CODES), dbm
            )
            return False
        with self._lock:
            rdr = self._require_reader()
            try:
                value = rdr.dev_read(_RF_CFG_REG)
                rdr.dev_write(
                    _RF_CFG_REG, (value & ~_RX_GAIN_MASK) | (GAIN_CODES[dbm] << 4)
                )
            except Exception as exc:
                raise DeviceCommandFailedError(f"Writing RxGain failed: {exc}") from exc
        return True

    def get_power(self) -> int | None:
        with self._lock:
            rdr = self._require_reader()
            try:
                value = rdr.dev_read(_RF_CFG_REG)
            except Exception as exc:
                raise DeviceCommandFailedError(f"Reading RxGain failed: {exc}") from exc
        return _GAIN_BY_CODE[(value & _RX_GAIN_MASK) >> 4]

    def run_inventory_round(
        self, max_tags: int, on_tag: TagCallback, on_done: DoneCallback
    ) -> None:
        self._require_reader()
        self._round_thread = threading.Thread(
            target=self._run_round, args=(max_tags, on_tag, on_done), daemon=True
        )
        self._round_thread.start()

    # -- internal ------------------------------------------------------------

    def _require_reader(self) -> Any:
        if self._rdr is None:
            raise DeviceUninitializedError("RC522 reader is not initialized.")
        return self._rdr

    def _run_round(
        self, max_tags: int, on_tag: TagCallback, on_done: DoneCallback
    ) -> None:
        try:
            with self._lock:
                rdr = self._require_reader()
                (error, _tag_type) = rdr.request()
                uid = None
                if not error and max_tags > 0:
                    (error, uid) = rdr.anticoll()
                    if error:
                        on_done(RoundFailed("anticollision"))
                        return
        except Exception as exc:
            on_done(RoundFailed(str(exc)))
            return

        if uid is None:
            on_done(RoundSucceeded(tag_count=0, read_count=0))
            return
        on_tag(TagDetection(epc=epc_to_hex(uid)))
        on_done(RoundSucceeded(tag_count=1, read_count=1))
