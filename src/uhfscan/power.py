"""Transmit power tracking.

The controller keeps the last power value the device confirmed.  Device
errors never reach the caller: a failed set is reported as ``False`` and a
failed read falls back to the cached value.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uhfscan.gateway import DeviceGateway

logger = logging.getLogger(__name__)

# Default power applied on init, roughly 5-6 m read range.
DEFAULT_POWER_DBM = 26


class PowerController:
    """Validates and caches the configured transmit power."""

    def __init__(
        self, gateway: DeviceGateway, *, default_power: int = DEFAULT_POWER_DBM
    ) -> None:
        self._gateway = gateway
        self._power = default_power

    @property
    def cached_power(self) -> int:
        return self._power

    def set_power(self, dbm: int) -> bool:
        """Set the transmit power in dBm.  Returns whether the device accepted it."""
        if not self._device_ready():
            logger.error("Cannot set power to %d dBm: device not initialized", dbm)
            return False
        try:
            accepted = self._gateway.set_power(dbm)
        except Exception:
            logger.exception("Error setting power to %d dBm", dbm)
            return False
        if not accepted:
            logger.error("Device rejected power %d dBm", dbm)
            return False
        self._power = dbm
        logger.debug("Power set to %d dBm", dbm)
        return True

    def get_power(self) -> int:
        """Return the device power, or the cached value if it cannot be read."""
        if not self._device_ready():
            return self._power
        try:
            power = self._gateway.get_power()
        except Exception:
            logger.exception("Error reading power, using cached %d dBm", self._power)
            return self._power
        if power is None:
            return self._power
        self._power = power & 0xFF
        return self._power

    def _device_ready(self) -> bool:
        try:
            return bool(self._gateway.is_initialized())
        except Exception:
            logger.exception("Error querying device state")
            return False
