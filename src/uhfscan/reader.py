"""High-level UHF reader: the control surface consumed by front ends.

Every control call runs on the scan scheduler's worker, so lifecycle
transitions, cached power and scan flags only ever change on one thread.
None of the calls raise on device trouble; they report ``False`` (or the
cached power) and log.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from uhfscan.errors import ReaderError
from uhfscan.events import EventDispatcher
from uhfscan.gateway import DeviceGateway
from uhfscan.power import DEFAULT_POWER_DBM, PowerController
from uhfscan.scheduler import (
    FAILURE_BACKOFF,
    SUCCESS_BACKOFF,
    ScanScheduler,
    TimerFactory,
    daemon_timer,
)
from uhfscan.statemachine import InvalidTransitionError, ReaderLifecycle, ReaderState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UhfReader:
    """A UHF RFID reader in continuous inventory mode.

    Parameters
    ----------
    gateway:
        Device gateway for the hardware (or a fake in tests).
    default_power:
        Transmit power in dBm applied when :meth:`init` succeeds.
    dispatcher:
        Event dispatcher to publish on; a new one is created if omitted.
    timer_factory, success_backoff, failure_backoff:
        Passed through to :class:`~uhfscan.scheduler.ScanScheduler`.
    """

    def __init__(
        self,
        gateway: DeviceGateway,
        *,
        default_power: int = DEFAULT_POWER_DBM,
        dispatcher: EventDispatcher | None = None,
        timer_factory: TimerFactory = daemon_timer,
        success_backoff: float = SUCCESS_BACKOFF,
        failure_backoff: float = FAILURE_BACKOFF,
    ) -> None:
        self._gateway = gateway
        self._default_power = default_power
        self._events = dispatcher if dispatcher is not None else EventDispatcher()
        self._lifecycle = ReaderLifecycle(on_change=self._events.publish_state)
        self._power = PowerController(gateway, default_power=default_power)
        self._scheduler = ScanScheduler(
            gateway,
            self._lifecycle,
            self._events,
            success_backoff=success_backoff,
            failure_backoff=failure_backoff,
            timer_factory=timer_factory,
        )

    # -- public properties ---------------------------------------------------

    @property
    def state(self) -> ReaderState:
        return self._lifecycle.state

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def scheduler(self) -> ScanScheduler:
        return self._scheduler

    # -- control surface -----------------------------------------------------

    def init(self) -> bool:
        """Initialize the device and apply the default power."""
        return self._on_worker(self._init, False)

    def dispose(self) -> None:
        """Stop scanning, release the device and enter the terminal state."""
        if self._scheduler.closed:
            return
        self._on_worker(self._dispose, None)
        self._scheduler.close()

    def set_power(self, dbm: int) -> bool:
        return self._on_worker(lambda: self._power.set_power(dbm), False)

    def get_power(self) -> int:
        return self._on_worker(self._power.get_power, self._power.cached_power)

    def start_inventory(self) -> bool:
        """Start continuous inventory.  Returns ``True`` if already running."""
        return self._on_worker(self._start_inventory, False)

    def stop_inventory(self) -> bool:
        """Stop continuous inventory.  An in-flight round is left to finish."""
        return self._on_worker(self._scheduler.stop, True)

    def is_initialized(self) -> bool:
        try:
            return bool(self._gateway.is_initialized())
        except Exception:
            logger.exception("Error querying device state")
            return False

    # -- context manager -----------------------------------------------------

    def __enter__(self) -> UhfReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    # -- worker-side ---------------------------------------------------------

    def _init(self) -> bool:
        state = self._lifecycle.state
        if state is ReaderState.DISPOSED:
            logger.error("Cannot init: reader has been disposed")
            return False
        if state in (ReaderState.READY, ReaderState.SCANNING) and self.is_initialized():
            return True

        try:
            self._lifecycle.begin_init()
        except InvalidTransitionError as exc:
            logger.error("Cannot init: %s", exc)
            return False

        try:
            success = bool(self._gateway.init())
        except Exception:
            logger.exception("Device init raised")
            success = False
        logger.info("UHF init result: %s", success)

        if not success:
            self._lifecycle.init_failed()
            return False
        if not self._power.set_power(self._default_power):
            logger.warning("Default power %d dBm was not applied", self._default_power)
        self._lifecycle.init_succeeded()
        return True

    def _dispose(self) -> None:
        self._scheduler.stop()
        if self.is_initialized():
            try:
                self._gateway.deinit()
            except Exception:
                logger.exception("Device deinit raised")
        self._lifecycle.dispose()

    def _start_inventory(self) -> bool:
        if not self.is_initialized():
            logger.error("Cannot start inventory: UHF not initialized")
            return False
        if self._scheduler.desired:
            logger.warning("Inventory already running")
            return True
        try:
            return self._scheduler.start()
        except InvalidTransitionError as exc:
            logger.error("Cannot start inventory: %s", exc)
            return False

    def _on_worker(self, function: Callable[[], T], default: T) -> T:
        if self._scheduler.closed:
            logger.debug("Reader disposed, ignoring call")
            return default
        try:
            return self._scheduler.call(function)
        except ReaderError as exc:
            logger.error("%s", exc)
            return default
