"""Continuous inventory loop.

The scheduler keeps re-issuing single inventory rounds while scanning is
desired.  All of its state (``desired``, ``running``, the round counter and
the pending backoff timer) and every lifecycle transition it causes are
owned by one worker thread:

- control calls (:meth:`ScanScheduler.start`, :meth:`ScanScheduler.stop`,
  :meth:`ScanScheduler.call`) run on the worker and wait for the result;
- gateway completion callbacks and backoff timers only post work to it.

Tag detections bypass the worker and go straight to the dispatcher, which
is thread-safe, so every tag of a round is queued before that round's
outcome is processed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Protocol, TypeVar

from uhfscan.errors import ReaderError
from uhfscan.events import EventDispatcher
from uhfscan.gateway import (
    DeviceGateway,
    RoundFailed,
    RoundOutcome,
    RoundSucceeded,
    TagDetection,
)
from uhfscan.statemachine import ReaderLifecycle, ReaderState

logger = logging.getLogger(__name__)

# Upper bound on tags per round, passed straight to the driver.
MAX_TAGS_PER_ROUND = 255

# Delays in seconds before the next round is issued.
SUCCESS_BACKOFF = 0.1
FAILURE_BACKOFF = 0.5

T = TypeVar("T")


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def daemon_timer(delay: float, function: Callable[[], None]) -> Timer:
    """Default timer factory: a daemonised :class:`threading.Timer`."""
    timer = threading.Timer(delay, function)
    timer.daemon = True
    return timer


class ScanScheduler:
    """Drives repeated inventory rounds with success/failure backoff.

    Parameters
    ----------
    gateway:
        Device gateway that runs the rounds.
    lifecycle:
        Lifecycle moved to *scanning* on start and back to *ready* on stop.
    dispatcher:
        Receives every tag detection as soon as the gateway reports it.
    success_backoff:
        Seconds to wait after a successful round (default 0.1).
    failure_backoff:
        Seconds to wait after a failed round (default 0.5).
    timer_factory:
        Builds the timers used for re-arming (default :func:`daemon_timer`).
    """

    def __init__(
        self,
        gateway: DeviceGateway,
        lifecycle: ReaderLifecycle,
        dispatcher: EventDispatcher,
        *,
        success_backoff: float = SUCCESS_BACKOFF,
        failure_backoff: float = FAILURE_BACKOFF,
        timer_factory: TimerFactory = daemon_timer,
    ) -> None:
        self._gateway = gateway
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._success_backoff = success_backoff
        self._failure_backoff = failure_backoff
        self._timer_factory = timer_factory

        self._desired = False
        self._running = False
        self._round_id = 0
        self._timer: Timer | None = None

        self._worker: threading.Thread | None = None
        self._closed = False
        self._submit_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="uhfscan-scheduler",
            initializer=self._bind_worker,
        )

    # -- public properties ---------------------------------------------------

    @property
    def desired(self) -> bool:
        return self._desired

    @property
    def running(self) -> bool:
        return self._running

    @property
    def closed(self) -> bool:
        return self._closed

    # -- control -------------------------------------------------------------

    def start(self) -> bool:
        """Request continuous scanning.  Idempotent while already requested.

        Raises :class:`~uhfscan.statemachine.InvalidTransitionError` if the
        lifecycle cannot move to *scanning*.
        """
        return self.call(self._start)

    def stop(self) -> bool:
        """Stop requesting rounds.  An in-flight round is left to finish."""
        return self.call(self._stop)

    def call(self, function: Callable[..., T], *args: Any) -> T:
        """Run *function* on the worker and return its result.

        Runs inline when already on the worker, so worker code may call
        back into the scheduler.
        """
        if threading.current_thread() is self._worker:
            return function(*args)
        with self._submit_lock:
            if self._closed:
                raise ReaderError("Scan scheduler is closed.")
            future = self._executor.submit(function, *args)
        return future.result()

    def flush(self) -> None:
        """Wait until all work posted so far has run."""
        self.call(lambda: None)

    def close(self) -> None:
        """Stop accepting work.  Late gateway callbacks are dropped."""
        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=False)

    # -- worker-side ---------------------------------------------------------

    def _start(self) -> bool:
        if self._desired:
            return True
        self._lifecycle.start_scanning()
        self._desired = True
        if not self._running:
            self._cancel_timer()
            self._issue_round()
        return True

    def _stop(self) -> bool:
        self._desired = False
        self._cancel_timer()
        if self._lifecycle.state is ReaderState.SCANNING:
            self._lifecycle.stop_scanning()
        return True

    def _issue_round(self) -> None:
        if not self._desired or self._running:
            return
        self._timer = None
        self._running = True
        self._round_id += 1
        round_id = self._round_id
        logger.debug("Issuing inventory round %d", round_id)
        try:
            self._gateway.run_inventory_round(
                MAX_TAGS_PER_ROUND,
                self._on_tag,
                lambda outcome: self._post(self._finish_round, round_id, outcome),
            )
        except Exception as exc:
            logger.error("Inventory round %d could not be issued: %s", round_id, exc)
            self._finish_round(round_id, RoundFailed())

    def _finish_round(self, round_id: int, outcome: RoundOutcome) -> None:
        if round_id != self._round_id or not self._running:
            logger.warning("Ignoring outcome of stale round %d", round_id)
            return
        self._running = False

        if isinstance(outcome, RoundSucceeded):
            logger.debug(
                "Inventory round %d finished. Tags: %d, Reads: %d",
                round_id,
                outcome.tag_count,
                outcome.read_count,
            )
            delay = self._success_backoff
        else:
            logger.warning(
                "Inventory round %d failed: %s", round_id, outcome.error_code
            )
            delay = self._failure_backoff

        if self._desired:
            self._schedule_round(delay)
        elif self._lifecycle.state is ReaderState.SCANNING:
            self._lifecycle.stop_scanning()

    def _schedule_round(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = self._timer_factory(
            delay, lambda: self._post(self._issue_round)
        )
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # -- any thread ----------------------------------------------------------

    def _on_tag(self, detection: TagDetection) -> None:
        if not self._closed:
            self._dispatcher.publish_tag(detection)

    def _post(self, function: Callable[..., None], *args: Any) -> None:
        with self._submit_lock:
            if self._closed:
                logger.debug("Scheduler closed, dropping %s", function.__name__)
                return
            self._executor.submit(self._guarded, function, *args)

    def _guarded(self, function: Callable[..., None], *args: Any) -> None:
        try:
            function(*args)
        except Exception:
            logger.exception("Error in scheduler task %s", function.__name__)

    def _bind_worker(self) -> None:
        self._worker = threading.current_thread()
