"""Tag and state event streams.

Publishing never blocks and never runs consumer code.  An event for a
stream with no subscriber is dropped on the spot, never buffered; otherwise
it is queued and handed off to the consumer's own context, either by calling
:meth:`EventDispatcher.check_events` from its main loop or by letting
:meth:`EventDispatcher.start` run a delivery thread.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

from uhfscan.gateway import TagDetection
from uhfscan.statemachine import ReaderState

logger = logging.getLogger(__name__)

TagSubscriber = Callable[[dict[str, Any]], None]
StateSubscriber = Callable[[str], None]

_TAG = "tag"
_STATE = "state"
_STOP = object()


class EventDispatcher:
    """Delivers tag and state events to at most one subscriber per stream."""

    def __init__(self) -> None:
        self._tag_subscriber: TagSubscriber | None = None
        self._state_subscriber: StateSubscriber | None = None
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._thread: threading.Thread | None = None

    # -- subscriptions -------------------------------------------------------

    def subscribe_tags(self, subscriber: TagSubscriber | None) -> None:
        """Set the tag stream subscriber; ``None`` unsubscribes."""
        self._tag_subscriber = subscriber

    def subscribe_state(self, subscriber: StateSubscriber | None) -> None:
        """Set the state stream subscriber; ``None`` unsubscribes."""
        self._state_subscriber = subscriber

    # -- publishing (any thread) ---------------------------------------------
    #
    # With no subscriber an event is dropped here, never queued.

    def publish_tag(self, detection: TagDetection) -> None:
        if self._tag_subscriber is None:
            return
        self._queue.put((_TAG, detection.to_message()))

    def publish_state(self, state: ReaderState) -> None:
        if self._state_subscriber is None:
            return
        self._queue.put((_STATE, state.value))

    # -- delivery ------------------------------------------------------------

    def check_events(self) -> int:
        """Deliver every queued event on the calling thread.

        Must be called periodically (e.g. from the main loop) unless the
        delivery thread is running.  Returns the number of events handled.
        """
        handled = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return handled
            if item is _STOP:
                continue
            self._deliver(*item)
            handled += 1

    def start(self) -> None:
        """Start a background thread that delivers events as they arrive."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._delivery_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the delivery thread after it has drained the queue."""
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout=2.0)
        self._thread = None

    # -- internal ------------------------------------------------------------

    def _delivery_loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._deliver(*item)

    def _deliver(self, stream: str, payload: Any) -> None:
        subscriber = (
            self._tag_subscriber if stream == _TAG else self._state_subscriber
        )
        if subscriber is None:
            return
        try:
            subscriber(payload)
        except Exception:
            logger.exception("Error in %s subscriber", stream)
