"""Reader lifecycle state machine.

States
------
- uninitialized : nothing has happened yet (initial state, never emitted).
- initializing  : the device is being brought up.
- ready         : the device is up and not scanning.
- scanning      : continuous inventory is requested.
- error         : device initialization failed.
- disposed      : the reader has been torn down (terminal).

Allowed transitions
-------------------
From *uninitialized* or *error*:
    begin_init()         → initializing

From *initializing*:
    init_succeeded()     → ready
    init_failed()        → error

From *ready*, *error* or *scanning*:
    start_scanning()     → scanning

From *scanning*:
    stop_scanning()      → ready

From any state except *disposed*:
    dispose()            → disposed

Moving into the state the machine is already in is a no-op and emits
nothing, so ``start_scanning()`` while scanning and ``stop_scanning()``
while ready are both harmless.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from uhfscan.errors import ReaderError

logger = logging.getLogger(__name__)


class ReaderState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SCANNING = "scanning"
    ERROR = "error"
    DISPOSED = "disposed"


class InvalidTransitionError(ReaderError):
    """Raised when a transition is not allowed from the current state."""


_ALLOWED: dict[ReaderState, frozenset[ReaderState]] = {
    ReaderState.INITIALIZING: frozenset(
        {ReaderState.UNINITIALIZED, ReaderState.ERROR}
    ),
    ReaderState.READY: frozenset({ReaderState.INITIALIZING, ReaderState.SCANNING}),
    ReaderState.ERROR: frozenset({ReaderState.INITIALIZING}),
    ReaderState.SCANNING: frozenset({ReaderState.READY, ReaderState.ERROR}),
    ReaderState.DISPOSED: frozenset(
        state for state in ReaderState if state is not ReaderState.DISPOSED
    ),
}


class ReaderLifecycle:
    """Tracks the reader's coarse operational phase.

    Parameters
    ----------
    on_change:
        Called with the new state on every real transition, synchronously
        and while the lifecycle lock is held, so listeners see transitions
        in the order they happened.
    """

    def __init__(
        self, on_change: Callable[[ReaderState], None] | None = None
    ) -> None:
        self._state = ReaderState.UNINITIALIZED
        self._on_change = on_change
        self._lock = threading.RLock()

    @property
    def state(self) -> ReaderState:
        return self._state

    # -- transitions ---------------------------------------------------------

    def begin_init(self) -> None:
        self._move(ReaderState.INITIALIZING)

    def init_succeeded(self) -> None:
        self._move(ReaderState.READY, allowed_from={ReaderState.INITIALIZING})

    def init_failed(self) -> None:
        self._move(ReaderState.ERROR)

    def start_scanning(self) -> None:
        self._move(ReaderState.SCANNING)

    def stop_scanning(self) -> None:
        self._move(ReaderState.READY, allowed_from={ReaderState.SCANNING})

    def dispose(self) -> None:
        self._move(ReaderState.DISPOSED)

    # -- internal helpers ----------------------------------------------------

    def _move(
        self,
        target: ReaderState,
        *,
        allowed_from: set[ReaderState] | None = None,
    ) -> None:
        with self._lock:
            current = self._state
            if current is target:
                return
            sources = _ALLOWED[target] if allowed_from is None else allowed_from
            if current not in sources:
                raise InvalidTransitionError(
                    f"Cannot move from {current.name} to {target.name}."
                )
            self._state = target
            logger.info("Reader state: %s -> %s", current.value, target.value)
            if self._on_change is not None:
                self._on_change(target)
