"""The per-process recording state cell."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from errors import StateError
from models import RecordingState

log = logging.getLogger(__name__)

StateCallback = Callable[[RecordingState, RecordingState], None]

TRANSITIONS: dict[RecordingState, frozenset[RecordingState]] = {
    RecordingState.IDLE: frozenset({RecordingState.RECORDING}),
    RecordingState.RECORDING: frozenset({RecordingState.TRANSCRIBING, RecordingState.IDLE}),
    RecordingState.TRANSCRIBING: frozenset(
        {RecordingState.POLISHING, RecordingState.CLIPBOARD_READY, RecordingState.IDLE}
    ),
    RecordingState.POLISHING: frozenset({RecordingState.CLIPBOARD_READY, RecordingState.IDLE}),
    RecordingState.CLIPBOARD_READY: frozenset({RecordingState.IDLE}),
}


class RecordingStatus:
    """Single writer, many readers. Observers run outside the lock and their
    exceptions are logged, never raised to the caller that moved the state."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = RecordingState.IDLE
        self._observers: list[StateCallback] = []

    @property
    def current(self) -> RecordingState:
        with self._lock:
            return self._state

    def transition(self, to_state: RecordingState, *, expect: RecordingState | None = None) -> RecordingState:
        """Move to ``to_state`` and return the previous state.

        Raises StateError when the move is not allowed from the current state,
        or when ``expect`` is given and does not match it.
        """
        with self._lock:
            from_state = self._state
            if expect is not None and from_state != expect:
                raise StateError(f"expected {expect.value}, state is {from_state.value}")
            if to_state not in TRANSITIONS[from_state]:
                raise StateError(f"{from_state.value} -> {to_state.value} is not allowed")
            self._state = to_state
            observers = list(self._observers)
        log.debug("state %s -> %s", from_state.value, to_state.value)
        for callback in observers:
            # the new state is already committed; an observer cannot undo it
            try:
                callback(from_state, to_state)
            except Exception:
                log.exception("state observer failed on %s -> %s", from_state.value, to_state.value)
        return from_state

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        with self._lock:
            self._observers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe
