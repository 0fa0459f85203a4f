# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Connection state machine.

The client moves through ``disconnected -> connecting -> connected`` and back
to ``disconnected``.  Any step may land in ``error`` instead; from there only
an explicit disconnect (a transition to ``disconnected``) recovers.  The
machine holds exactly one state at a time and rejects transitions that are not
in :data:`ALLOWED_TRANSITIONS`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from .exceptions import InvalidTransitionError
from .utils.logger import get_logger


_logger = get_logger("mcpharness.state")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


ALLOWED_TRANSITIONS: Final[dict[ConnectionState, frozenset[ConnectionState]]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING, ConnectionState.DISCONNECTED}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.ERROR, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.CONNECTED: frozenset({ConnectionState.DISCONNECTED, ConnectionState.ERROR}),
    ConnectionState.ERROR: frozenset({ConnectionState.DISCONNECTED, ConnectionState.ERROR}),
}


@dataclass(frozen=True, slots=True)
class StateChange:
    previous: ConnectionState
    current: ConnectionState
    error: str | None = None


StateListener = Callable[[StateChange], None]


class ConnectionStateMachine:
    """Tracks the lifecycle of a single client connection."""

    def __init__(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        self._error: str | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def error(self) -> str | None:
        """Reason attached to the last transition into ``error``."""
        return self._error

    def is_(self, state: ConnectionState) -> bool:
        return self._state is state

    def transition(self, target: ConnectionState, *, error: str | None = None) -> StateChange:
        """Move to *target*, raising :class:`InvalidTransitionError` if not allowed."""
        if target not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidTransitionError(f"Cannot move from '{self._state.value}' to '{target.value}'")

        change = StateChange(self._state, target, error if target is ConnectionState.ERROR else None)
        self._state = target
        self._error = change.error
        if change.previous is not change.current:
            _logger.debug("connection state %s -> %s", change.previous.value, change.current.value)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                _logger.warning("state listener %r failed", listener, exc_info=True)
        return change

    def reset(self) -> StateChange:
        """Return to ``disconnected`` from any state."""
        return self.transition(ConnectionState.DISCONNECTED)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove


__all__ = ["ALLOWED_TRANSITIONS", "ConnectionState", "ConnectionStateMachine", "StateChange"]
