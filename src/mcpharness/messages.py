# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Bounded log of protocol traffic.

:class:`MessageLog` keeps the most recent ``capacity`` messages in a ring
buffer; when full, the oldest entry is evicted.  The protocol client is the
only writer.  Everyone else reads snapshots or registers a listener.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from itertools import count
from typing import Any, Final

from .utils.logger import get_logger


DEFAULT_CAPACITY: Final[int] = 500

_logger = get_logger("mcpharness.messages")


class Direction(str, Enum):
    SENT = "sent"
    RECEIVED = "received"


@dataclass(frozen=True, slots=True)
class ProtocolMessage:
    sequence: int
    direction: Direction
    method: str
    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction.value,
            "method": self.method,
            "payload": self.payload,
        }


MessageListener = Callable[[ProtocolMessage], None]


class MessageLog:
    """Fixed-capacity ring buffer of :class:`ProtocolMessage` entries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Message log capacity must be at least 1")
        self._entries: deque[ProtocolMessage] = deque(maxlen=capacity)
        self._sequence = count(1)
        self._listeners: list[MessageListener] = []
        self._evicted = 0

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    @property
    def evicted(self) -> int:
        """Number of messages dropped because the buffer was full."""
        return self._evicted

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ProtocolMessage]:
        return iter(tuple(self._entries))

    def record(self, direction: Direction, method: str, payload: Any = None) -> ProtocolMessage:
        message = ProtocolMessage(next(self._sequence), direction, method, payload)
        if len(self._entries) == self.capacity:
            self._evicted += 1
        self._entries.append(message)
        _logger.debug("%s %s", direction.value, method)

        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                _logger.warning("message listener %r failed", listener, exc_info=True)
        return message

    def add_listener(self, listener: MessageListener) -> Callable[[], None]:
        """Register *listener*; the returned callable unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def messages(self) -> list[ProtocolMessage]:
        return list(self._entries)

    def by_method(self, method: str) -> list[ProtocolMessage]:
        return [entry for entry in self._entries if entry.method == method]

    def by_direction(self, direction: Direction | str) -> list[ProtocolMessage]:
        wanted = Direction(direction)
        return [entry for entry in self._entries if entry.direction is wanted]

    def clear(self) -> None:
        self._entries.clear()


__all__ = ["DEFAULT_CAPACITY", "Direction", "MessageLog", "ProtocolMessage"]
