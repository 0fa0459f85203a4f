# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Error taxonomy for the harness.

Callers can tell four failure families apart:

* :class:`ConfigurationError` -- the connection config is unusable. Raised
  before any I/O and never worth retrying.
* :class:`TransportError` -- the process could not be spawned, the socket was
  refused or closed, or a deadline elapsed (:class:`RequestTimeoutError`).
* :class:`ProtocolError` -- the server answered with an explicit JSON-RPC
  error (``code``/``message``/``data``).
* :class:`NotConnectedError` -- a capability call was made without an active
  connection. Always local, never attempted over the wire.
"""

from __future__ import annotations

from typing import Any

from mcp import types


class HarnessError(Exception):
    """Base class for every error raised by :mod:`mcpharness`."""


class ConfigurationError(HarnessError, ValueError):
    """Connection configuration is missing a field or names an unknown variant."""


class TransportError(HarnessError):
    """The underlying transport failed (spawn, connect, read or write)."""


class RequestTimeoutError(TransportError, TimeoutError):
    """A connect or request deadline elapsed before the server answered."""

    def __init__(self, message: str, *, timeout: float | None = None) -> None:
        super().__init__(message)
        self.timeout = timeout


class ProtocolError(HarnessError):
    """The server returned a JSON-RPC error response."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_error_data(cls, error: types.ErrorData) -> "ProtocolError":
        return cls(error.code, error.message, error.data)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class NotConnectedError(HarnessError):
    """A capability method was called while the client is not connected."""


class AlreadyConnectedError(HarnessError):
    """``connect`` was called while the client is not ``disconnected``."""


class UnsupportedOperationError(HarnessError):
    """The active transport cannot carry the requested operation."""


class InvalidTransitionError(HarnessError):
    """The connection state machine refused a transition."""


__all__ = [
    "AlreadyConnectedError",
    "ConfigurationError",
    "HarnessError",
    "InvalidTransitionError",
    "NotConnectedError",
    "ProtocolError",
    "RequestTimeoutError",
    "TransportError",
    "UnsupportedOperationError",
]
