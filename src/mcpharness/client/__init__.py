# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Public client-side helpers for mcpharness.

The implementation details live in :mod:`mcpharness.client.core` and related
modules; this wrapper exposes the pieces that most scripts use.
"""

from __future__ import annotations

from .connection import open_connection
from .core import ClientCapabilitiesConfig, ConnectionInfo, MCPClient, ToolExecutionResult
from .subscriptions import Subscription, SubscriptionRegistry, Update
from .transports import APIKeyAuth, open_transport, stateless_http_client


__all__ = [
    "MCPClient",
    "ClientCapabilitiesConfig",
    "ConnectionInfo",
    "ToolExecutionResult",
    "Subscription",
    "SubscriptionRegistry",
    "Update",
    "APIKeyAuth",
    "open_transport",
    "stateless_http_client",
    "open_connection",
]
