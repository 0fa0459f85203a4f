# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Test harness for MCP servers: a protocol client, port discovery and diagnostics."""

from __future__ import annotations

from .capabilities import CapabilityFlag, ServerInfo
from .client import (
    ClientCapabilitiesConfig,
    MCPClient,
    Subscription,
    ToolExecutionResult,
    Update,
    open_connection,
)
from .config import (
    AuthConfig,
    ClientOptions,
    ConnectionConfig,
    StatefulHTTPConfig,
    StatelessHTTPConfig,
    StdioConfig,
    parse_connection_config,
)
from .discovery import DiscoveredServer, ScanResult, TransportKind, scan
from .exceptions import (
    AlreadyConnectedError,
    ConfigurationError,
    HarnessError,
    InvalidTransitionError,
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
    UnsupportedOperationError,
)
from .messages import Direction, MessageLog, ProtocolMessage
from .state import ConnectionState


__version__ = "0.1.0"

__all__ = [
    "MCPClient",
    "ClientCapabilitiesConfig",
    "ClientOptions",
    "ToolExecutionResult",
    "Subscription",
    "Update",
    "open_connection",
    "AuthConfig",
    "ConnectionConfig",
    "StdioConfig",
    "StatefulHTTPConfig",
    "StatelessHTTPConfig",
    "parse_connection_config",
    "CapabilityFlag",
    "ServerInfo",
    "ConnectionState",
    "Direction",
    "MessageLog",
    "ProtocolMessage",
    "scan",
    "DiscoveredServer",
    "ScanResult",
    "TransportKind",
    "HarnessError",
    "ConfigurationError",
    "TransportError",
    "RequestTimeoutError",
    "ProtocolError",
    "NotConnectedError",
    "AlreadyConnectedError",
    "UnsupportedOperationError",
    "InvalidTransitionError",
]
