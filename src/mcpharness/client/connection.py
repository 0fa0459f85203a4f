# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""High-level client entrypoint.

:func:`open_connection` wraps config parsing and :class:`~mcpharness.client.MCPClient`
so a script can talk to an MCP server with a single ``async with`` block::

    async with open_connection({"type": "http-stateful", "url": "http://localhost:3000/mcp"}) as client:
        tools = await client.list_tools()

The client is connected on entry and disconnected on exit.  Callers that need
to reconnect, or to observe failed connection attempts, use
:class:`~mcpharness.client.MCPClient` directly.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from mcp.types import Implementation

from ..config import ClientOptions, ConnectionConfig, parse_connection_config
from .core import ClientCapabilitiesConfig, MCPClient
from .transports import TransportFactory, open_transport


@asynccontextmanager
async def open_connection(
    config: ConnectionConfig | Mapping[str, Any],
    *,
    options: ClientOptions | None = None,
    capabilities: ClientCapabilitiesConfig | None = None,
    client_info: Implementation | None = None,
    transport_factory: TransportFactory = open_transport,
) -> AsyncGenerator[MCPClient, None]:
    """Open a connected MCP client.

    Args:
        config: A connection config model, or a mapping in the wire shape
            (``{"type": "stdio", "executablePath": ...}``).
        options: Timeouts and buffer sizes.
        capabilities: Optional client capability configuration advertised during initialization.
        client_info: Implementation metadata forwarded during the MCP handshake.
        transport_factory: Override for the transport layer, mostly for tests.

    Yields:
        MCPClient: A client in the ``connected`` state.
    """
    if isinstance(config, Mapping):
        config = parse_connection_config(config)

    async with MCPClient(
        options=options,
        capabilities=capabilities,
        client_info=client_info,
        transport_factory=transport_factory,
    ) as client:
        await client.connect(config)
        yield client


__all__ = ["open_connection"]
