# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Minimal stdio MCP server spawned by the stdio transport tests."""

from __future__ import annotations

import os
import threading

from mcp.server.fastmcp import FastMCP


server = FastMCP("stdio-fixture")


@server.tool()
def echo(text: str) -> str:
    """Return *text* unchanged."""
    return text


@server.tool()
def read_env(name: str) -> str:
    """Return the value of an environment variable in the server process."""
    return os.environ.get(name, "")


@server.tool()
def exit_soon() -> str:
    """Reply, then terminate the process without any shutdown handshake."""
    threading.Timer(0.2, os._exit, (0,)).start()
    return "bye"


@server.resource("file:///greeting")
def greeting() -> str:
    return "hello from stdio"


if __name__ == "__main__":
    server.run("stdio")
