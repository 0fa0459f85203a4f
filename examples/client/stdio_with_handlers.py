# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Launch a stdio server with roots, sampling and logging handlers attached.

    uv run python examples/client/stdio_with_handlers.py path/to/server.py
"""

from __future__ import annotations

from pathlib import Path
import sys

import anyio
from mcp import types

from mcpharness import StdioConfig, open_connection
from mcpharness.client import ClientCapabilitiesConfig
from mcpharness.messages import Direction


async def sample(context: object, params: types.CreateMessageRequestParams) -> types.CreateMessageResult:
    """Canned completion so servers that sample can be exercised offline."""
    return types.CreateMessageResult(
        role="assistant",
        content=types.TextContent(type="text", text="(sampled by mcpharness)"),
        model="mcpharness-canned",
        stopReason="endTurn",
    )


def on_log(params: types.LoggingMessageNotificationParams) -> None:
    print(f"server log [{params.level}]: {params.data}")


async def main(server_path: str) -> None:
    capabilities = ClientCapabilitiesConfig(
        sampling=sample,
        logging=on_log,
        enable_roots=True,
        initial_roots=[types.Root(uri=Path.cwd().as_uri(), name="Working directory")],
    )
    config = StdioConfig(server_path=server_path, env={"LOG_LEVEL": "debug"})

    async with open_connection(config, capabilities=capabilities) as client:
        print(f"Connected to {client.server_info.name}")
        for tool in await client.list_tools():
            print(f"  - {tool.name}: {tool.description or ''}")

        await client.update_roots([types.Root(uri=Path.home().as_uri(), name="Home")])

        received = client.messages.by_direction(Direction.RECEIVED)
        print(f"{len(received)} message(s) received so far")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        raise SystemExit("usage: stdio_with_handlers.py SERVER_PATH")
    anyio.run(main, sys.argv[1])
