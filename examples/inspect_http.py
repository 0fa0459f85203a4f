# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Connect to a streamable HTTP server, call one tool and dump the traffic.

Start any MCP server on port 8000 first, then:

    MCP_API_KEY=secret uv run python examples/inspect_http.py
"""

from __future__ import annotations

import os

import anyio

from mcpharness import CapabilityFlag, open_connection


SERVER_URL = "http://127.0.0.1:8000/mcp"


async def main() -> None:
    config = {"type": "http-stateful", "url": SERVER_URL}
    if api_key := os.getenv("MCP_API_KEY"):
        config["auth"] = {"type": "apiKey", "key": api_key}

    async with open_connection(config) as client:
        info = client.server_info
        print(f"Connected to {info.name} v{info.version}")
        print("Capabilities:", sorted(flag.value for flag in info.capabilities))

        if info.supports(CapabilityFlag.TOOLS):
            tools = await client.list_tools()
            print("Tools:", [tool.name for tool in tools])
            if tools:
                result = await client.execute_tool(tools[0].name, {})
                print(f"{result.tool}: success={result.success} in {result.duration * 1000:.1f} ms")
                if result.error:
                    print("  error:", result.error)

        print("\nTraffic:")
        for message in client.messages:
            print(f"  #{message.sequence:<3} {message.direction.value:<8} {message.method}")


if __name__ == "__main__":
    anyio.run(main)
