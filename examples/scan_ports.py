# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Look for MCP servers on the usual development ports.

    uv run python examples/scan_ports.py
"""

from __future__ import annotations

import anyio

from mcpharness import scan


async def main() -> None:
    result = await scan(timeout=0.5)
    print(f"Scanned ports: {result.scanned_ports}")
    for server in result.servers:
        label = f"{server.name} {server.version}" if server.enriched else "unidentified"
        print(f"  {server.transport.value:<9} {server.url}  ({label})")
    if not result.servers:
        print("Nothing is listening.")


if __name__ == "__main__":
    anyio.run(main)
