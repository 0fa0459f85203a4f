# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Subscribe to a resource and print every snapshot the server pushes.

    uv run python examples/watch_resource.py file:///logs

Stop with Ctrl+C.
"""

from __future__ import annotations

import sys

import anyio

from mcpharness import StatefulHTTPConfig, open_connection
from mcpharness.client import Subscription, Update


SERVER_URL = "http://127.0.0.1:8000/mcp"


def show(subscription: Subscription, update: Update) -> None:
    print(f"[{update.timestamp:%H:%M:%S}] {subscription.uri} (update #{subscription.update_count})")
    print(update.text or "<binary contents>")


async def main(uri: str) -> None:
    async with open_connection(StatefulHTTPConfig(url=SERVER_URL)) as client:
        client.subscriptions.add_listener(show, uri=uri)
        await client.subscribe(uri)
        print(f"Watching {uri}")
        try:
            await anyio.sleep_forever()
        finally:
            with anyio.CancelScope(shield=True):
                await client.unsubscribe_all()


if __name__ == "__main__":
    anyio.run(main, sys.argv[1] if len(sys.argv) > 1 else "file:///logs")
