# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Command-line entry point (``mcpharness`` / ``python -m mcpharness``).

Two subcommands:

``scan``
    Probe local ports and list the MCP servers that answered.
``inspect``
    Connect to one server, print its identity, capability flags and the
    names of its tools, resources and prompts, then disconnect.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import sys
from typing import Any

import anyio
import orjson

from .capabilities import CapabilityFlag
from .client import MCPClient
from .config import AuthConfig, ClientOptions, StatefulHTTPConfig, StatelessHTTPConfig, StdioConfig
from .discovery import DEFAULT_PORTS, DEFAULT_TIMEOUT, scan
from .exceptions import HarnessError
from .utils.logger import setup_logger


def _emit(payload: Any) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode() + "\n")


async def run_scan(args: argparse.Namespace) -> int:
    result = await scan(
        args.ports or None,
        host=args.host,
        http=args.http,
        websocket=args.websocket,
        timeout=args.timeout,
        max_concurrency=args.max_concurrency,
    )
    if args.json:
        _emit(result.to_dict())
        return 0

    print(f"Scanned {len(result.scanned_ports)} port(s) on {args.host}")
    if not result.servers:
        print("No servers found.")
    for server in result.servers:
        identity = f"{server.name} {server.version or ''}".strip() if server.name else "(unidentified)"
        print(f"  {server.port:>5}  {server.transport.value:<9}  {server.url}  {identity}")
    return 0


def _connection_config(args: argparse.Namespace) -> StdioConfig | StatefulHTTPConfig | StatelessHTTPConfig:
    if args.command:
        return StdioConfig(command=args.command[0], args=list(args.command[1:]))
    auth = AuthConfig(credential=args.api_key, header_name=args.header_name) if args.api_key else None
    if args.stateless:
        return StatelessHTTPConfig(url=args.url, auth=auth)
    return StatefulHTTPConfig(url=args.url, auth=auth)


async def run_inspect(args: argparse.Namespace) -> int:
    config = _connection_config(args)
    options = ClientOptions.from_env(connect_timeout=args.connect_timeout)

    async with MCPClient(options=options) as client:
        info = await client.connect(config)
        listing: dict[str, list[str]] = {"tools": [], "resources": [], "prompts": []}
        if info.supports(CapabilityFlag.TOOLS):
            listing["tools"] = [tool.name for tool in await client.list_tools()]
        if info.supports(CapabilityFlag.RESOURCES):
            listing["resources"] = [str(resource.uri) for resource in await client.list_resources()]
        if info.supports(CapabilityFlag.PROMPTS):
            listing["prompts"] = [prompt.name for prompt in await client.list_prompts()]
        await client.disconnect()

    if args.json:
        _emit({"server": info.to_dict(), **listing})
        return 0

    print(f"Connected to {info.name} v{info.version} (protocol {info.protocol_version})")
    if info.instructions:
        print(f"Instructions: {info.instructions}")
    flags = ", ".join(sorted(flag.value for flag in info.capabilities)) or "none"
    print(f"Capabilities: {flags}")
    for kind, names in listing.items():
        print(f"{kind.capitalize()} ({len(names)}):")
        for name in names:
            print(f"  - {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mcpharness", description="Exercise and discover MCP servers")
    parser.add_argument("--log-level", default=None, help="Logging level (default: $MCPHARNESS_LOG_LEVEL or INFO)")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    commands = parser.add_subparsers(dest="subcommand", required=True)

    scan_parser = commands.add_parser("scan", help="Probe local ports for running servers")
    scan_parser.add_argument("--host", default="localhost", help="Host to probe (default: %(default)s)")
    scan_parser.add_argument(
        "--ports",
        type=int,
        nargs="+",
        metavar="PORT",
        help=f"Ports to probe (default: {' '.join(map(str, DEFAULT_PORTS))})",
    )
    scan_parser.add_argument("--no-http", dest="http", action="store_false", help="Skip the HTTP probe")
    scan_parser.add_argument("--no-websocket", dest="websocket", action="store_false", help="Skip the upgrade probe")
    scan_parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT, help="Per-probe timeout in seconds (default: %(default)s)"
    )
    scan_parser.add_argument("--max-concurrency", type=int, default=None, help="Cap on simultaneous probes")
    scan_parser.set_defaults(handler=run_scan)

    inspect_parser = commands.add_parser("inspect", help="Connect to a server and describe it")
    target = inspect_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--url", help="HTTP endpoint, e.g. http://localhost:3000/mcp")
    target.add_argument("--command", nargs=argparse.REMAINDER, help="Executable and arguments of a stdio server")
    inspect_parser.add_argument("--stateless", action="store_true", help="Use the stateless HTTP transport")
    inspect_parser.add_argument("--api-key", default=None, help="Credential sent with every HTTP request")
    inspect_parser.add_argument("--header-name", default="x-api-key", help="Header carrying the API key")
    inspect_parser.add_argument(
        "--connect-timeout", type=float, default=5.0, help="Handshake timeout in seconds (default: %(default)s)"
    )
    inspect_parser.set_defaults(handler=run_inspect)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logger(level=args.log_level, force=True)

    try:
        return anyio.run(args.handler, args)
    except HarnessError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


__all__ = ["build_parser", "main"]
