# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Shared test helpers: an in-process demo server and an in-memory transport."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import anyio
import httpx
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.shared.exceptions import McpError
from mcp.shared.memory import create_client_server_memory_streams
from pydantic import AnyUrl

from mcpharness.config import ClientOptions, StatefulHTTPConfig


LOGS_URI = "file:///logs"
MEMORY_CONFIG = StatefulHTTPConfig(url="http://testserver/mcp")

RESOURCE_NOT_FOUND = -32002


class DemoState:
    """Mutable server-side state inspected by tests."""

    def __init__(self) -> None:
        self.log_lines: list[str] = []
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []
        self.logging_level: str | None = None
        self.roots_seen: list[str] = []


def build_demo_server(state: DemoState | None = None) -> tuple[Server, DemoState]:
    """Low-level SDK server exercising every capability the client calls."""
    state = state or DemoState()
    server: Server = Server("demo-server", version="1.2.3", instructions="Demo server for harness tests")

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        text_schema = {"type": "object", "properties": {"text": {"type": "string"}}}
        return [
            types.Tool(name="echo", description="Echo text back", inputSchema=text_schema),
            types.Tool(name="append_log", description="Append a log line", inputSchema=text_schema),
            types.Tool(name="boom", description="Always fails", inputSchema={"type": "object"}),
            types.Tool(name="slow", description="Sleeps for a while", inputSchema={"type": "object"}),
            types.Tool(
                name="delayed_echo",
                description="Echo after a delay",
                inputSchema={
                    "type": "object",
                    "properties": {"text": {"type": "string"}, "delay": {"type": "number"}},
                },
            ),
            types.Tool(name="log", description="Emit a log notification", inputSchema={"type": "object"}),
            types.Tool(name="ask_roots", description="Ask the client for its roots", inputSchema={"type": "object"}),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.ContentBlock]:
        arguments = arguments or {}
        ctx = server.request_context
        if name == "echo":
            return [types.TextContent(type="text", text=str(arguments.get("text", "")))]
        if name == "append_log":
            state.log_lines.append(str(arguments.get("text", "")))
            await ctx.session.send_resource_updated(AnyUrl(LOGS_URI))
            return [types.TextContent(type="text", text="ok")]
        if name == "boom":
            raise RuntimeError("kaboom")
        if name == "slow":
            await anyio.sleep(30)
            return [types.TextContent(type="text", text="late")]
        if name == "delayed_echo":
            await anyio.sleep(float(arguments.get("delay", 0)))
            return [types.TextContent(type="text", text=str(arguments.get("text", "")))]
        if name == "log":
            await ctx.session.send_log_message(level="warning", data="disk almost full", logger="demo")
            return [types.TextContent(type="text", text="logged")]
        if name == "ask_roots":
            result = await ctx.session.list_roots()
            state.roots_seen = [str(root.uri) for root in result.roots]
            return [types.TextContent(type="text", text=",".join(state.roots_seen))]
        raise ValueError(f"Unknown tool: {name!r}")

    @server.list_resources()
    async def list_resources() -> list[types.Resource]:
        return [types.Resource(uri=AnyUrl(LOGS_URI), name="logs", mimeType="text/plain")]

    @server.list_resource_templates()
    async def list_resource_templates() -> list[types.ResourceTemplate]:
        return [types.ResourceTemplate(uriTemplate="file:///logs/{day}", name="daily-logs")]

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
        if str(uri) != LOGS_URI:
            raise McpError(types.ErrorData(code=RESOURCE_NOT_FOUND, message=f"Resource not found: {uri}"))
        return [ReadResourceContents(content="\n".join(state.log_lines), mime_type="text/plain")]

    @server.subscribe_resource()
    async def subscribe_resource(uri: AnyUrl) -> None:
        state.subscribed.append(str(uri))

    @server.unsubscribe_resource()
    async def unsubscribe_resource(uri: AnyUrl) -> None:
        state.unsubscribed.append(str(uri))

    @server.list_prompts()
    async def list_prompts() -> list[types.Prompt]:
        return [
            types.Prompt(
                name="greet",
                description="Greet someone",
                arguments=[types.PromptArgument(name="name", required=True)],
            )
        ]

    @server.get_prompt()
    async def get_prompt(name: str, arguments: dict[str, str] | None) -> types.GetPromptResult:
        if name != "greet":
            raise McpError(types.ErrorData(code=types.INVALID_PARAMS, message=f"Unknown prompt: {name}"))
        who = (arguments or {}).get("name", "stranger")
        return types.GetPromptResult(
            messages=[types.PromptMessage(role="user", content=types.TextContent(type="text", text=f"Hello {who}"))]
        )

    @server.completion()
    async def complete(
        ref: types.PromptReference | types.ResourceTemplateReference,
        argument: types.CompletionArgument,
        context: types.CompletionContext | None,
    ) -> types.Completion:
        names = ["Ada", "Alan", "Grace"]
        values = [value for value in names if value.startswith(argument.value)]
        return types.Completion(values=values, total=len(values), hasMore=False)

    @server.set_logging_level()
    async def set_logging_level(level: types.LoggingLevel) -> None:
        state.logging_level = level

    return server, state


def memory_transport(server: Server) -> Callable[..., Any]:
    """Transport factory running *server* in-process over memory streams."""

    @asynccontextmanager
    async def factory(config: Any, options: ClientOptions) -> AsyncIterator[Any]:
        init_options = server.create_initialization_options()
        # The low-level server never advertises subscribe support on its own.
        init_options.capabilities.resources = types.ResourcesCapability(subscribe=True, listChanged=False)
        async with create_client_server_memory_streams() as (client_streams, server_streams):
            async with anyio.create_task_group() as tg:
                tg.start_soon(server.run, server_streams[0], server_streams[1], init_options)
                try:
                    yield client_streams
                finally:
                    tg.cancel_scope.cancel()

    return factory


async def wait_for(predicate: Callable[[], bool], *, timeout: float = 3.0) -> None:
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)


def mock_client_factory(
    handler: Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]],
) -> Callable[..., httpx.AsyncClient]:
    """``httpx_client_factory`` replacement routing every request to *handler*."""

    def factory(
        headers: dict[str, str] | None = None,
        timeout: httpx.Timeout | None = None,
        auth: httpx.Auth | None = None,
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            headers=headers,
            timeout=timeout,
            auth=auth,
        )

    return factory
