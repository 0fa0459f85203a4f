# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Transport factory for :mod:`mcpharness.client`.

:func:`open_transport` turns a connection config into an async context manager
yielding ``(read_stream, write_stream)``, the pair
:class:`mcp.client.session.ClientSession` consumes:

* ``stdio`` delegates to the SDK's ``stdio_client`` (newline-delimited JSON-RPC
  over the child's standard streams).
* ``http-stateful`` delegates to the SDK's ``streamablehttp_client``, which
  threads ``Mcp-Session-Id`` through every exchange.
* ``http-stateless`` uses :func:`stateless_http_client`: every JSON-RPC
  message is an independent POST, no session header is sent and no
  server-push GET stream is opened.

Both HTTP variants attach the configured API key through :class:`APIKeyAuth`.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable, Iterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol, runtime_checkable

import anyio
import anyio.abc
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
import httpx
from mcp import types
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.client.streamable_http import MCP_PROTOCOL_VERSION, MCP_SESSION_ID, streamablehttp_client
from mcp.shared._httpx_utils import McpHttpClientFactory, create_mcp_http_client
from mcp.shared.message import SessionMessage

from ..config import (
    AuthConfig,
    ClientOptions,
    StatefulHTTPConfig,
    StatelessHTTPConfig,
    StdioConfig,
    validate_connection_config,
)
from ..exceptions import ConfigurationError
from ..utils.logger import get_logger


_logger = get_logger("mcpharness.transports")

TransportStreams = tuple[MemoryObjectReceiveStream[SessionMessage | Exception], MemoryObjectSendStream[SessionMessage]]


@runtime_checkable
class TransportFactory(Protocol):
    """Callable producing a transport context manager for a connection config."""

    def __call__(
        self, config: Any, options: ClientOptions
    ) -> AbstractAsyncContextManager[TransportStreams]:  # pragma: no cover - protocol
        ...


class APIKeyAuth(httpx.Auth):
    """Inject a static credential header into every outgoing request."""

    def __init__(self, credential: str, header_name: str) -> None:
        self.credential = credential
        self.header_name = header_name

    @classmethod
    def from_config(cls, config: AuthConfig | None) -> "APIKeyAuth | None":
        if config is None:
            return None
        return cls(config.credential, config.header_name)

    def auth_flow(self, request: httpx.Request) -> Iterator[httpx.Request]:
        request.headers[self.header_name] = self.credential
        yield request


def iter_sse_data(body: str) -> Iterator[str]:
    """Yield the ``data`` payload of each event in a Server-Sent Events body."""
    data_lines: list[str] = []
    for line in body.splitlines():
        if not line.strip():
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith("data:"):
            data_lines.append(line[5:].removeprefix(" "))
    if data_lines:
        yield "\n".join(data_lines)


def _base_headers(extra: dict[str, str] | None = None) -> dict[str, str]:
    headers = {MCP_PROTOCOL_VERSION: types.LATEST_PROTOCOL_VERSION}
    if extra:
        headers.update(extra)
    return headers


def _post_failure(exc: Exception) -> types.ErrorData:
    """Map a failed stateless POST to the JSON-RPC error handed back to the caller.

    Only network failures report ``CONNECTION_CLOSED``; an error status or a
    garbled body affects that one request and leaves the connection usable.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return types.ErrorData(
            code=types.INTERNAL_ERROR,
            message=f"HTTP {status} {exc.response.reason_phrase}".rstrip(),
            data={"status": status},
        )
    if isinstance(exc, ValueError):
        return types.ErrorData(code=types.PARSE_ERROR, message=f"Malformed HTTP response: {exc}")
    return types.ErrorData(code=types.CONNECTION_CLOSED, message=f"HTTP transport error: {exc}")


@asynccontextmanager
async def stateless_http_client(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout: float = 30,
    auth: httpx.Auth | None = None,
    httpx_client_factory: McpHttpClientFactory | Callable[..., httpx.AsyncClient] = create_mcp_http_client,
) -> AsyncGenerator[TransportStreams, None]:
    """POST-only streamable HTTP transport without session correlation.

    Each outgoing message is posted on its own task so concurrent requests do
    not queue behind a slow call.  A failed POST for a request is answered
    locally with a JSON-RPC error carrying the request id, so the waiting
    caller fails instead of hanging (see :func:`_post_failure`).
    """
    request_headers = _base_headers(headers)
    request_headers["Accept"] = "application/json, text/event-stream"
    request_headers["Content-Type"] = "application/json"

    read_writer, read_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
    write_stream, write_reader = anyio.create_memory_object_stream[SessionMessage](0)

    async def deliver(message: types.JSONRPCMessage) -> None:
        try:
            await read_writer.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            _logger.debug("dropping response after transport shutdown")

    async def post_one(client: httpx.AsyncClient, message: types.JSONRPCMessage) -> None:
        is_request = isinstance(message.root, types.JSONRPCRequest)
        try:
            response = await client.post(
                url, content=message.model_dump_json(by_alias=True, exclude_none=True), headers=request_headers
            )
            if response.status_code == httpx.codes.ACCEPTED:
                return
            response.raise_for_status()
            if not is_request:
                return

            content_type = response.headers.get("content-type", "").lower()
            if content_type.startswith("text/event-stream"):
                for data in iter_sse_data(response.text):
                    await deliver(types.JSONRPCMessage.model_validate_json(data))
            else:
                await deliver(types.JSONRPCMessage.model_validate_json(response.content))
        except (httpx.HTTPError, ValueError) as exc:
            _logger.debug("stateless POST to %s failed: %s", url, exc)
            if is_request:
                await deliver(
                    types.JSONRPCMessage(
                        types.JSONRPCError(jsonrpc="2.0", id=message.root.id, error=_post_failure(exc))
                    )
                )

    async def post_writer(client: httpx.AsyncClient, tg: anyio.abc.TaskGroup) -> None:
        async with write_reader:
            async for session_message in write_reader:
                tg.start_soon(post_one, client, session_message.message)

    async with anyio.create_task_group() as tg:
        try:
            async with httpx_client_factory(
                headers=request_headers,
                timeout=httpx.Timeout(timeout),
                auth=auth,
            ) as client:
                tg.start_soon(post_writer, client, tg)
                try:
                    yield read_stream, write_stream
                finally:
                    tg.cancel_scope.cancel()
        finally:
            await read_writer.aclose()
            await write_stream.aclose()


@asynccontextmanager
async def _stdio_transport(config: StdioConfig, options: ClientOptions) -> AsyncIterator[TransportStreams]:
    command, args = config.launch_command()
    params = StdioServerParameters(command=command, args=args, env=config.merged_environment(), cwd=config.cwd)
    _logger.info("spawning stdio server: %s %s", command, " ".join(args))
    async with stdio_client(params) as (read_stream, write_stream):
        yield read_stream, write_stream


@asynccontextmanager
async def _stateful_http_transport(
    config: StatefulHTTPConfig, options: ClientOptions
) -> AsyncIterator[TransportStreams]:
    headers = _base_headers({MCP_SESSION_ID: config.session_id} if config.session_id else None)
    _logger.info("opening stateful HTTP transport to %s", config.url)
    async with streamablehttp_client(
        config.url,
        headers=headers,
        timeout=options.request_timeout,
        sse_read_timeout=options.sse_read_timeout,
        auth=APIKeyAuth.from_config(config.auth),
    ) as (read_stream, write_stream, _get_session_id):
        yield read_stream, write_stream


@asynccontextmanager
async def _stateless_http_transport(
    config: StatelessHTTPConfig, options: ClientOptions
) -> AsyncIterator[TransportStreams]:
    _logger.info("opening stateless HTTP transport to %s", config.url)
    async with stateless_http_client(
        config.url,
        timeout=options.request_timeout,
        auth=APIKeyAuth.from_config(config.auth),
    ) as streams:
        yield streams


def open_transport(config: Any, options: ClientOptions | None = None) -> AbstractAsyncContextManager[TransportStreams]:
    """Return the transport context manager for *config*.

    Raises:
        ConfigurationError: *config* is not a known variant or lacks a required
            field.  Nothing has been spawned or dialled at that point.
    """
    config = validate_connection_config(config)
    options = options or ClientOptions()

    if isinstance(config, StdioConfig):
        return _stdio_transport(config, options)
    if isinstance(config, StatefulHTTPConfig):
        return _stateful_http_transport(config, options)
    if isinstance(config, StatelessHTTPConfig):
        return _stateless_http_transport(config, options)
    raise ConfigurationError(f"Unsupported connection type {getattr(config, 'type', None)!r}")


__all__ = [
    "APIKeyAuth",
    "TransportFactory",
    "TransportStreams",
    "iter_sse_data",
    "open_transport",
    "stateless_http_client",
]
