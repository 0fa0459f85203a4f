# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Protocol client built on the reference SDK's :class:`ClientSession`.

:class:`MCPClient` owns at most one connection at a time.  It is an async
context manager holding a task group for its whole lifetime; each connection
runs in a dedicated task of that group so the transport and session context
managers are entered and exited by the same task, however many times the
caller connects and disconnects.

Lifecycle (see :mod:`mcpharness.state`)::

    disconnected --connect()--> connecting --handshake ok--> connected
         ^                          |                            |
         +-------disconnect()-------+----- failure ---> error <--+

Every request is recorded in :attr:`MCPClient.messages` before it is sent and
again when its response (or error) arrives.  Server pushes of
``notifications/resources/updated`` travel over a bounded memory stream to a
consumer task that updates :attr:`MCPClient.subscriptions`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
import logging
import time
from typing import Any, TypeVar

import anyio
import anyio.abc
from anyio import Lock
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.client.session import ClientSession
from mcp.shared.exceptions import McpError
from mcp.shared.session import RequestResponder
from pydantic import BaseModel, ValidationError

from ..capabilities import CapabilityFlag, ServerInfo
from ..config import ClientOptions, StatelessHTTPConfig, validate_connection_config
from ..exceptions import (
    AlreadyConnectedError,
    HarnessError,
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
    UnsupportedOperationError,
)
from ..messages import Direction, MessageLog
from ..state import ConnectionState, ConnectionStateMachine
from ..utils.coro import maybe_await_with_args
from ..utils.logger import get_logger
from .subscriptions import Subscription, SubscriptionRegistry
from .transports import TransportFactory, open_transport


SamplingHandler = Callable[[Any, types.CreateMessageRequestParams], Awaitable[types.CreateMessageResult | types.ErrorData] | types.CreateMessageResult | types.ErrorData]
ElicitationHandler = Callable[[Any, types.ElicitRequestParams], Awaitable[types.ElicitResult | types.ErrorData] | types.ElicitResult | types.ErrorData]
LoggingHandler = Callable[[types.LoggingMessageNotificationParams], Awaitable[None] | None]

T_RequestResult = TypeVar("T_RequestResult")

_logger = get_logger("mcpharness.client")
_server_logger = get_logger("mcpharness.server")

_FATAL_STREAM_ERRORS = (anyio.ClosedResourceError, anyio.BrokenResourceError, anyio.EndOfStream)


@dataclass(slots=True)
class ClientCapabilitiesConfig:
    """Optional capability handlers for the client."""

    sampling: SamplingHandler | None = None
    elicitation: ElicitationHandler | None = None
    logging: LoggingHandler | None = None
    initial_roots: Iterable[types.Root | dict[str, Any]] | None = None
    enable_roots: bool = False


@dataclass(frozen=True, slots=True)
class ToolExecutionResult:
    """Outcome of :meth:`MCPClient.execute_tool`; never raised, always returned."""

    tool: str
    success: bool
    content: list[types.ContentBlock] = field(default_factory=list)
    structured_content: dict[str, Any] | None = None
    error: str | None = None
    error_code: int | None = None
    duration: float = 0.0

    @classmethod
    def from_result(cls, tool: str, result: types.CallToolResult, duration: float) -> "ToolExecutionResult":
        error = None
        if result.isError:
            error = "\n".join(block.text for block in result.content if isinstance(block, types.TextContent))
            error = error or "Tool reported an error"
        return cls(
            tool=tool,
            success=not result.isError,
            content=list(result.content),
            structured_content=result.structuredContent,
            error=error,
            duration=duration,
        )

    @classmethod
    def failure(cls, tool: str, exc: Exception, duration: float) -> "ToolExecutionResult":
        if isinstance(exc, ProtocolError):
            return cls(tool=tool, success=False, error=exc.message, error_code=exc.code, duration=duration)
        return cls(tool=tool, success=False, error=str(exc) or type(exc).__name__, duration=duration)


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    state: ConnectionState
    error: str | None = None
    server_name: str | None = None
    server_version: str | None = None
    transport: str | None = None


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json", exclude_none=True)
    return value


def _describe(exc: BaseException) -> str:
    if isinstance(exc, BaseExceptionGroup):
        return "; ".join(_describe(inner) for inner in exc.exceptions)
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


def _unwrap(exc: BaseException) -> BaseException:
    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    return exc


def _is_fatal(exc: BaseException) -> bool:
    exc = _unwrap(exc)
    if isinstance(exc, McpError):
        return exc.error.code == types.CONNECTION_CLOSED
    return isinstance(exc, _FATAL_STREAM_ERRORS)


def as_harness_error(exc: BaseException) -> HarnessError:
    """Translate SDK, anyio and httpx failures into the harness taxonomy."""
    exc = _unwrap(exc)
    if isinstance(exc, HarnessError):
        return exc
    if isinstance(exc, McpError):
        if exc.error.code == types.CONNECTION_CLOSED:
            return TransportError(exc.error.message)
        return ProtocolError.from_error_data(exc.error)
    if isinstance(exc, ValidationError):
        return ProtocolError(types.PARSE_ERROR, f"Malformed server message: {exc}")
    if isinstance(exc, _FATAL_STREAM_ERRORS):
        return TransportError("Transport stream closed")
    return TransportError(_describe(exc))


class _EndOfStreamWatcher(anyio.abc.ObjectReceiveStream[Any]):
    """Proxy for the transport's read stream that reports when the server goes away."""

    def __init__(self, stream: anyio.abc.ObjectReceiveStream[Any], on_end: Callable[[], None]) -> None:
        self._stream = stream
        self._on_end = on_end

    async def receive(self) -> Any:
        try:
            return await self._stream.receive()
        except anyio.EndOfStream:
            self._on_end()
            raise

    async def aclose(self) -> None:
        await self._stream.aclose()


class MCPClient:
    """Lifecycle-aware client for exercising an MCP server.

    Use as ``async with MCPClient() as client:``; inside the block call
    :meth:`connect` and :meth:`disconnect` as often as needed.  Instances are
    independent of each other.

    Parameters:
        options: Timeouts and buffer sizes, see :class:`ClientOptions`.
        capabilities: Optional sampling, elicitation, logging and roots
            support advertised during the handshake.
        client_info: Identity sent in ``initialize``.
        transport_factory: Builds the transport for a config; defaults to
            :func:`~mcpharness.client.transports.open_transport`.
    """

    def __init__(
        self,
        *,
        options: ClientOptions | None = None,
        capabilities: ClientCapabilitiesConfig | None = None,
        client_info: types.Implementation | None = None,
        transport_factory: TransportFactory = open_transport,
    ) -> None:
        self.options = options or ClientOptions()
        self._client_info = client_info or types.Implementation(
            name=self.options.client_name, version=self.options.client_version
        )
        self._transport_factory = transport_factory

        self._config = capabilities or ClientCapabilitiesConfig()
        self._supports_roots = self._config.enable_roots or self._config.initial_roots is not None

        initial_roots = list(self._config.initial_roots or []) if self._supports_roots else []
        self._root_lock = Lock()
        self._roots_version = 0
        self._roots: list[types.Root] = [self._normalise_root(root) for root in initial_roots]

        self.messages = MessageLog(self.options.message_log_capacity)
        self.subscriptions = SubscriptionRegistry(
            send_subscribe=self._send_subscribe,
            send_unsubscribe=self._send_unsubscribe,
            read_resource=self.read_resource,
            buffer_size=self.options.update_buffer_size,
        )
        self._state = ConnectionStateMachine()

        self._task_group: anyio.abc.TaskGroup | None = None
        self._session: ClientSession | None = None
        self._connection_config: Any = None
        self._server_info: ServerInfo | None = None
        self._stop: anyio.Event | None = None
        self._closed: anyio.Event | None = None
        self._handshake_scope: anyio.CancelScope | None = None
        self._handshake_failure: Exception | None = None
        self._notifications: MemoryObjectSendStream[types.ServerNotification] | None = None

    # ---------------------------------------------------------------------
    # Async context manager
    # ---------------------------------------------------------------------

    async def __aenter__(self) -> "MCPClient":
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool | None:
        task_group = self._task_group
        if task_group is None:
            return None
        try:
            await self.disconnect()
            task_group.cancel_scope.cancel()
        finally:
            self._task_group = None
        if exc is not None and not isinstance(exc, anyio.get_cancelled_exc_class()):
            # the group would wrap the body's error in an exception group
            await task_group.__aexit__(None, None, None)
            return False
        return await task_group.__aexit__(exc_type, exc, tb)

    # ---------------------------------------------------------------------
    # State
    # ---------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state.state

    @property
    def state_machine(self) -> ConnectionStateMachine:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state.is_(ConnectionState.CONNECTED)

    @property
    def server_info(self) -> ServerInfo | None:
        return self._server_info

    @property
    def capabilities(self) -> frozenset[CapabilityFlag]:
        return self._server_info.capabilities if self._server_info else frozenset()

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            raise NotConnectedError("Client session not started; call connect() first.")
        return self._session

    @property
    def supports_roots(self) -> bool:
        """Whether the client advertises the roots capability."""
        return self._supports_roots

    def connection_info(self) -> ConnectionInfo:
        info = self._server_info
        return ConnectionInfo(
            state=self.state,
            error=self._state.error,
            server_name=info.name if info else None,
            server_version=info.version if info else None,
            transport=getattr(self._connection_config, "type", None),
        )

    # ---------------------------------------------------------------------
    # Connection lifecycle
    # ---------------------------------------------------------------------

    async def connect(self, config: Any) -> ServerInfo:
        """Open a transport for *config* and run the ``initialize`` handshake.

        Raises:
            AlreadyConnectedError: The client is not ``disconnected``.
            ConfigurationError: *config* is unusable; nothing was opened.
            TransportError: The transport failed or the connect timeout
                elapsed (:class:`RequestTimeoutError`).
            ProtocolError: The server rejected the handshake.
        """
        task_group = self._require_task_group()
        if not self._state.is_(ConnectionState.DISCONNECTED):
            raise AlreadyConnectedError(
                f"Client is {self.state.value}; call disconnect() before connecting again."
            )
        config = validate_connection_config(config)

        await self._teardown()
        self._state.transition(ConnectionState.CONNECTING)
        self._connection_config = config
        self._stop, self._closed = anyio.Event(), anyio.Event()
        _logger.info("connecting (%s)", config.type)
        self.messages.record(
            Direction.SENT,
            "initialize",
            {"protocolVersion": types.LATEST_PROTOCOL_VERSION, "clientInfo": _dump(self._client_info)},
        )

        timeout = self.options.connect_timeout
        try:
            with anyio.fail_after(timeout):
                result: types.InitializeResult = await task_group.start(
                    self._serve_connection, config, self._stop, self._closed
                )
        except TimeoutError as exc:
            await self._fail_connect(
                RequestTimeoutError(f"Timed out after {timeout}s connecting to the server", timeout=timeout), exc
            )
        except Exception as exc:
            await self._fail_connect(as_harness_error(exc), exc)
        except BaseException:
            # cancelled by the caller; start() has already reaped the task
            self._abandon_connect()
            raise

        if not self._state.is_(ConnectionState.CONNECTING):
            # disconnect() ran while the handshake was in flight
            await self._teardown()
            raise TransportError("Connection attempt was aborted by disconnect()")

        self._server_info = ServerInfo.from_initialize_result(result)
        self.messages.record(Direction.RECEIVED, "initialize", _dump(result))
        self._state.transition(ConnectionState.CONNECTED)
        _logger.info("connected to %s %s", self._server_info.name, self._server_info.version)
        return self._server_info

    async def disconnect(self) -> None:
        """Close the connection if any; safe to call any number of times."""
        was_active = self._stop is not None
        await self._teardown()
        self.subscriptions.clear()
        self._server_info = None
        self._connection_config = None
        if not self._state.is_(ConnectionState.DISCONNECTED):
            self._state.reset()
        if was_active:
            _logger.info("disconnected")

    async def _fail_connect(self, error: HarnessError, cause: BaseException) -> None:
        # start() only returns once the connection task has exited
        self._stop = self._closed = None
        self._connection_config = None
        self.messages.record(Direction.RECEIVED, "initialize", {"error": str(error)})
        if self._state.is_(ConnectionState.CONNECTING):
            self._state.transition(ConnectionState.ERROR, error=str(error))
        _logger.warning("connection failed: %s", error)
        raise error from cause

    def _abandon_connect(self) -> None:
        self._stop = self._closed = None
        self._connection_config = None
        self.messages.record(Direction.RECEIVED, "initialize", {"error": "connection attempt cancelled"})
        if not self._state.is_(ConnectionState.DISCONNECTED):
            self._state.reset()
        _logger.info("connection attempt cancelled")

    async def _teardown(self) -> None:
        stop, closed = self._stop, self._closed
        self._stop = self._closed = None
        if stop is None:
            return
        stop.set()
        if closed is not None:
            with anyio.CancelScope(shield=True):
                await closed.wait()

    async def _serve_connection(
        self,
        config: Any,
        stop: anyio.Event,
        closed: anyio.Event,
        *,
        task_status: anyio.abc.TaskStatus[types.InitializeResult] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        send, receive = anyio.create_memory_object_stream[types.ServerNotification](
            self.options.notification_buffer_size
        )
        started = False
        try:
            async with AsyncExitStack() as stack:
                read_stream, write_stream = await stack.enter_async_context(
                    self._transport_factory(config, self.options)
                )
                read_stream = _EndOfStreamWatcher(read_stream, self._transport_ended)
                session = await stack.enter_async_context(
                    ClientSession(
                        read_stream,
                        write_stream,
                        sampling_callback=self._build_sampling_handler(),
                        elicitation_callback=self._build_elicitation_handler(),
                        list_roots_callback=self._build_roots_handler(),
                        logging_callback=self._build_logging_handler(),
                        message_handler=self._handle_incoming,
                        client_info=self._client_info,
                    )
                )
                self._notifications = send
                self._handshake_failure = None
                with anyio.CancelScope() as handshake_scope:
                    self._handshake_scope = handshake_scope
                    result = await session.initialize()
                self._handshake_scope = None
                if handshake_scope.cancelled_caught:
                    failure = self._handshake_failure
                    raise TransportError(f"Transport failed during handshake: {failure}") from failure

                async with anyio.create_task_group() as pump:
                    pump.start_soon(self._pump_notifications, receive)
                    self._session = session
                    started = True
                    task_status.started(result)
                    await stop.wait()
                    pump.cancel_scope.cancel()
        except Exception as exc:
            if not started:
                raise
            _logger.warning("connection closed with error: %s", _describe(exc))
            self._mark_transport_failed(exc)
        finally:
            self._session = None
            self._notifications = None
            self._handshake_scope = None
            send.close()
            receive.close()
            closed.set()

    def _mark_transport_failed(self, exc: BaseException) -> None:
        if self._state.is_(ConnectionState.CONNECTED):
            self._state.transition(ConnectionState.ERROR, error=str(as_harness_error(exc)))

    def _transport_ended(self) -> None:
        error = TransportError("Server closed the connection")
        if self._handshake_scope is not None:
            self._handshake_failure = error
            self._handshake_scope.cancel()
        elif self._state.is_(ConnectionState.CONNECTED):
            _logger.warning("server closed the connection")
            self._mark_transport_failed(error)

    # ---------------------------------------------------------------------
    # Incoming traffic
    # ---------------------------------------------------------------------

    async def _handle_incoming(
        self,
        message: RequestResponder[types.ServerRequest, types.ClientResult] | types.ServerNotification | Exception,
    ) -> None:
        if isinstance(message, Exception):
            _logger.warning("transport reported an error: %s", _describe(message))
            if self._handshake_scope is not None:
                self._handshake_failure = message
                self._handshake_scope.cancel()
            return
        if isinstance(message, RequestResponder):
            return

        notification = message.root
        self.messages.record(Direction.RECEIVED, notification.method, _dump(notification.params))
        if isinstance(notification, types.ResourceUpdatedNotification) and self._notifications is not None:
            try:
                self._notifications.send_nowait(message)
            except anyio.WouldBlock:
                _logger.warning("notification buffer full; dropping update for %s", notification.params.uri)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                _logger.debug("connection closing; dropping update for %s", notification.params.uri)

    async def _pump_notifications(self, receive: MemoryObjectReceiveStream[types.ServerNotification]) -> None:
        async with receive:
            async for notification in receive:
                if isinstance(notification.root, types.ResourceUpdatedNotification):
                    await self.subscriptions.handle_resource_updated(notification.root.params.uri)

    # ---------------------------------------------------------------------
    # Requests
    # ---------------------------------------------------------------------

    async def send_request(
        self,
        request: types.ClientRequest,
        result_type: type[T_RequestResult],
        *,
        timeout: float | None = None,
    ) -> T_RequestResult:
        """Send *request*, record both directions and return the typed result."""
        session = self._require_session()
        method = request.root.method
        self.messages.record(Direction.SENT, method, _dump(getattr(request.root, "params", None)))

        limit = self.options.request_timeout if timeout is None else timeout
        try:
            with anyio.fail_after(limit):
                result = await session.send_request(request, result_type)
        except TimeoutError as exc:
            error: HarnessError = RequestTimeoutError(f"'{method}' timed out after {limit}s", timeout=limit)
            self.messages.record(Direction.RECEIVED, method, {"error": str(error)})
            raise error from exc
        except Exception as exc:
            error = as_harness_error(exc)
            payload = error.to_dict() if isinstance(error, ProtocolError) else str(error)
            self.messages.record(Direction.RECEIVED, method, {"error": payload})
            if _is_fatal(exc):
                self._mark_transport_failed(exc)
            raise error from exc

        self.messages.record(Direction.RECEIVED, method, _dump(result))
        return result

    async def ping(self, *, timeout: float | None = None) -> types.EmptyResult:
        return await self.send_request(types.ClientRequest(types.PingRequest()), types.EmptyResult, timeout=timeout)

    async def list_tools(self, *, timeout: float | None = None) -> list[types.Tool]:
        tools: list[types.Tool] = []
        async for page in self._paginate(types.ListToolsRequest, types.ListToolsResult, timeout):
            tools.extend(page.tools)
        return tools

    async def execute_tool(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> ToolExecutionResult:
        """Call tool *name*; failures come back as ``success=False``.

        Arguments are forwarded as-is.  Checking them against the tool's input
        schema is the server's job.
        """
        started = time.perf_counter()
        try:
            if arguments is not None and not isinstance(arguments, Mapping):
                raise TypeError(f"Tool arguments must be a mapping, got {type(arguments).__name__}")
            params = types.CallToolRequestParams(name=name, arguments=dict(arguments) if arguments else None)
            result = await self.send_request(
                types.ClientRequest(types.CallToolRequest(params=params)), types.CallToolResult, timeout=timeout
            )
        except Exception as exc:
            _logger.debug("tool %r failed: %s", name, exc)
            return ToolExecutionResult.failure(str(name), exc, time.perf_counter() - started)
        return ToolExecutionResult.from_result(name, result, time.perf_counter() - started)

    async def list_resources(self, *, timeout: float | None = None) -> list[types.Resource]:
        resources: list[types.Resource] = []
        async for page in self._paginate(types.ListResourcesRequest, types.ListResourcesResult, timeout):
            resources.extend(page.resources)
        return resources

    async def list_resource_templates(self, *, timeout: float | None = None) -> list[types.ResourceTemplate]:
        templates: list[types.ResourceTemplate] = []
        async for page in self._paginate(
            types.ListResourceTemplatesRequest, types.ListResourceTemplatesResult, timeout
        ):
            templates.extend(page.resourceTemplates)
        return templates

    async def read_resource(self, uri: str, *, timeout: float | None = None) -> types.ReadResourceResult:
        request = types.ReadResourceRequest(params=types.ReadResourceRequestParams(uri=uri))
        return await self.send_request(types.ClientRequest(request), types.ReadResourceResult, timeout=timeout)

    async def subscribe(self, uri: str) -> Subscription:
        """Subscribe to push updates for *uri* (a repeat call is a no-op)."""
        self._require_session()
        if isinstance(self._connection_config, StatelessHTTPConfig):
            raise UnsupportedOperationError(
                "Subscriptions need a persistent channel; the stateless HTTP transport cannot deliver them"
            )
        return await self.subscriptions.subscribe(uri)

    async def unsubscribe(self, uri: str) -> bool:
        self._require_session()
        return await self.subscriptions.unsubscribe(uri)

    async def unsubscribe_all(self) -> list[str]:
        self._require_session()
        return await self.subscriptions.unsubscribe_all()

    async def _send_subscribe(self, uri: str) -> types.EmptyResult:
        request = types.SubscribeRequest(params=types.SubscribeRequestParams(uri=uri))
        return await self.send_request(types.ClientRequest(request), types.EmptyResult)

    async def _send_unsubscribe(self, uri: str) -> types.EmptyResult:
        request = types.UnsubscribeRequest(params=types.UnsubscribeRequestParams(uri=uri))
        return await self.send_request(types.ClientRequest(request), types.EmptyResult)

    async def list_prompts(self, *, timeout: float | None = None) -> list[types.Prompt]:
        prompts: list[types.Prompt] = []
        async for page in self._paginate(types.ListPromptsRequest, types.ListPromptsResult, timeout):
            prompts.extend(page.prompts)
        return prompts

    async def get_prompt(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> types.GetPromptResult:
        values = {key: str(value) for key, value in (arguments or {}).items()}
        params = types.GetPromptRequestParams(name=name, arguments=values or None)
        return await self.send_request(
            types.ClientRequest(types.GetPromptRequest(params=params)), types.GetPromptResult, timeout=timeout
        )

    async def complete(
        self,
        ref: types.PromptReference | BaseModel | Mapping[str, Any],
        argument_name: str,
        argument_value: str,
        *,
        context: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> types.Completion:
        """Ask for completions of a prompt or resource-template argument.

        *ref* is a reference model or a mapping such as
        ``{"type": "ref/prompt", "name": "greet"}``.
        """
        payload: dict[str, Any] = {
            "ref": _dump(ref) if isinstance(ref, BaseModel) else dict(ref),
            "argument": {"name": argument_name, "value": argument_value},
        }
        if context:
            payload["context"] = {"arguments": dict(context)}
        params = types.CompleteRequestParams.model_validate(payload)
        result = await self.send_request(
            types.ClientRequest(types.CompleteRequest(params=params)), types.CompleteResult, timeout=timeout
        )
        return result.completion

    async def set_logging_level(self, level: types.LoggingLevel, *, timeout: float | None = None) -> types.EmptyResult:
        request = types.SetLevelRequest(params=types.SetLevelRequestParams(level=level))
        return await self.send_request(types.ClientRequest(request), types.EmptyResult, timeout=timeout)

    async def cancel_request(self, request_id: types.RequestId, *, reason: str | None = None) -> None:
        """Emit ``notifications/cancelled`` for an in-flight request."""
        session = self._require_session()
        params = types.CancelledNotificationParams(requestId=request_id, reason=reason)
        self.messages.record(Direction.SENT, "notifications/cancelled", _dump(params))
        await session.send_notification(types.ClientNotification(types.CancelledNotification(params=params)))

    async def _paginate(
        self, request_type: type[BaseModel], result_type: type[Any], timeout: float | None
    ) -> AsyncIterator[Any]:
        cursor: str | None = None
        seen: set[str] = set()
        while True:
            request = request_type(params=types.PaginatedRequestParams(cursor=cursor)) if cursor else request_type()
            page = await self.send_request(types.ClientRequest(request), result_type, timeout=timeout)
            yield page
            cursor = page.nextCursor
            if not cursor or cursor in seen:
                return
            seen.add(cursor)

    # ---------------------------------------------------------------------
    # Roots (client-side capability)
    # ---------------------------------------------------------------------

    async def list_roots(self) -> list[types.Root]:
        """Return the roots this client advertises to the connected server."""
        self._require_session()
        async with self._root_lock:
            return [root.model_copy(deep=True) for root in self._roots]

    async def update_roots(self, roots: Iterable[types.Root | dict[str, Any]], *, notify: bool = True) -> None:
        """Replace the advertised roots and optionally send ``roots/list_changed``."""
        if not self._supports_roots:
            raise UnsupportedOperationError("Roots capability is not enabled for this client")

        normalised = [self._normalise_root(root) for root in roots]
        async with self._root_lock:
            self._roots_version += 1
            self._roots = normalised

        if notify and self._session is not None:
            self.messages.record(Direction.SENT, "notifications/roots/list_changed")
            await self._session.send_roots_list_changed()

    def roots_version(self) -> int:
        return self._roots_version

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_task_group(self) -> anyio.abc.TaskGroup:
        if self._task_group is None:
            raise RuntimeError("MCPClient is not running; use 'async with MCPClient() as client'.")
        return self._task_group

    def _require_session(self) -> ClientSession:
        if self._session is None or not self._state.is_(ConnectionState.CONNECTED):
            raise NotConnectedError(f"Not connected (state: {self.state.value})")
        return self._session

    def _build_sampling_handler(self) -> Callable[[Any, types.CreateMessageRequestParams], Awaitable[Any]] | None:
        handler = self._config.sampling
        if handler is None:
            return None

        async def wrapper(context: Any, params: types.CreateMessageRequestParams) -> Any:
            self.messages.record(Direction.RECEIVED, "sampling/createMessage", _dump(params))
            result = await maybe_await_with_args(handler, context, params)
            self.messages.record(Direction.SENT, "sampling/createMessage", _dump(result))
            return result

        return wrapper

    def _build_elicitation_handler(self) -> Callable[[Any, types.ElicitRequestParams], Awaitable[Any]] | None:
        handler = self._config.elicitation
        if handler is None:
            return None

        async def wrapper(context: Any, params: types.ElicitRequestParams) -> Any:
            self.messages.record(Direction.RECEIVED, "elicitation/create", _dump(params))
            result = await maybe_await_with_args(handler, context, params)
            self.messages.record(Direction.SENT, "elicitation/create", _dump(result))
            return result

        return wrapper

    def _build_logging_handler(self) -> Callable[[types.LoggingMessageNotificationParams], Awaitable[None]]:
        handler = self._config.logging

        async def wrapper(params: types.LoggingMessageNotificationParams) -> None:
            _server_logger.log(
                _LOG_LEVELS.get(params.level, logging.INFO), "%s", params.data, extra={"server_logger": params.logger}
            )
            if handler is not None:
                await maybe_await_with_args(handler, params)

        return wrapper

    def _build_roots_handler(self) -> Callable[[Any], Awaitable[types.ClientResult]] | None:
        if not self._supports_roots:
            return None

        async def list_roots_handler(_: Any) -> types.ListRootsResult:
            self.messages.record(Direction.RECEIVED, "roots/list")
            async with self._root_lock:
                roots_snapshot = [root.model_copy(deep=True) for root in self._roots]
            result = types.ListRootsResult(roots=roots_snapshot)
            self.messages.record(Direction.SENT, "roots/list", _dump(result))
            return result

        return list_roots_handler

    @staticmethod
    def _normalise_root(value: types.Root | dict[str, Any]) -> types.Root:
        if isinstance(value, types.Root):
            return value
        return types.Root.model_validate(value)


# MCP syslog-style levels mapped onto the stdlib's numeric levels.
_LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


__all__ = ["ClientCapabilitiesConfig", "ConnectionInfo", "MCPClient", "ToolExecutionResult", "as_harness_error"]
