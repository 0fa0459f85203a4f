# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Find MCP servers listening on local ports.

:func:`scan` probes every candidate port concurrently, one probe per enabled
transport kind, each under its own deadline so that a port which accepts the
connection but never answers cannot stall the scan.

HTTP probe
    ``GET /health`` with a 2xx answer confirms the server is alive.  The probe
    then tries an ``initialize`` POST against ``/mcp`` to learn the server's
    name, version and capabilities.  That enrichment step is best effort: when
    it fails the server is still reported, with the identity fields unset (or
    taken from a ``server`` object in the health payload, if present).

WebSocket probe
    ``GET /`` carrying upgrade headers.  Only ``101 Switching Protocols``
    counts as a live server.

Probe failures of any kind are absence, never errors.
"""

from __future__ import annotations

import base64
from collections.abc import Awaitable, Callable, Iterable, Mapping
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
import os
from typing import Any, Final

import anyio
import httpx
from mcp import types
from mcp.client.streamable_http import MCP_PROTOCOL_VERSION, MCP_SESSION_ID
from mcp.shared._httpx_utils import McpHttpClientFactory, create_mcp_http_client
import orjson

from .capabilities import CapabilityFlag, flags_from_capabilities
from .client.transports import iter_sse_data
from .exceptions import ConfigurationError, ProtocolError
from .utils.logger import get_logger


DEFAULT_PORTS: Final[tuple[int, ...]] = (3000, 3001, 3002, 3003, 3004, 3005, 5000, 5173, 8000, 8080, 8081, 8888)
DEFAULT_TIMEOUT: Final[float] = 1.0
HEALTH_PATH: Final[str] = "/health"
MCP_PATH: Final[str] = "/mcp"

_logger = get_logger("mcpharness.discovery")


class TransportKind(str, Enum):
    HTTP = "http"
    WEBSOCKET = "websocket"


@dataclass(frozen=True, slots=True)
class DiscoveredServer:
    """A live server found by one scan."""

    transport: TransportKind
    host: str
    port: int
    url: str
    name: str | None = None
    version: str | None = None
    capabilities: frozenset[CapabilityFlag] | None = None

    @property
    def enriched(self) -> bool:
        return self.name is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "transport": self.transport.value,
            "host": self.host,
            "port": self.port,
            "url": self.url,
            "name": self.name,
            "version": self.version,
            "capabilities": sorted(flag.value for flag in self.capabilities) if self.capabilities is not None else None,
        }


@dataclass(frozen=True, slots=True)
class ScanResult:
    servers: list[DiscoveredServer] = field(default_factory=list)
    scanned_ports: list[int] = field(default_factory=list)

    def ports_with_servers(self) -> list[int]:
        return sorted({server.port for server in self.servers})

    def to_dict(self) -> dict[str, Any]:
        return {"servers": [server.to_dict() for server in self.servers], "scannedPorts": list(self.scanned_ports)}


@dataclass(slots=True)
class _Identity:
    name: str | None = None
    version: str | None = None
    capabilities: frozenset[CapabilityFlag] | None = None


def _normalise_ports(ports: Iterable[int] | None) -> list[int]:
    if ports is None:
        return list(DEFAULT_PORTS)
    selected: list[int] = []
    for port in ports:
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ConfigurationError(f"Invalid port {port!r}")
        if port not in selected:
            selected.append(port)
    return selected


def _decode_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "").lower()
    if content_type.startswith("text/event-stream"):
        for data in iter_sse_data(response.text):
            message = orjson.loads(data)
            if isinstance(message, Mapping) and ("result" in message or "error" in message):
                return message
        raise ValueError("event stream carried no JSON-RPC response")
    return orjson.loads(response.content)


def _identity_from_health(response: httpx.Response) -> _Identity:
    try:
        payload = orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return _Identity()
    server = payload.get("server") if isinstance(payload, Mapping) else None
    if not isinstance(server, Mapping):
        return _Identity()
    name, version = server.get("name"), server.get("version")
    return _Identity(
        name=str(name) if name is not None else None,
        version=str(version) if version is not None else None,
    )


async def _initialize(client: httpx.AsyncClient, url: str) -> _Identity:
    request = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "initialize",
        "params": {
            "protocolVersion": types.LATEST_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "mcpharness-discovery", "version": "0.1.0"},
        },
    }
    response = await client.post(
        url,
        content=orjson.dumps(request),
        headers={
            "Accept": "application/json, text/event-stream",
            "Content-Type": "application/json",
            MCP_PROTOCOL_VERSION: types.LATEST_PROTOCOL_VERSION,
        },
    )
    session_id = response.headers.get(MCP_SESSION_ID)
    try:
        response.raise_for_status()
        message = _decode_body(response)
        if "error" in message:
            raise ProtocolError.from_error_data(types.ErrorData.model_validate(message["error"]))
        result = types.InitializeResult.model_validate(message["result"])
    finally:
        if session_id:
            await _release_session(client, url, session_id)

    return _Identity(
        name=result.serverInfo.name,
        version=result.serverInfo.version,
        capabilities=flags_from_capabilities(result.capabilities),
    )


async def _release_session(client: httpx.AsyncClient, url: str, session_id: str) -> None:
    try:
        await client.delete(url, headers={MCP_SESSION_ID: session_id})
    except httpx.HTTPError as exc:
        _logger.debug("could not release probe session on %s: %s", url, exc)


async def probe_http(
    client: httpx.AsyncClient, host: str, port: int, *, timeout: float = DEFAULT_TIMEOUT
) -> DiscoveredServer | None:
    """Probe *port* for an HTTP server; ``None`` means nothing answered.

    Liveness and enrichment each get *timeout* seconds, so a slow
    ``initialize`` never hides a server whose health check passed.
    """
    base = f"http://{host}:{port}"
    response: httpx.Response | None = None
    with anyio.move_on_after(timeout):
        response = await client.get(base + HEALTH_PATH)
    if response is None:
        _logger.debug("health check on %s timed out", base)
        return None
    if not response.is_success:
        _logger.debug("health check on %s answered %d", base, response.status_code)
        return None

    url = base + MCP_PATH
    identity = _identity_from_health(response)
    with anyio.move_on_after(timeout) as scope:
        try:
            identity = await _initialize(client, url)
        except Exception as exc:
            _logger.debug("enrichment on %s failed: %s", url, exc)
    if scope.cancelled_caught:
        _logger.debug("enrichment on %s timed out", url)

    return DiscoveredServer(
        transport=TransportKind.HTTP,
        host=host,
        port=port,
        url=url,
        name=identity.name,
        version=identity.version,
        capabilities=identity.capabilities,
    )


async def probe_websocket(
    client: httpx.AsyncClient, host: str, port: int, *, timeout: float = DEFAULT_TIMEOUT
) -> DiscoveredServer | None:
    """Attempt a WebSocket upgrade on *port*; only ``101`` counts as live."""
    headers = {
        "Connection": "Upgrade",
        "Upgrade": "websocket",
        "Sec-WebSocket-Version": "13",
        "Sec-WebSocket-Key": base64.b64encode(os.urandom(16)).decode("ascii"),
    }
    status: int | None = None
    with anyio.move_on_after(timeout):
        async with client.stream("GET", f"http://{host}:{port}/", headers=headers) as response:
            status = response.status_code
    if status != httpx.codes.SWITCHING_PROTOCOLS:
        _logger.debug("no websocket upgrade on %s:%d (status %s)", host, port, status)
        return None
    return DiscoveredServer(transport=TransportKind.WEBSOCKET, host=host, port=port, url=f"ws://{host}:{port}")


Probe = Callable[..., Awaitable[DiscoveredServer | None]]


async def scan(
    ports: Iterable[int] | None = None,
    *,
    host: str = "localhost",
    http: bool = True,
    websocket: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
    max_concurrency: int | None = None,
    headers: Mapping[str, str] | None = None,
    http_client_factory: McpHttpClientFactory | Callable[..., httpx.AsyncClient] = create_mcp_http_client,
) -> ScanResult:
    """Probe *ports* on *host* and return the servers that answered.

    Args:
        ports: Candidate ports; defaults to :data:`DEFAULT_PORTS`.  Duplicates
            are scanned once.
        host: Host to probe.
        http: Run the HTTP probe.
        websocket: Run the WebSocket upgrade probe.
        timeout: Deadline for each probe step, in seconds.
        max_concurrency: Cap on simultaneous probes; unbounded when ``None``.
        headers: Extra headers sent with every probe (for example an API key).
        http_client_factory: Builds the shared ``httpx.AsyncClient``.

    Returns:
        ScanResult: Live servers sorted by port, then transport kind, and
        the ports that were scanned.

    Raises:
        ConfigurationError: A port is outside ``1..65535`` or the options
            are unusable.  Individual probe failures never raise.

    Note:
        *timeout* bounds each step, not each port.  :func:`probe_http` runs
        a liveness request and then an enrichment request, each with the full
        *timeout*, so one live HTTP server can take up to twice *timeout*.
        With unbounded concurrency a scan of dead ports therefore finishes in
        about one *timeout* and a scan that finds HTTP servers in about two,
        whatever the number of ports.  A *max_concurrency* cap multiplies
        that by the number of batches.
    """
    selected = _normalise_ports(ports)
    if timeout <= 0:
        raise ConfigurationError("Probe timeout must be positive")
    if max_concurrency is not None and max_concurrency < 1:
        raise ConfigurationError("max_concurrency must be at least 1")

    probes: list[Probe] = []
    if http:
        probes.append(probe_http)
    if websocket:
        probes.append(probe_websocket)

    found: list[DiscoveredServer] = []
    limiter = anyio.CapacityLimiter(max_concurrency) if max_concurrency is not None else None
    _logger.info("scanning %s on %d port(s)", host, len(selected))

    async def run_probe(client: httpx.AsyncClient, probe: Probe, port: int) -> None:
        async with AsyncExitStack() as stack:
            if limiter is not None:
                await stack.enter_async_context(limiter)
            try:
                server = await probe(client, host, port, timeout=timeout)
            except Exception as exc:
                _logger.debug("%s on %s:%d failed: %s", probe.__name__, host, port, exc)
                return
        if server is not None:
            _logger.debug("found %s server on %s:%d", server.transport.value, host, port)
            found.append(server)

    if probes and selected:
        async with http_client_factory(headers=dict(headers or {}), timeout=httpx.Timeout(timeout)) as client:
            async with anyio.create_task_group() as tg:
                for port in selected:
                    for probe in probes:
                        tg.start_soon(run_probe, client, probe, port)

    found.sort(key=lambda server: (server.port, server.transport.value))
    _logger.info("scan finished: %d server(s) found", len(found))
    return ScanResult(servers=found, scanned_ports=selected)


__all__ = [
    "DEFAULT_PORTS",
    "DiscoveredServer",
    "ScanResult",
    "TransportKind",
    "probe_http",
    "probe_websocket",
    "scan",
]
