# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Stdio transport against a real child process."""

from __future__ import annotations

from pathlib import Path

import anyio
import pytest

from mcpharness import CapabilityFlag, ClientOptions, ConnectionState, MCPClient, StdioConfig, TransportError
from mcpharness.client import open_connection

from tests.helpers import wait_for


SERVER_SCRIPT = str(Path(__file__).parent / "fixtures" / "stdio_server.py")


@pytest.mark.anyio
async def test_stdio_round_trip_with_environment_overrides() -> None:
    config = StdioConfig.for_server(SERVER_SCRIPT, env={"MCPHARNESS_FIXTURE_TOKEN": "abc123"})
    options = ClientOptions(connect_timeout=20.0)

    async with open_connection(config, options=options) as client:
        assert client.server_info is not None
        assert client.server_info.name == "stdio-fixture"
        assert client.server_info.supports(CapabilityFlag.TOOLS)

        tools = {tool.name for tool in await client.list_tools()}
        assert {"echo", "read_env"} <= tools

        echoed = await client.execute_tool("echo", {"text": "over the pipe"})
        assert echoed.success
        assert echoed.content[0].text == "over the pipe"

        env = await client.execute_tool("read_env", {"name": "MCPHARNESS_FIXTURE_TOKEN"})
        assert env.content[0].text == "abc123"

        resource = await client.read_resource("file:///greeting")
        assert resource.contents[0].text == "hello from stdio"

    assert client.state is ConnectionState.DISCONNECTED


@pytest.mark.anyio
async def test_server_path_config_launches_with_current_interpreter() -> None:
    config = StdioConfig(serverPath=SERVER_SCRIPT)
    async with MCPClient(options=ClientOptions(connect_timeout=20.0)) as client:
        info = await client.connect(config)
        assert info.name == "stdio-fixture"
        await client.disconnect()


@pytest.mark.anyio
async def test_nonexistent_executable_fails_cleanly() -> None:
    config = StdioConfig(command="/nonexistent/mcp-server-binary", args=["--stdio"])
    async with MCPClient(options=ClientOptions(connect_timeout=20.0)) as client:
        with anyio.fail_after(10):
            with pytest.raises(TransportError):
                await client.connect(config)

        assert client.state in {ConnectionState.ERROR, ConnectionState.DISCONNECTED}
        assert client.state is not ConnectionState.CONNECTING
        assert client.connection_info().error

        # a failed attempt leaves the client reusable
        await client.disconnect()
        info = await client.connect(StdioConfig.for_server(SERVER_SCRIPT))
        assert info.name == "stdio-fixture"


@pytest.mark.anyio
async def test_open_connection_failure_raises_plain_transport_error() -> None:
    config = StdioConfig(command="/nonexistent/mcp-server-binary")
    with anyio.fail_after(10):
        with pytest.raises(TransportError) as excinfo:
            async with open_connection(config, options=ClientOptions(connect_timeout=20.0)):
                pass

    assert isinstance(excinfo.value, TransportError)
    assert not isinstance(excinfo.value, BaseExceptionGroup)


@pytest.mark.anyio
async def test_child_exit_moves_client_to_error() -> None:
    config = StdioConfig.for_server(SERVER_SCRIPT)
    async with MCPClient(options=ClientOptions(connect_timeout=20.0)) as client:
        await client.connect(config)
        result = await client.execute_tool("exit_soon")
        assert result.content[0].text == "bye"

        await wait_for(lambda: client.state is ConnectionState.ERROR, timeout=10)
        assert "closed" in client.connection_info().error

        await client.disconnect()
        assert client.state is ConnectionState.DISCONNECTED
