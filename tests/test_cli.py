# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

from __future__ import annotations

import json
from typing import Any

import pytest

from mcpharness import cli
from mcpharness.capabilities import CapabilityFlag
from mcpharness.client import MCPClient
from mcpharness.discovery import DiscoveredServer, ScanResult, TransportKind
from mcpharness.exceptions import ConfigurationError

from tests.helpers import build_demo_server, memory_transport


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "setup_logger", lambda **kwargs: None)


def _fake_scan(result: ScanResult, calls: list[dict[str, Any]]):
    async def scan(ports: Any, **kwargs: Any) -> ScanResult:
        calls.append({"ports": ports, **kwargs})
        return result

    return scan


def test_parser_scan_defaults() -> None:
    args = cli.build_parser().parse_args(["scan"])

    assert args.host == "localhost"
    assert args.ports is None
    assert args.http and args.websocket
    assert args.timeout == 1.0
    assert args.handler is cli.run_scan


def test_parser_inspect_requires_a_target() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["inspect"])


def test_parser_inspect_command_keeps_child_arguments() -> None:
    args = cli.build_parser().parse_args(["inspect", "--command", "node", "server.js", "--stdio"])
    assert args.command == ["node", "server.js", "--stdio"]


def test_scan_prints_found_servers(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    calls: list[dict[str, Any]] = []
    result = ScanResult(
        servers=[
            DiscoveredServer(
                transport=TransportKind.HTTP,
                host="localhost",
                port=3000,
                url="http://localhost:3000/mcp",
                name="weather",
                version="2.0.1",
                capabilities=frozenset({CapabilityFlag.TOOLS}),
            ),
            DiscoveredServer(transport=TransportKind.WEBSOCKET, host="localhost", port=8081, url="ws://localhost:8081"),
        ],
        scanned_ports=[3000, 8081],
    )
    monkeypatch.setattr(cli, "scan", _fake_scan(result, calls))

    exit_code = cli.main(["scan", "--ports", "3000", "8081", "--no-websocket", "--timeout", "0.5"])

    assert exit_code == 0
    assert calls == [
        {
            "ports": [3000, 8081],
            "host": "localhost",
            "http": True,
            "websocket": False,
            "timeout": 0.5,
            "max_concurrency": None,
        }
    ]
    out = capsys.readouterr().out
    assert "Scanned 2 port(s) on localhost" in out
    assert "weather 2.0.1" in out
    assert "(unidentified)" in out


def test_scan_json_output(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli, "scan", _fake_scan(ScanResult(scanned_ports=[3000]), []))

    assert cli.main(["--json", "scan", "--ports", "3000"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"servers": [], "scannedPorts": [3000]}


def test_harness_errors_exit_with_status_one(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    async def failing_scan(ports: Any, **kwargs: Any) -> ScanResult:
        raise ConfigurationError("Invalid port 0")

    monkeypatch.setattr(cli, "scan", failing_scan)

    assert cli.main(["scan"]) == 1
    assert "error: Invalid port 0" in capsys.readouterr().err


def test_inspect_lists_server_surface(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    server, _ = build_demo_server()
    monkeypatch.setattr(
        cli,
        "MCPClient",
        lambda options: MCPClient(options=options, transport_factory=memory_transport(server)),
    )

    assert cli.main(["--json", "inspect", "--url", "http://testserver/mcp"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["server"]["name"] == "demo-server"
    assert payload["server"]["capabilities"]["tools"] is True
    assert payload["server"]["capabilities"]["sampling"] is False
    assert "echo" in payload["tools"]
    assert payload["resources"] == ["file:///logs"]
    assert payload["prompts"] == ["greet"]


def test_inspect_rejects_invalid_url(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["inspect", "--url", "not-a-url"]) == 1
    assert "error:" in capsys.readouterr().err
