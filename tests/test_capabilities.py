# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

from __future__ import annotations

from mcp import types

from mcpharness.capabilities import CapabilityFlag, ServerInfo, flags_from_capabilities


def test_flags_from_sdk_capabilities() -> None:
    capabilities = types.ServerCapabilities(
        tools=types.ToolsCapability(),
        resources=types.ResourcesCapability(subscribe=True),
        prompts=types.PromptsCapability(),
        logging=types.LoggingCapability(),
    )

    assert flags_from_capabilities(capabilities) == frozenset(
        {
            CapabilityFlag.TOOLS,
            CapabilityFlag.RESOURCES,
            CapabilityFlag.SUBSCRIPTIONS,
            CapabilityFlag.PROMPTS,
            CapabilityFlag.LOGGING,
        }
    )


def test_subscriptions_require_subscribe_flag() -> None:
    flags = flags_from_capabilities({"resources": {"subscribe": False, "listChanged": True}})
    assert flags == frozenset({CapabilityFlag.RESOURCES})


def test_raw_and_experimental_keys_are_recognised() -> None:
    flags = flags_from_capabilities(
        {"completions": {}, "experimental": {"sampling": {}, "elicitation": {}}, "roots": {}, "tools": None}
    )
    assert flags == frozenset(
        {CapabilityFlag.COMPLETIONS, CapabilityFlag.SAMPLING, CapabilityFlag.ELICITATION, CapabilityFlag.ROOTS}
    )
    assert flags_from_capabilities(None) == frozenset()


def test_server_info_from_initialize_result() -> None:
    result = types.InitializeResult(
        protocolVersion="2025-06-18",
        capabilities=types.ServerCapabilities(tools=types.ToolsCapability()),
        serverInfo=types.Implementation(name="demo", version="1.0.0"),
        instructions="Use the tools.",
    )

    info = ServerInfo.from_initialize_result(result)

    assert (info.name, info.version, info.protocol_version) == ("demo", "1.0.0", "2025-06-18")
    assert info.supports("tools")
    assert not info.supports(CapabilityFlag.PROMPTS)
    payload = info.to_dict()
    assert payload["instructions"] == "Use the tools."
    assert payload["capabilities"]["tools"] is True
    assert payload["capabilities"]["logging"] is False
    assert len(payload["capabilities"]) == 9
