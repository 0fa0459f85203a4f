# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Capability flags reported by a server during the ``initialize`` handshake.

MCP advertises capabilities as an object whose keys name the supported
features (``tools``, ``resources``, ``prompts``, ``logging``, ``completions``
and so on).  Resource subscriptions hang off ``resources.subscribe``.  Keys the
schema does not know about are preserved by the SDK models (and may also be
nested under ``experimental``), so servers that announce ``roots``,
``sampling`` or ``elicitation`` support are recognised as well.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mcp import types


class CapabilityFlag(str, Enum):
    TOOLS = "tools"
    RESOURCES = "resources"
    PROMPTS = "prompts"
    ROOTS = "roots"
    ELICITATION = "elicitation"
    COMPLETIONS = "completions"
    SAMPLING = "sampling"
    SUBSCRIPTIONS = "subscriptions"
    LOGGING = "logging"


def flags_from_capabilities(capabilities: types.ServerCapabilities | Mapping[str, Any] | None) -> frozenset[CapabilityFlag]:
    """Map a server capability object (model or raw JSON) onto the nine flags."""
    if capabilities is None:
        return frozenset()
    if isinstance(capabilities, types.ServerCapabilities):
        raw: Mapping[str, Any] = capabilities.model_dump(exclude_none=True, by_alias=True)
    else:
        raw = {key: value for key, value in capabilities.items() if value is not None}

    experimental = raw.get("experimental")
    advertised = set(raw)
    if isinstance(experimental, Mapping):
        advertised.update(experimental)

    flags = {flag for flag in CapabilityFlag if flag.value in advertised}

    resources = raw.get("resources")
    if isinstance(resources, Mapping) and resources.get("subscribe"):
        flags.add(CapabilityFlag.SUBSCRIPTIONS)

    return frozenset(flags)


@dataclass(frozen=True, slots=True)
class ServerInfo:
    """Identity and capabilities captured from one successful handshake."""

    name: str
    version: str
    capabilities: frozenset[CapabilityFlag]
    protocol_version: str | None = None
    instructions: str | None = None

    @classmethod
    def from_initialize_result(cls, result: types.InitializeResult) -> "ServerInfo":
        return cls(
            name=result.serverInfo.name,
            version=result.serverInfo.version,
            capabilities=flags_from_capabilities(result.capabilities),
            protocol_version=str(result.protocolVersion),
            instructions=result.instructions,
        )

    def supports(self, flag: CapabilityFlag | str) -> bool:
        return CapabilityFlag(flag) in self.capabilities

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "protocolVersion": self.protocol_version,
            "instructions": self.instructions,
            "capabilities": {flag.value: flag in self.capabilities for flag in CapabilityFlag},
        }


__all__ = ["CapabilityFlag", "ServerInfo", "flags_from_capabilities"]
