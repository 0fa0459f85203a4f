# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Connection configuration and client options.

A connection is described by exactly one of three variants, selected by the
``type`` discriminant:

* ``stdio`` -- spawn a child process and speak newline-delimited JSON-RPC over
  its standard streams.
* ``http-stateful`` -- streamable HTTP with an ``Mcp-Session-Id`` threaded
  through every call.
* ``http-stateless`` -- one independent POST per JSON-RPC message.

The models accept both snake_case names and the camelCase keys used by JSON
connection files (``executablePath``, ``sessionId``, ``headerName`` ...).
Missing required fields are reported as :class:`ConfigurationError` by
:func:`validate_connection_config`, before any I/O happens.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
import sys
from typing import Annotated, Any, Final, Literal, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .exceptions import ConfigurationError


DEFAULT_AUTH_HEADER: Final[str] = "x-api-key"

ENV_CONNECT_TIMEOUT: Final[str] = "MCPHARNESS_CONNECT_TIMEOUT"
ENV_REQUEST_TIMEOUT: Final[str] = "MCPHARNESS_REQUEST_TIMEOUT"
ENV_MESSAGE_LOG_CAPACITY: Final[str] = "MCPHARNESS_MESSAGE_LOG_CAPACITY"
ENV_UPDATE_BUFFER_SIZE: Final[str] = "MCPHARNESS_UPDATE_BUFFER_SIZE"
ENV_AUTO_RECONNECT: Final[str] = "MCPHARNESS_AUTO_RECONNECT"

# Spellings accepted for the discriminant when loading raw mappings.
_TYPE_ALIASES: Final[dict[str, str]] = {
    "httpStateful": "http-stateful",
    "http_stateful": "http-stateful",
    "httpStateless": "http-stateless",
    "http_stateless": "http-stateless",
}


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AuthConfig(_ConfigModel):
    """Static API-key credential attached to every outgoing HTTP request."""

    scheme: Literal["apiKey"] = Field("apiKey", alias="type")
    credential: str = Field("", alias="key")
    header_name: str = Field(DEFAULT_AUTH_HEADER, alias="headerName")

    def ensure_complete(self) -> None:
        if not self.credential:
            raise ConfigurationError("Auth config requires a non-empty credential")
        if not self.header_name:
            raise ConfigurationError("Auth config requires a header name")


class StdioConfig(_ConfigModel):
    type: Literal["stdio"] = "stdio"
    command: str | None = Field(None, alias="executablePath")
    args: list[str] = Field(default_factory=list, alias="argumentList")
    env: dict[str, str] = Field(default_factory=dict, alias="environmentOverrides")
    cwd: str | None = None
    server_path: str | None = Field(None, alias="serverPath")

    @classmethod
    def for_server(cls, server_path: str, *extra_args: str, env: Mapping[str, str] | None = None) -> "StdioConfig":
        """Launch *server_path* with the running interpreter."""
        return cls(command=sys.executable, args=[server_path, *extra_args], env=dict(env or {}))

    def launch_command(self) -> tuple[str, list[str]]:
        """Return ``(executable, argv)`` for the child process."""
        if self.command:
            return self.command, list(self.args)
        if self.server_path:
            return sys.executable, [self.server_path, *self.args]
        raise ConfigurationError("stdio config requires an executable path or a server path")

    def merged_environment(self) -> dict[str, str]:
        """Inherited environment overridden by the configured values."""
        environment = dict(os.environ)
        environment.update(self.env)
        return environment

    def ensure_complete(self) -> None:
        self.launch_command()


class _HTTPConfig(_ConfigModel):
    url: str | None = None
    auth: AuthConfig | None = None

    def ensure_complete(self) -> None:
        if not self.url:
            raise ConfigurationError(f"{self.type} config requires a URL")  # type: ignore[attr-defined]
        try:
            parsed = httpx.URL(self.url)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Invalid URL {self.url!r}: {exc}") from exc
        if parsed.scheme not in {"http", "https"} or not parsed.host:
            raise ConfigurationError(f"URL must be an absolute http(s) URL, got {self.url!r}")
        if self.auth is not None:
            self.auth.ensure_complete()


class StatefulHTTPConfig(_HTTPConfig):
    type: Literal["http-stateful"] = "http-stateful"
    session_id: str | None = Field(None, alias="sessionId")


class StatelessHTTPConfig(_HTTPConfig):
    type: Literal["http-stateless"] = "http-stateless"


ConnectionConfig = Annotated[
    Union[StdioConfig, StatefulHTTPConfig, StatelessHTTPConfig],
    Field(discriminator="type"),
]

_CONFIG_VARIANTS: Final = (StdioConfig, StatefulHTTPConfig, StatelessHTTPConfig)
_CONFIG_ADAPTER: TypeAdapter[Any] = TypeAdapter(ConnectionConfig)


def parse_connection_config(data: Mapping[str, Any]) -> StdioConfig | StatefulHTTPConfig | StatelessHTTPConfig:
    """Build a config from a raw mapping (for example a parsed JSON file)."""
    raw = dict(data)
    kind = raw.get("type")
    if isinstance(kind, str):
        raw["type"] = _TYPE_ALIASES.get(kind, kind)
    try:
        config = _CONFIG_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid connection config: {exc}") from exc
    return validate_connection_config(config)


def validate_connection_config(config: Any) -> StdioConfig | StatefulHTTPConfig | StatelessHTTPConfig:
    """Check that *config* is a known variant with every required field set."""
    if not isinstance(config, _CONFIG_VARIANTS):
        raise ConfigurationError(f"Unknown connection config variant: {type(config).__name__}")
    config.ensure_complete()
    return config


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from exc


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from exc


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class ClientOptions:
    """Tunables for :class:`~mcpharness.client.MCPClient`.

    ``auto_reconnect``, ``max_reconnect_attempts`` and ``reconnect_delay`` are
    carried for connection files that set them; the client does not run a
    reconnect loop.
    """

    connect_timeout: float = 5.0
    request_timeout: float = 30.0
    message_log_capacity: int = 500
    update_buffer_size: int = 50
    notification_buffer_size: int = 256
    sse_read_timeout: float = 300.0
    auto_reconnect: bool = False
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 1.0
    client_name: str = "mcpharness"
    client_version: str = "0.1.0"

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientOptions":
        """Read ``MCPHARNESS_*`` variables; keyword overrides win."""
        defaults = cls()
        values: dict[str, Any] = {
            "connect_timeout": _env_float(ENV_CONNECT_TIMEOUT, defaults.connect_timeout),
            "request_timeout": _env_float(ENV_REQUEST_TIMEOUT, defaults.request_timeout),
            "message_log_capacity": _env_int(ENV_MESSAGE_LOG_CAPACITY, defaults.message_log_capacity),
            "update_buffer_size": _env_int(ENV_UPDATE_BUFFER_SIZE, defaults.update_buffer_size),
            "auto_reconnect": _env_bool(ENV_AUTO_RECONNECT, defaults.auto_reconnect),
        }
        values.update(overrides)
        return cls(**values)


__all__ = [
    "DEFAULT_AUTH_HEADER",
    "AuthConfig",
    "ClientOptions",
    "ConnectionConfig",
    "StatefulHTTPConfig",
    "StatelessHTTPConfig",
    "StdioConfig",
    "parse_connection_config",
    "validate_connection_config",
]
