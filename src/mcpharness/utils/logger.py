# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Logging setup for the harness.

Plain, colored text on a terminal by default.  ``MCPHARNESS_LOG_JSON=1``
switches to one JSON object per line (serialized with ``orjson``), which is
handy when piping harness runs into other tooling.  ``MCPHARNESS_LOG_LEVEL``
sets the level and ``NO_COLOR`` disables ANSI escapes.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import os
from typing import Any, ClassVar, Final

import orjson


RESET: Final[str] = "\033[0m"
GRAY: Final[str] = "\033[90m"
BLUE: Final[str] = "\033[94m"

DEFAULT_LOGGER_NAME: Final[str] = "mcpharness"
ENV_LOG_LEVEL: Final[str] = "MCPHARNESS_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "MCPHARNESS_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "context"}


class ColoredFormatter(logging.Formatter):
    """Colorize the level and logger name of each record."""

    LEVEL_COLORS: ClassVar[dict[int, str]] = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[1;31m",
        logging.CRITICAL: "\033[1;35m",
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        color = self.LEVEL_COLORS.get(record.levelno, "")
        record.levelname = f"{color}{levelname}{RESET}"
        record.name = f"{BLUE}{name}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = levelname, name

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return f"{GRAY}{super().formatTime(record, datefmt)}{RESET}"


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def __init__(self, serializer: JsonSerializer | None = None, *, datefmt: str | None = None) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer or _orjson_dumps

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context: dict[str, Any] = {}
        explicit = record.__dict__.get("context")
        if isinstance(explicit, dict):
            context.update(explicit)
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in context:
                context[key] = value
        if context:
            payload["context"] = context

        return self._serializer(payload)


class HarnessHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker handler so repeated setup calls stay idempotent."""


def _orjson_dumps(payload: dict[str, Any]) -> str:
    return orjson.dumps(payload, default=str).decode()


def _has_harness_handler(root: logging.Logger) -> bool:
    return any(isinstance(handler, HarnessHandler) for handler in root.handlers)


def _env_flag(key: str) -> bool:
    value = os.getenv(key)
    return value is not None and value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Attach the harness handler to the root logger.

    Args:
        level: Log level; falls back to ``MCPHARNESS_LOG_LEVEL`` then INFO.
        use_json: JSON output; defaults to ``MCPHARNESS_LOG_JSON``.
        use_color: ANSI colors; defaults to on unless ``NO_COLOR`` is set or
            JSON output is enabled.
        json_serializer: Replacement for the ``orjson`` serializer.
        fmt: Format string for plain-text output.
        datefmt: Date format for both outputs.
        force: Replace a previously attached harness handler.
    """
    root = logging.getLogger()
    if _has_harness_handler(root):
        if not force:
            return
        for handler in [h for h in root.handlers if isinstance(h, HarnessHandler)]:
            root.removeHandler(handler)
            handler.close()

    resolved_level = _resolve_level(level)
    json_output = _env_flag(ENV_LOG_JSON) if use_json is None else use_json
    if use_color is None:
        use_color = not json_output and not os.getenv(ENV_NO_COLOR)

    formatter: logging.Formatter
    if json_output:
        formatter = JSONFormatter(json_serializer, datefmt=datefmt)
    elif use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = HarnessHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    root.setLevel(resolved_level)
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a named logger, configuring the root handler on first use."""
    if not _has_harness_handler(logging.getLogger()):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "HarnessHandler",
    "JSONFormatter",
    "get_logger",
    "setup_logger",
]
