# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Helpers for callbacks that may be sync or async."""

from __future__ import annotations

from collections.abc import Callable
import inspect
from typing import Any


async def maybe_await_with_args(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call *func* with the given arguments and await the result if needed."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


__all__ = ["maybe_await_with_args"]
