# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Tests for the sync/async callback helpers used by handlers and listeners."""

from __future__ import annotations

import anyio
import pytest

from mcpharness.utils import maybe_await_with_args


@pytest.mark.anyio
async def test_maybe_await_with_args_sync_callable() -> None:
    """Listener-style callbacks receive positional arguments."""

    def add(a: int, b: int) -> int:
        return a + b

    assert await maybe_await_with_args(add, 2, 3) == 5


@pytest.mark.anyio
async def test_maybe_await_with_args_async_callable() -> None:
    async def add_async(a: int, b: int) -> int:
        await anyio.sleep(0)
        return a + b

    assert await maybe_await_with_args(add_async, 4, 7) == 11


@pytest.mark.anyio
async def test_maybe_await_with_args_kwargs() -> None:
    def compute(a: int, b: int = 10) -> int:
        return a * b

    async def compute_async(a: int, b: int = 10) -> int:
        return a * b

    assert await maybe_await_with_args(compute, 3, b=5) == 15
    assert await maybe_await_with_args(compute_async, a=3, b=5) == 15


@pytest.mark.anyio
async def test_maybe_await_with_args_propagates_errors() -> None:
    async def broken(_: object) -> None:
        raise LookupError("missing")

    with pytest.raises(LookupError):
        await maybe_await_with_args(broken, None)
