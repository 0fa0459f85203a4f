# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

"""Client-side registry of resource subscriptions.

The registry owns one :class:`Subscription` per resource URI.  Each entry keeps
a bounded buffer of :class:`Update` snapshots, oldest dropped first.  The
protocol client feeds ``notifications/resources/updated`` into
:meth:`SubscriptionRegistry.handle_resource_updated` from a single consumer
task, so updates are applied in the order the server emitted them.

Notifications for URIs without an entry (for example a late push after
``unsubscribe``) are dropped.  On disconnect the client calls
:meth:`SubscriptionRegistry.clear`: the next connection has no knowledge of
the old session's subscriptions.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from mcp import types
from pydantic import AnyUrl, ValidationError

from ..utils.coro import maybe_await_with_args
from ..utils.logger import get_logger


_logger = get_logger("mcpharness.subscriptions")

ResourceContents = types.TextResourceContents | types.BlobResourceContents


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_uri(uri: str | AnyUrl) -> str:
    try:
        return str(AnyUrl(str(uri)))
    except ValidationError:
        return str(uri)


@dataclass(slots=True)
class Update:
    """Snapshot of a resource taken when the server reported a change."""

    contents: tuple[ResourceContents, ...]
    timestamp: datetime = field(default_factory=_now)
    fresh: bool = True

    @property
    def text(self) -> str | None:
        """Concatenated text of the snapshot, ``None`` for binary-only contents."""
        parts = [item.text for item in self.contents if isinstance(item, types.TextResourceContents)]
        return "".join(parts) if parts else None


@dataclass(slots=True)
class Subscription:
    uri: str
    updates: deque[Update]
    created_at: datetime = field(default_factory=_now)
    last_update_at: datetime | None = None
    update_count: int = 0
    last_error: str | None = None

    @property
    def latest(self) -> Update | None:
        return self.updates[-1] if self.updates else None

    @property
    def unseen(self) -> int:
        return sum(1 for update in self.updates if update.fresh)


UpdateListener = Callable[[Subscription, Update], Awaitable[None] | None]


class SubscriptionRegistry:
    """Tracks active subscriptions and fans out their updates.

    The wire calls are injected so the registry stays independent of the
    transport; :class:`~mcpharness.client.MCPClient` passes its own request
    methods.
    """

    def __init__(
        self,
        *,
        send_subscribe: Callable[[str], Awaitable[Any]],
        send_unsubscribe: Callable[[str], Awaitable[Any]],
        read_resource: Callable[[str], Awaitable[types.ReadResourceResult]],
        buffer_size: int = 50,
    ) -> None:
        if buffer_size < 1:
            raise ValueError("Update buffer size must be at least 1")
        self._send_subscribe = send_subscribe
        self._send_unsubscribe = send_unsubscribe
        self._read_resource = read_resource
        self._buffer_size = buffer_size
        self._entries: dict[str, Subscription] = {}
        self._listeners: list[tuple[str | None, UpdateListener]] = []

    def __contains__(self, uri: object) -> bool:
        return isinstance(uri, str) and normalize_uri(uri) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, uri: str) -> Subscription | None:
        return self._entries.get(normalize_uri(uri))

    def active(self) -> list[str]:
        return list(self._entries)

    async def subscribe(self, uri: str) -> Subscription:
        """Subscribe to *uri*; a repeated call returns the existing entry."""
        key = normalize_uri(uri)
        existing = self._entries.get(key)
        if existing is not None:
            return existing

        await self._send_subscribe(key)
        entry = self._entries.get(key)
        if entry is None:
            entry = Subscription(uri=key, updates=deque(maxlen=self._buffer_size))
            self._entries[key] = entry
            _logger.info("subscribed to %s", key)
        return entry

    async def unsubscribe(self, uri: str) -> bool:
        """Unsubscribe from *uri*; returns ``False`` when there was no entry."""
        key = normalize_uri(uri)
        if key not in self._entries:
            return False
        await self._send_unsubscribe(key)
        self._entries.pop(key, None)
        _logger.info("unsubscribed from %s", key)
        return True

    async def unsubscribe_all(self) -> list[str]:
        """Unsubscribe every entry and return the URIs that failed.

        Failed entries stay registered with ``last_error`` set.
        """
        failed: list[str] = []
        for key in list(self._entries):
            try:
                await self.unsubscribe(key)
            except Exception as exc:
                _logger.warning("unsubscribe from %s failed: %s", key, exc)
                entry = self._entries.get(key)
                if entry is not None:
                    entry.last_error = str(exc)
                failed.append(key)
        return failed

    async def handle_resource_updated(self, uri: str | AnyUrl) -> Update | None:
        """Snapshot *uri* and record an update if it is subscribed."""
        key = normalize_uri(uri)
        entry = self._entries.get(key)
        if entry is None:
            _logger.debug("dropping update for unsubscribed resource %s", key)
            return None

        try:
            result = await self._read_resource(key)
        except Exception as exc:
            _logger.warning("could not read updated resource %s: %s", key, exc)
            entry.last_error = str(exc)
            return None

        if self._entries.get(key) is not entry:
            return None

        update = Update(contents=tuple(result.contents))
        entry.updates.append(update)
        entry.update_count += 1
        entry.last_update_at = update.timestamp
        entry.last_error = None
        await self._notify(entry, update)
        return update

    def add_listener(self, listener: UpdateListener, *, uri: str | None = None) -> Callable[[], None]:
        """Call *listener* for updates (of *uri* only, when given)."""
        registration = (normalize_uri(uri) if uri is not None else None, listener)
        self._listeners.append(registration)

        def remove() -> None:
            if registration in self._listeners:
                self._listeners.remove(registration)

        return remove

    def updates(self, uri: str, *, mark_seen: bool = True) -> list[Update]:
        entry = self.get(uri)
        if entry is None:
            return []
        snapshot = list(entry.updates)
        if mark_seen:
            for update in snapshot:
                update.fresh = False
        return snapshot

    def unseen_count(self, uri: str) -> int:
        entry = self.get(uri)
        return entry.unseen if entry is not None else 0

    def clear(self) -> None:
        if self._entries:
            _logger.debug("clearing %d subscription(s)", len(self._entries))
        self._entries.clear()

    async def _notify(self, entry: Subscription, update: Update) -> None:
        for target, listener in list(self._listeners):
            if target is not None and target != entry.uri:
                continue
            try:
                await maybe_await_with_args(listener, entry, update)
            except Exception:
                _logger.warning("subscription listener %r failed", listener, exc_info=True)


__all__ = ["Subscription", "SubscriptionRegistry", "Update", "UpdateListener", "normalize_uri"]
