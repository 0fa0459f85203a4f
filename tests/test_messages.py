# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from mcpharness.messages import Direction, MessageLog, ProtocolMessage


def test_ring_buffer_evicts_oldest_first() -> None:
    log = MessageLog(capacity=3)
    for index in range(5):
        log.record(Direction.SENT, f"m{index}")

    assert [message.method for message in log] == ["m2", "m3", "m4"]
    assert [message.sequence for message in log] == [3, 4, 5]
    assert log.evicted == 2
    assert log.capacity == 3


def test_filters_and_clear() -> None:
    log = MessageLog()
    log.record(Direction.SENT, "ping")
    log.record(Direction.RECEIVED, "ping", {})
    log.record(Direction.SENT, "tools/list")

    assert [message.direction for message in log.by_method("ping")] == [Direction.SENT, Direction.RECEIVED]
    assert [message.method for message in log.by_direction("sent")] == ["ping", "tools/list"]

    log.clear()
    assert len(log) == 0
    assert log.messages() == []


def test_listeners_see_each_record() -> None:
    log = MessageLog()
    seen: list[ProtocolMessage] = []
    remove = log.add_listener(seen.append)

    def broken(message: ProtocolMessage) -> None:
        raise RuntimeError("listener bug")

    log.add_listener(broken)
    log.record(Direction.SENT, "initialize", {"protocolVersion": "2025-06-18"})
    remove()
    log.record(Direction.RECEIVED, "initialize")

    assert len(seen) == 1
    payload = seen[0].to_dict()
    assert payload["direction"] == "sent"
    assert payload["payload"] == {"protocolVersion": "2025-06-18"}


def test_iteration_is_a_snapshot() -> None:
    log = MessageLog(capacity=2)
    log.record(Direction.SENT, "a")
    for message in log:
        log.record(Direction.SENT, "b")
        log.record(Direction.SENT, "c")
    assert [message.method for message in log] == ["b", "c"]


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        MessageLog(capacity=0)
