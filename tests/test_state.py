# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from mcpharness.exceptions import InvalidTransitionError
from mcpharness.state import ConnectionState, ConnectionStateMachine, StateChange


def test_starts_disconnected() -> None:
    machine = ConnectionStateMachine()
    assert machine.state is ConnectionState.DISCONNECTED
    assert machine.error is None


def test_happy_path_and_listeners() -> None:
    machine = ConnectionStateMachine()
    changes: list[StateChange] = []
    remove = machine.add_listener(changes.append)

    machine.transition(ConnectionState.CONNECTING)
    machine.transition(ConnectionState.CONNECTED)
    machine.reset()
    remove()
    machine.transition(ConnectionState.CONNECTING)

    assert [(change.previous, change.current) for change in changes] == [
        (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING),
        (ConnectionState.CONNECTING, ConnectionState.CONNECTED),
        (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED),
    ]


def test_error_carries_reason_until_disconnect() -> None:
    machine = ConnectionStateMachine()
    machine.transition(ConnectionState.CONNECTING)
    machine.transition(ConnectionState.ERROR, error="spawn failed")

    assert machine.is_(ConnectionState.ERROR)
    assert machine.error == "spawn failed"

    with pytest.raises(InvalidTransitionError):
        machine.transition(ConnectionState.CONNECTING)

    machine.reset()
    assert machine.state is ConnectionState.DISCONNECTED
    assert machine.error is None


@pytest.mark.parametrize(
    ("path", "target"),
    [
        ([], ConnectionState.CONNECTED),
        ([], ConnectionState.ERROR),
        ([ConnectionState.CONNECTING, ConnectionState.CONNECTED], ConnectionState.CONNECTING),
    ],
)
def test_invalid_transitions_are_rejected(path: list[ConnectionState], target: ConnectionState) -> None:
    machine = ConnectionStateMachine()
    for step in path:
        machine.transition(step)
    before = machine.state

    with pytest.raises(InvalidTransitionError):
        machine.transition(target)
    assert machine.state is before


def test_failing_listener_does_not_block_transition() -> None:
    machine = ConnectionStateMachine()

    def broken(change: StateChange) -> None:
        raise RuntimeError("listener bug")

    machine.add_listener(broken)
    machine.transition(ConnectionState.CONNECTING)
    assert machine.state is ConnectionState.CONNECTING
