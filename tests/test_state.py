import pytest

from richpipe.exc import IllegalTransition
from richpipe.ipc.state import TRANSITIONS, ConnectionState, transition


def test_every_state_has_transitions():
    assert set(TRANSITIONS) == set(ConnectionState)


def test_happy_path():
    state = ConnectionState.DISCONNECTED
    for target in (ConnectionState.CONNECTING, ConnectionState.CONNECTED,
                   ConnectionState.READY, ConnectionState.CLOSED, ConnectionState.CONNECTING):
        state = transition(state, target)

    assert state is ConnectionState.CONNECTING


@pytest.mark.parametrize("state", list(ConnectionState))
def test_anything_open_can_close(state):
    if state is ConnectionState.CLOSED:
        return

    assert transition(state, ConnectionState.CLOSED) is ConnectionState.CLOSED


@pytest.mark.parametrize("current, target", [
    (ConnectionState.DISCONNECTED, ConnectionState.READY),
    (ConnectionState.CONNECTING, ConnectionState.READY),
    (ConnectionState.READY, ConnectionState.CONNECTED),
    (ConnectionState.CLOSED, ConnectionState.READY),
    (ConnectionState.CLOSED, ConnectionState.CLOSED),
])
def test_illegal_transitions(current, target):
    with pytest.raises(IllegalTransition):
        transition(current, target)
