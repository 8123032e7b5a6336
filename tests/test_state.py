import pytest

from vimsdk_client.state import (
    Action,
    SessionState,
    on_close,
    on_command,
    on_command_succeeded,
    on_connect,
    on_connect_failed,
    on_connected,
    on_logout,
    on_session_expired,
)

D, C, R = SessionState.DISCONNECTED, SessionState.CONNECTING, SessionState.READY


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        (D, (C, Action.CONNECT)),
        (C, (C, Action.AWAIT_CONNECT)),
        (R, (R, Action.NONE)),
    ],
)
def test_connect_transitions(state, expected) -> None:
    transition = on_connect(state)
    assert (transition.state, transition.action) == expected


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        (D, (D, Action.CONNECT)),
        (C, (C, Action.SEND)),
        (R, (R, Action.SEND)),
        ("bogus", ("bogus", Action.REJECT)),
    ],
)
def test_command_transitions(state, expected) -> None:
    transition = on_command(state)
    assert (transition.state, transition.action) == expected


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        (D, (D, Action.NONE)),
        (C, (D, Action.RESET)),
        (R, (R, Action.LOGOUT)),
    ],
)
def test_close_transitions(state, expected) -> None:
    transition = on_close(state)
    assert (transition.state, transition.action) == expected


@pytest.mark.parametrize("state", [D, C, R])
def test_logout_success_always_disconnects(state) -> None:
    transition = on_command_succeeded(state, "Logout")
    assert transition.state is D
    assert transition.action is Action.RESET
    assert on_command_succeeded(state, "CurrentTime").state is state


def test_connected_only_from_connecting() -> None:
    assert on_connected(C).state is R
    assert on_connected(D).action is Action.RESET


@pytest.mark.parametrize("event", [on_connect_failed, on_session_expired, on_logout])
@pytest.mark.parametrize("state", [D, C, R])
def test_failures_reset_to_disconnected(event, state) -> None:
    transition = event(state)
    assert transition.state is D
    assert transition.action is Action.RESET
