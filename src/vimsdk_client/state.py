"""Connection state machine.

Each ``on_*`` function maps the current state and an event to the next state
plus the action the client must carry out. The functions do no I/O; the client
applies the returned transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .auth import LOGOUT


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"

    def __str__(self) -> str:
        return self.value


class Action(str, Enum):
    NONE = "none"
    CONNECT = "connect"
    AWAIT_CONNECT = "await_connect"
    SEND = "send"
    LOGOUT = "logout"
    RESET = "reset"
    REJECT = "reject"


@dataclass(frozen=True)
class Transition:
    state: SessionState
    action: Action


def on_connect(state: SessionState) -> Transition:
    if state is SessionState.DISCONNECTED:
        return Transition(SessionState.CONNECTING, Action.CONNECT)
    if state is SessionState.CONNECTING:
        return Transition(state, Action.AWAIT_CONNECT)
    if state is SessionState.READY:
        return Transition(state, Action.NONE)
    return Transition(state, Action.REJECT)


def on_connected(state: SessionState) -> Transition:
    if state is SessionState.CONNECTING:
        return Transition(SessionState.READY, Action.NONE)
    # close() won the race against the login
    return Transition(SessionState.DISCONNECTED, Action.RESET)


def on_connect_failed(state: SessionState) -> Transition:
    return Transition(SessionState.DISCONNECTED, Action.RESET)


def on_command(state: SessionState) -> Transition:
    if state in (SessionState.READY, SessionState.CONNECTING):
        return Transition(state, Action.SEND)
    if state is SessionState.DISCONNECTED:
        return Transition(state, Action.CONNECT)
    return Transition(state, Action.REJECT)


def on_command_succeeded(state: SessionState, command: str) -> Transition:
    if command == LOGOUT:
        return Transition(SessionState.DISCONNECTED, Action.RESET)
    return Transition(state, Action.NONE)


def on_session_expired(state: SessionState) -> Transition:
    return Transition(SessionState.DISCONNECTED, Action.RESET)


def on_logout(state: SessionState) -> Transition:
    """Logout finished, whatever its outcome."""
    return Transition(SessionState.DISCONNECTED, Action.RESET)


def on_close(state: SessionState) -> Transition:
    if state is SessionState.READY:
        return Transition(state, Action.LOGOUT)
    if state is SessionState.CONNECTING:
        return Transition(SessionState.DISCONNECTED, Action.RESET)
    return Transition(SessionState.DISCONNECTED, Action.NONE)


__all__ = [
    "Action",
    "SessionState",
    "Transition",
    "on_close",
    "on_command",
    "on_command_succeeded",
    "on_connect",
    "on_connect_failed",
    "on_connected",
    "on_logout",
    "on_session_expired",
]
