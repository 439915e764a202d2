"""
Session lifecycle of one stimulator on one transport.

DISCONNECTED -> CONNECTED -> RESET -> IDENTIFIED -> ACTIVATED
  -> SCRIPT_LOADED -> RUNNING <-> STOPPED -> DEACTIVATED

`plan()` is pure: it maps (state, operation) to the target state and the
settling delay the firmware needs after the operation. The session does the
I/O.
"""

from dataclasses import dataclass
from enum import Enum

from protocol.errors import InvalidTransition


# Firmware settling times. Fixed by the hardware, not retry backoff.
RESET_SETTLE_S = 3.0  # interface restart after ESC
QUERY_SETTLE_S = 1.0  # after every ID/GS/GT reply
SCRIPT_FRAME_DELAY_S = 0.1  # script parser consumes one line at a time


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RESET = "reset"
    IDENTIFIED = "identified"
    ACTIVATED = "activated"
    SCRIPT_LOADED = "script_loaded"
    RUNNING = "running"
    STOPPED = "stopped"
    DEACTIVATED = "deactivated"


class Operation(Enum):
    CONNECT = "connect"
    RESET = "reset"
    IDENTIFY = "identify"
    GET_STATUS = "get_status"
    GET_TEMPERATURE = "get_temperature"
    ACTIVATE = "activate"
    LOAD_SCRIPT = "load_script"
    START = "start"
    STOP = "stop"
    DEACTIVATE = "deactivate"


@dataclass(frozen=True)
class Transition:
    target: SessionState | None  # None keeps the current state
    settle_s: float = 0.0


S = SessionState

IDENTIFIED_OR_LATER = frozenset(
    {S.IDENTIFIED, S.ACTIVATED, S.SCRIPT_LOADED, S.RUNNING, S.STOPPED, S.DEACTIVATED}
)

# operation -> (valid source states, transition); None means any state.
TRANSITIONS: dict[Operation, tuple[frozenset | None, Transition]] = {
    Operation.CONNECT: (frozenset({S.DISCONNECTED, S.CONNECTED}), Transition(S.CONNECTED)),
    Operation.RESET: (None, Transition(S.RESET, RESET_SETTLE_S)),
    Operation.IDENTIFY: (frozenset({S.RESET, S.IDENTIFIED}), Transition(S.IDENTIFIED, QUERY_SETTLE_S)),
    Operation.GET_STATUS: (IDENTIFIED_OR_LATER, Transition(None, QUERY_SETTLE_S)),
    Operation.GET_TEMPERATURE: (IDENTIFIED_OR_LATER, Transition(None, QUERY_SETTLE_S)),
    Operation.ACTIVATE: (frozenset({S.IDENTIFIED, S.ACTIVATED, S.DEACTIVATED}), Transition(S.ACTIVATED)),
    Operation.LOAD_SCRIPT: (
        frozenset({S.ACTIVATED, S.SCRIPT_LOADED}),
        Transition(S.SCRIPT_LOADED, SCRIPT_FRAME_DELAY_S),
    ),
    Operation.START: (frozenset({S.SCRIPT_LOADED, S.STOPPED}), Transition(S.RUNNING)),
    Operation.STOP: (frozenset({S.RUNNING}), Transition(S.STOPPED)),
    Operation.DEACTIVATE: (
        frozenset({S.ACTIVATED, S.SCRIPT_LOADED, S.STOPPED}),
        Transition(S.DEACTIVATED),
    ),
}


def is_allowed(state: SessionState, operation: Operation) -> bool:
    valid_from, _ = TRANSITIONS[operation]
    return valid_from is None or state in valid_from


def plan(state: SessionState, operation: Operation) -> Transition:
    """
    Resolve `operation` from `state`.

    Raises InvalidTransition if the device must not receive the command in
    this state. The returned transition always names a concrete target.
    """
    _, transition = TRANSITIONS[operation]
    if not is_allowed(state, operation):
        raise InvalidTransition(state, operation, transition.target)
    if transition.target is None:
        return Transition(state, transition.settle_s)
    return transition


def next_state(state: SessionState, operation: Operation) -> SessionState:
    return plan(state, operation).target
