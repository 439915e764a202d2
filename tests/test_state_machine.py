"""Tests for the pure session transition table."""

import pytest

from device.state_machine import (
    QUERY_SETTLE_S,
    RESET_SETTLE_S,
    SCRIPT_FRAME_DELAY_S,
    Operation,
    SessionState,
    is_allowed,
    next_state,
    plan,
)
from protocol.errors import InvalidTransition


S = SessionState


@pytest.mark.parametrize("state", list(SessionState))
def test_reset_allowed_from_every_state(state):
    transition = plan(state, Operation.RESET)
    assert transition.target is S.RESET
    assert transition.settle_s == RESET_SETTLE_S


def test_start_from_disconnected_rejected():
    with pytest.raises(InvalidTransition) as exc_info:
        plan(S.DISCONNECTED, Operation.START)
    assert exc_info.value.current is S.DISCONNECTED
    assert exc_info.value.requested is Operation.START
    assert "DISCONNECTED" in str(exc_info.value)
    assert "START" in str(exc_info.value)
    assert exc_info.value.target is S.RUNNING
    assert "RUNNING" in str(exc_info.value)


def test_rejected_query_names_no_target():
    with pytest.raises(InvalidTransition) as exc_info:
        plan(S.RESET, Operation.GET_STATUS)
    assert exc_info.value.target is None
    assert str(exc_info.value) == "Cannot GET_STATUS from state RESET"


def test_identify_only_after_reset():
    assert next_state(S.RESET, Operation.IDENTIFY) is S.IDENTIFIED
    assert next_state(S.IDENTIFIED, Operation.IDENTIFY) is S.IDENTIFIED
    assert not is_allowed(S.CONNECTED, Operation.IDENTIFY)
    assert not is_allowed(S.ACTIVATED, Operation.IDENTIFY)


def test_queries_keep_state():
    for state in (S.IDENTIFIED, S.ACTIVATED, S.RUNNING, S.DEACTIVATED):
        transition = plan(state, Operation.GET_STATUS)
        assert transition.target is state
        assert transition.settle_s == QUERY_SETTLE_S
    assert not is_allowed(S.RESET, Operation.GET_TEMPERATURE)


def test_load_script_requires_activation():
    assert not is_allowed(S.IDENTIFIED, Operation.LOAD_SCRIPT)
    assert plan(S.ACTIVATED, Operation.LOAD_SCRIPT).settle_s == SCRIPT_FRAME_DELAY_S
    assert next_state(S.SCRIPT_LOADED, Operation.LOAD_SCRIPT) is S.SCRIPT_LOADED


def test_start_stop_toggle():
    assert next_state(S.SCRIPT_LOADED, Operation.START) is S.RUNNING
    assert next_state(S.RUNNING, Operation.STOP) is S.STOPPED
    assert next_state(S.STOPPED, Operation.START) is S.RUNNING
    assert not is_allowed(S.STOPPED, Operation.STOP)


def test_deactivated_only_reactivates():
    assert next_state(S.DEACTIVATED, Operation.ACTIVATE) is S.ACTIVATED
    for op in (Operation.IDENTIFY, Operation.LOAD_SCRIPT, Operation.START, Operation.STOP):
        assert not is_allowed(S.DEACTIVATED, op)


def test_deactivate_not_while_running():
    assert not is_allowed(S.RUNNING, Operation.DEACTIVATE)
