"""Tests for server states and transitions."""

import pytest

from cloudsvc.domain.lifecycle import (
    SERVER_TRANSITIONS,
    TERMINAL_STATES,
    ServerState,
    advance,
    is_valid_transition,
)
from cloudsvc.errors import InvalidTransitionError


class TestServerState:
    def test_members(self) -> None:
        assert {s.value for s in ServerState} == {
            "idle",
            "starting",
            "serving",
            "shutting_down",
            "closed",
            "failed",
        }

    def test_every_state_has_transitions(self) -> None:
        assert set(SERVER_TRANSITIONS) == {s.value for s in ServerState}

    def test_terminal_states_have_no_exits(self) -> None:
        for state in TERMINAL_STATES:
            assert SERVER_TRANSITIONS[state] == []


class TestTransitions:
    def test_happy_path(self) -> None:
        assert is_valid_transition("idle", "starting")
        assert is_valid_transition("starting", "serving")
        assert is_valid_transition("serving", "shutting_down")
        assert is_valid_transition("shutting_down", "closed")

    def test_failures(self) -> None:
        assert is_valid_transition("starting", "failed")
        assert is_valid_transition("shutting_down", "failed")

    def test_no_going_back(self) -> None:
        assert not is_valid_transition("serving", "starting")
        assert not is_valid_transition("closed", "idle")
        assert not is_valid_transition("failed", "starting")
        assert not is_valid_transition("idle", "serving")

    def test_unknown_state(self) -> None:
        assert not is_valid_transition("paused", "serving")


class TestAdvance:
    def test_returns_target(self) -> None:
        assert advance(ServerState.IDLE, ServerState.STARTING) is ServerState.STARTING

    def test_rejects_invalid(self) -> None:
        with pytest.raises(InvalidTransitionError) as excinfo:
            advance(ServerState.CLOSED, ServerState.STARTING)
        assert excinfo.value.current == "closed"
        assert excinfo.value.target == "starting"
        assert "closed -> starting" in str(excinfo.value)
