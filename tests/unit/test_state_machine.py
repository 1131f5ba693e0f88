"""Tests for the RestoreStateMachine — lifecycle, abort semantics, history."""

from __future__ import annotations

import pytest

from buildcache.core.state_machine import InvalidTransitionError, RestoreStateMachine
from buildcache.models.states import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    RestoreState,
    StagingPolicy,
)

HAPPY_PATH = [
    RestoreState.LOCATING_RELEASE,
    RestoreState.DOWNLOADING,
    RestoreState.REASSEMBLING,
    RestoreState.VERIFYING,
    RestoreState.EXTRACTING,
    RestoreState.DONE,
]


class TestRestoreStateMachine:
    def test_starts_idle(self):
        machine = RestoreStateMachine()
        assert machine.state == RestoreState.IDLE
        assert machine.history == []
        assert not machine.is_terminal

    def test_happy_path(self):
        machine = RestoreStateMachine()
        for state in HAPPY_PATH:
            machine.transition(state)
        assert machine.state == RestoreState.DONE
        assert machine.is_terminal
        assert [t.to_state for t in machine.history] == HAPPY_PATH
        assert machine.history[0].from_state == RestoreState.IDLE

    def test_cannot_skip_verification(self):
        machine = RestoreStateMachine()
        for state in HAPPY_PATH[:3]:
            machine.transition(state)
        with pytest.raises(InvalidTransitionError):
            machine.transition(RestoreState.EXTRACTING)
        assert machine.state == RestoreState.REASSEMBLING

    @pytest.mark.parametrize("steps", range(len(HAPPY_PATH)))
    def test_abort_from_any_non_terminal_state(self, steps: int):
        machine = RestoreStateMachine()
        for state in HAPPY_PATH[:steps]:
            machine.transition(state)
        record = machine.abort("network down")
        assert record is not None
        assert record.reason == "network down"
        assert machine.state == RestoreState.ABORTED

    def test_abort_after_terminal_is_noop(self):
        machine = RestoreStateMachine()
        machine.abort("first")
        assert machine.abort("second") is None
        assert len(machine.history) == 1

    def test_terminal_states_have_no_exits(self):
        machine = RestoreStateMachine()
        machine.abort("stop")
        assert machine.get_available_transitions() == set()
        with pytest.raises(InvalidTransitionError):
            machine.transition(RestoreState.LOCATING_RELEASE)

    def test_history_is_a_copy(self):
        machine = RestoreStateMachine()
        machine.transition(RestoreState.LOCATING_RELEASE)
        machine.history.clear()
        assert len(machine.history) == 1

    def test_transition_table_covers_every_state(self):
        assert set(VALID_TRANSITIONS) == set(RestoreState)
        for state, targets in VALID_TRANSITIONS.items():
            if state in TERMINAL_STATES:
                assert targets == set()
            else:
                assert RestoreState.ABORTED in targets


class TestStagingPolicy:
    @pytest.mark.parametrize(
        ("policy", "succeeded", "expected"),
        [
            (StagingPolicy.ON_SUCCESS, True, True),
            (StagingPolicy.ON_SUCCESS, False, False),
            (StagingPolicy.ALWAYS, False, True),
            (StagingPolicy.NEVER, True, False),
        ],
    )
    def test_should_clean(self, policy: StagingPolicy, succeeded: bool, expected: bool):
        assert policy.should_clean(succeeded) is expected
