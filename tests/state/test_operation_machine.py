"""Tests for the per-operation lifecycle state machine."""

from datetime import datetime, timezone

import pytest

from chainsync_app.errors import StateTransitionError
from chainsync_app.state.machine import ALLOWED_TRANSITIONS, OperationStateMachine
from chainsync_app.state.models import TERMINAL_PHASES, OperationPhase

P = OperationPhase

FIXED_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def new_machine(**kwargs):
    return OperationStateMachine("op-1", "mint", clock=lambda: FIXED_TIME, **kwargs)


class TestOperationStateMachine:
    """Test phase transitions."""

    def test_starts_idle(self):
        """Test a new operation is idle."""
        machine = new_machine()
        assert machine.phase == P.IDLE
        assert machine.record.started_at == FIXED_TIME
        assert not machine.is_terminal

    def test_full_mutating_path(self):
        """Test the complete happy path."""
        machine = new_machine()
        for phase in (P.VALIDATING, P.AWAITING_SESSION, P.ESTIMATING, P.SUBMITTED,
                      P.CONFIRMING, P.SUCCEEDED):
            machine.advance(phase, "test")

        assert machine.is_terminal
        assert machine.record.history == (
            P.IDLE, P.VALIDATING, P.AWAITING_SESSION, P.ESTIMATING, P.SUBMITTED, P.CONFIRMING
        )

    def test_skippable_phases(self):
        """Test validation and session phases can be skipped."""
        machine = new_machine()
        machine.advance(P.ESTIMATING, "session_ready")
        assert machine.phase == P.ESTIMATING

        read = new_machine()
        read.advance(P.VALIDATING, "submit")
        read.advance(P.READING, "read")
        read.advance(P.SUCCEEDED, "read")
        assert read.is_terminal

    @pytest.mark.parametrize("start,target", [
        (P.ESTIMATING, P.CONFIRMING),
        (P.SUBMITTED, P.SUCCEEDED),
        (P.AWAITING_SESSION, P.VALIDATING),
        (P.READING, P.SUBMITTED),
    ])
    def test_illegal_transitions(self, start, target):
        """Test phases cannot be skipped past submission or confirmation."""
        machine = new_machine()
        path = {
            P.ESTIMATING: [P.ESTIMATING],
            P.SUBMITTED: [P.ESTIMATING, P.SUBMITTED],
            P.AWAITING_SESSION: [P.AWAITING_SESSION],
            P.READING: [P.READING],
        }[start]
        for phase in path:
            machine.advance(phase, "setup")

        with pytest.raises(StateTransitionError) as exc_info:
            machine.advance(target, "test")
        assert exc_info.value.current_state == start.value
        assert exc_info.value.attempted_transition == target.value

    def test_no_way_back_to_idle(self):
        """Test nothing transitions into Idle."""
        for targets in ALLOWED_TRANSITIONS.values():
            assert P.IDLE not in targets

    def test_terminal_phases_are_final(self):
        """Test terminal phases have no successors."""
        for phase in TERMINAL_PHASES:
            assert ALLOWED_TRANSITIONS[phase] == frozenset()

    def test_fail_is_idempotent(self):
        """Test failing a finished operation is a no-op."""
        machine = new_machine()
        machine.fail("invalid_input")
        assert machine.phase == P.FAILED
        machine.fail("again")
        assert machine.record.history == (P.IDLE,)

    def test_transition_callback(self):
        """Test observers see each new record and the previous phase."""
        seen = []
        machine = new_machine(on_transition=lambda record, previous: seen.append((previous, record.phase)))
        machine.advance(P.VALIDATING, "submit")
        machine.fail("invalid_input")
        assert seen == [(P.IDLE, P.VALIDATING), (P.VALIDATING, P.FAILED)]

    def test_bind_signer(self, owner_address):
        """Test the signer is recorded on the operation."""
        machine = new_machine()
        machine.bind_signer(owner_address)
        assert machine.record.signer == owner_address
