"""Tests for the approval state machine (pure routing logic)."""
from types import SimpleNamespace

import pytest

from prflow.core.errors import InvalidStateError, WorkflowValidationError
from prflow.rules.approval_flow import (
    ApprovalState,
    TRANSITIONS,
    can_transition,
    current_cycle,
    ensure_transition,
    next_step,
    state_of,
    status_for,
    target_state,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _matrix(a1="A1", a2="A2", a3a="A3A", a3b="A3B"):
    return SimpleNamespace(
        approver_1_emp_code=a1,
        approver_2_emp_code=a2,
        approver_3a_emp_code=a3a,
        approver_3b_emp_code=a3b,
    )


def _entry(action, approver):
    return SimpleNamespace(action=action, approver_emp_code=approver)


# ─── next_step ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("action", ["reject", "return"])
def test_reject_and_return_are_terminal(action):
    step = next_step(_matrix(), 2, action, "A2")
    assert step.next_level is None
    assert step.next_approvers == ()
    assert step.is_final is False


def test_level_one_approval_routes_to_approver_two():
    step = next_step(_matrix(), 1, "approve", "A1")
    assert step.next_level == 2
    assert step.next_approver == "A2"
    assert step.is_final is False


def test_level_one_without_approver_two_is_final():
    step = next_step(_matrix(a2=None, a3a=None, a3b=None), 1, "approve", "A1")
    assert step.next_level is None
    assert step.is_final is True


def test_level_two_with_both_final_approvers_goes_parallel():
    step = next_step(_matrix(), 2, "approve", "A2")
    assert step.next_level == 3
    assert set(step.next_approvers) == {"A3A", "A3B"}
    assert step.is_parallel is True
    assert step.is_final is False
    assert step.next_approver is None


def test_level_two_with_single_final_approver_marks_final():
    step = next_step(_matrix(a3b=None), 2, "approve", "A2")
    assert step.next_level == 3
    assert step.next_approvers == ("A3A",)
    assert step.is_final is True
    assert step.is_parallel is False


def test_level_two_only_3b_configured():
    step = next_step(_matrix(a3a=None), 2, "approve", "A2")
    assert step.next_approver == "A3B"
    assert step.is_final is True


def test_parallel_already_approved_in_cycle_finalizes():
    history = [_entry("approved", "A1"), _entry("approved", "A3B")]
    step = next_step(_matrix(), 2, "approve", "A2", history)
    assert step.next_level is None
    assert step.is_final is True
    assert step.is_parallel is True


def test_parallel_approval_from_previous_cycle_is_ignored():
    history = [
        _entry("approved", "A3A"),
        _entry("returned", "A3B"),
        _entry("resubmitted", "R1"),
        _entry("approved", "A1"),
    ]
    step = next_step(_matrix(), 2, "approve", "A2", history)
    assert step.next_level == 3
    assert step.is_parallel is True


def test_level_three_approval_is_final():
    step = next_step(_matrix(), 3, "approve", "A3A")
    assert step.next_level is None
    assert step.is_final is True


def test_invalid_action_raises():
    with pytest.raises(WorkflowValidationError):
        next_step(_matrix(), 1, "escalate", "A1")


def test_current_cycle_starts_after_last_boundary():
    history = [_entry("approved", "A1"), _entry("rejected", "A2"), _entry("approved", "A1")]
    cycle = current_cycle(history)
    assert len(cycle) == 1
    assert cycle[0].approver_emp_code == "A1"


# ─── State mapping and transition table ──────────────────────────────────────

def test_state_of_maps_pending_levels():
    assert state_of("pending", 1, _matrix()) == ApprovalState.LEVEL_1
    assert state_of("pending", 2, _matrix()) == ApprovalState.LEVEL_2
    assert state_of("pending", 3, _matrix()) == ApprovalState.LEVEL_3_PARALLEL
    assert state_of("pending", 3, _matrix(a3b=None)) == ApprovalState.LEVEL_3_SINGLE
    assert state_of("returned", None, _matrix()) == ApprovalState.RETURNED


def test_state_of_rejects_inconsistent_pair():
    with pytest.raises(InvalidStateError):
        state_of("pending", None, _matrix())


def test_terminal_states_have_no_exits():
    assert TRANSITIONS[ApprovalState.APPROVED] == frozenset()
    assert TRANSITIONS[ApprovalState.REJECTED] == frozenset()
    assert can_transition(ApprovalState.RETURNED, ApprovalState.LEVEL_1)
    assert not can_transition(ApprovalState.RETURNED, ApprovalState.LEVEL_2)


def test_ensure_transition_raises_on_forbidden_move():
    with pytest.raises(InvalidStateError):
        ensure_transition(ApprovalState.APPROVED, ApprovalState.LEVEL_1)


def test_target_state_follows_step():
    matrix = _matrix()
    assert target_state("approve", next_step(matrix, 1, "approve", "A1")) == ApprovalState.LEVEL_2
    assert target_state("approve", next_step(matrix, 2, "approve", "A2")) == ApprovalState.LEVEL_3_PARALLEL
    assert target_state("approve", next_step(matrix, 3, "approve", "A3A")) == ApprovalState.APPROVED
    assert target_state("reject", next_step(matrix, 3, "reject", "A3A")) == ApprovalState.REJECTED
    assert status_for(ApprovalState.LEVEL_3_SINGLE) == "pending"
    assert status_for(ApprovalState.RETURNED) == "returned"
