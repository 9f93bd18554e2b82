"""Approval state machine for purchase requests.

Pure decision logic, no database access. The transactional side (loading
the request, guarding against races, writing the audit entry) lives in
prflow.services.approval.

States:
    level_1:           waiting on approver_1 (or manager_1 after escalation)
    level_2:           waiting on approver_2 (or manager_2 after escalation)
    level_3_parallel:  waiting on approver_3a OR approver_3b; first approval wins
    level_3_single:    waiting on the only configured level-3 approver
    approved:          terminal
    rejected:          terminal (approver rejection or level-3 timeout)
    returned:          sent back to the requester; resubmission restarts at level_1
"""
import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from prflow.core.errors import InvalidStateError, WorkflowValidationError

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"

    @property
    def audit_action(self) -> str:
        """Past-tense verb recorded in the audit log."""
        return {"approve": "approved", "reject": "rejected", "return": "returned"}[self.value]


class ApprovalState(str, enum.Enum):
    LEVEL_1 = "level_1"
    LEVEL_2 = "level_2"
    LEVEL_3_PARALLEL = "level_3_parallel"
    LEVEL_3_SINGLE = "level_3_single"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


TRANSITIONS: dict[ApprovalState, frozenset[ApprovalState]] = {
    ApprovalState.LEVEL_1: frozenset({
        ApprovalState.LEVEL_2,
        ApprovalState.APPROVED,
        ApprovalState.REJECTED,
        ApprovalState.RETURNED,
    }),
    ApprovalState.LEVEL_2: frozenset({
        ApprovalState.LEVEL_3_PARALLEL,
        ApprovalState.LEVEL_3_SINGLE,
        ApprovalState.APPROVED,
        ApprovalState.REJECTED,
        ApprovalState.RETURNED,
    }),
    ApprovalState.LEVEL_3_PARALLEL: frozenset({
        ApprovalState.APPROVED,
        ApprovalState.REJECTED,
        ApprovalState.RETURNED,
    }),
    ApprovalState.LEVEL_3_SINGLE: frozenset({
        ApprovalState.APPROVED,
        ApprovalState.REJECTED,
        ApprovalState.RETURNED,
    }),
    ApprovalState.APPROVED: frozenset(),
    ApprovalState.REJECTED: frozenset(),
    ApprovalState.RETURNED: frozenset({ApprovalState.LEVEL_1}),
}

# (state, level) each pending state persists as
STATE_LEVELS: dict[ApprovalState, int | None] = {
    ApprovalState.LEVEL_1: 1,
    ApprovalState.LEVEL_2: 2,
    ApprovalState.LEVEL_3_PARALLEL: 3,
    ApprovalState.LEVEL_3_SINGLE: 3,
    ApprovalState.APPROVED: None,
    ApprovalState.REJECTED: None,
    ApprovalState.RETURNED: None,
}

CYCLE_BOUNDARY_ACTIONS = ("returned", "rejected")


@dataclass(frozen=True)
class NextStep:
    """Outcome of next_step().

    next_level is None when no further routing happens: the caller either
    finalizes (approve) or sets the terminal status directly (reject/return).
    When next_level is set, is_final flags that the next level is the last.
    """

    next_level: int | None
    next_approvers: tuple[str, ...] = ()
    is_final: bool = False
    is_parallel: bool = False

    @property
    def next_approver(self) -> str | None:
        """Single approver to store on the request, None when several may act."""
        if len(self.next_approvers) == 1:
            return self.next_approvers[0]
        return None


def parse_action(action: str | Action) -> Action:
    try:
        return Action(action)
    except ValueError:
        raise WorkflowValidationError(
            f"Invalid action '{action}'. Must be one of: approve, reject, return."
        )


def current_cycle(audit_history: Sequence[Any]) -> list[Any]:
    """Entries after the last returned/rejected action.

    audit_history must be ordered oldest first. Each resubmission starts a
    new cycle, so approvals from earlier cycles never count.
    """
    entries = list(audit_history)
    for idx in range(len(entries) - 1, -1, -1):
        if entries[idx].action in CYCLE_BOUNDARY_ACTIONS:
            return entries[idx + 1:]
    return entries


def _approved_in_cycle(cycle: Iterable[Any], emp_codes: Iterable[str]) -> bool:
    codes = set(emp_codes)
    return any(e.action == "approved" and e.approver_emp_code in codes for e in cycle)


def next_step(
    matrix: Any,
    current_level: int,
    action: str | Action,
    acting_approver: str | None,
    audit_history: Sequence[Any] = (),
) -> NextStep:
    """Compute where a request goes after `acting_approver` performs `action`.

    Args:
        matrix: ApprovalMatrix (anything with approver_*_emp_code attributes).
        current_level: Level the request is at (1-3).
        action: approve, reject or return.
        acting_approver: Employee code of the actor.
        audit_history: AuditLog entries for this request, oldest first.
    """
    act = parse_action(action)
    logger.debug(
        "next_step: level=%s action=%s actor=%s", current_level, act.value, acting_approver,
    )

    if act in (Action.RETURN, Action.REJECT):
        return NextStep(next_level=None, is_final=False)

    if current_level == 1 and matrix.approver_2_emp_code:
        return NextStep(next_level=2, next_approvers=(matrix.approver_2_emp_code,))

    approver_3a = matrix.approver_3a_emp_code
    approver_3b = matrix.approver_3b_emp_code
    if current_level == 2 and (approver_3a or approver_3b):
        if approver_3a and approver_3b:
            cycle = current_cycle(audit_history)
            if _approved_in_cycle(cycle, (approver_3a, approver_3b)):
                return NextStep(next_level=None, is_final=True, is_parallel=True)
            return NextStep(
                next_level=3,
                next_approvers=(approver_3a, approver_3b),
                is_final=False,
                is_parallel=True,
            )
        return NextStep(next_level=3, next_approvers=(approver_3a or approver_3b,), is_final=True)

    return NextStep(next_level=None, is_final=True)


# ─── Explicit state mapping ───

def _has_parallel_level_3(matrix: Any) -> bool:
    return bool(matrix.approver_3a_emp_code and matrix.approver_3b_emp_code)


def state_of(status: str, level: int | None, matrix: Any) -> ApprovalState:
    """Map a persisted (status, level) pair onto an ApprovalState.

    Raises InvalidStateError when the pair breaks the pending/level invariant.
    """
    if status == "approved":
        return ApprovalState.APPROVED
    if status == "rejected":
        return ApprovalState.REJECTED
    if status == "returned":
        return ApprovalState.RETURNED
    if status == "pending":
        if level == 1:
            return ApprovalState.LEVEL_1
        if level == 2:
            return ApprovalState.LEVEL_2
        if level == 3:
            if _has_parallel_level_3(matrix):
                return ApprovalState.LEVEL_3_PARALLEL
            return ApprovalState.LEVEL_3_SINGLE
    raise InvalidStateError(f"Inconsistent request state: status={status!r} level={level!r}.")


def target_state(action: str | Action, step: NextStep) -> ApprovalState:
    """State the request lands in once `step` is applied."""
    act = parse_action(action)
    if act == Action.REJECT:
        return ApprovalState.REJECTED
    if act == Action.RETURN:
        return ApprovalState.RETURNED
    if step.next_level is None:
        return ApprovalState.APPROVED
    if step.next_level == 2:
        return ApprovalState.LEVEL_2
    if step.next_level == 3:
        return ApprovalState.LEVEL_3_PARALLEL if step.is_parallel else ApprovalState.LEVEL_3_SINGLE
    raise InvalidStateError(f"No state for approval level {step.next_level}.")


def can_transition(from_state: ApprovalState, to_state: ApprovalState) -> bool:
    return to_state in TRANSITIONS[from_state]


def ensure_transition(from_state: ApprovalState, to_state: ApprovalState) -> ApprovalState:
    """Return to_state, or raise InvalidStateError if the table forbids the move."""
    if not can_transition(from_state, to_state):
        raise InvalidStateError(
            f"Invalid state transition from '{from_state.value}' to '{to_state.value}'."
        )
    return to_state


def status_for(state: ApprovalState) -> str:
    """Persisted status column value for a state."""
    if state in (ApprovalState.APPROVED, ApprovalState.REJECTED, ApprovalState.RETURNED):
        return state.value
    return "pending"
