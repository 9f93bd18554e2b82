"""Who may act on a pending purchase request."""
from collections.abc import Iterable
from typing import Any


def _escalated_levels(escalation_logs: Iterable[Any]) -> set[int]:
    return {log.level for log in escalation_logs if log.status == "escalated"}


def eligible_approvers(
    request: Any,
    approval_matrix: Any | None,
    escalation_matrix: Any | None,
    escalation_logs: Iterable[Any] = (),
) -> set[str]:
    """Employee codes allowed to act on `request` right now.

    Rules, any of which grants eligibility:
      (a) the request's current_approver_emp_code;
      (b) current approver is NULL, the current level has an `escalated` log,
          and the user is that tier's approver or manager in the snapshot;
      (c) level 3 with NULL current approver: approver_3a or approver_3b.
    """
    if request.status != "pending":
        return set()

    if request.current_approver_emp_code:
        return {request.current_approver_emp_code}

    level = request.current_approval_level
    eligible: set[str] = set()

    if escalation_matrix is not None and level in _escalated_levels(escalation_logs):
        eligible.update(code for code in escalation_matrix.tier(level) if code)

    if level == 3 and approval_matrix is not None:
        eligible.update(
            code
            for code in (approval_matrix.approver_3a_emp_code, approval_matrix.approver_3b_emp_code)
            if code
        )

    return eligible


def can_act(
    request: Any,
    user_emp_code: str | None,
    approval_matrix: Any | None,
    escalation_matrix: Any | None,
    escalation_logs: Iterable[Any] = (),
) -> bool:
    if not user_emp_code:
        return False
    return user_emp_code in eligible_approvers(
        request, approval_matrix, escalation_matrix, escalation_logs
    )
