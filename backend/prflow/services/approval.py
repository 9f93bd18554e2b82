"""Approval action handler.

Applies approve / reject / return decisions to a purchase request. The
routing decision comes from prflow.rules.approval_flow; this module loads
state, checks authorization, persists the transition race-safely and
writes the audit trail.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from prflow.core.clock import utcnow
from prflow.core.errors import ConfigurationError, InvalidStateError, UnauthorizedActionError
from prflow.models.approval_matrix import ApprovalMatrix
from prflow.models.purchase_request import PurchaseRequest
from prflow.rules.approval_flow import (
    STATE_LEVELS,
    Action,
    NextStep,
    ensure_transition,
    next_step,
    parse_action,
    state_of,
    status_for,
    target_state,
)
from prflow.rules.authorization import can_act
from prflow.services import approval_matrix as approval_matrix_svc
from prflow.services import audit as audit_svc
from prflow.services import email as email_svc
from prflow.services import escalation_matrix as escalation_matrix_svc
from prflow.services import purchase_request as purchase_request_svc

logger = logging.getLogger(__name__)


@dataclass
class ActionOutcome:
    pr_number: str
    action: str
    status: str
    current_approval_level: int | None
    current_approver_emp_code: str | None
    is_final: bool
    message: str
    next_approvers: list[str] = field(default_factory=list)


def _approver_emails(matrix: ApprovalMatrix, codes: tuple[str, ...]) -> list[str | None]:
    by_code = {}
    for slot in ("approver_1", "approver_2", "approver_3a", "approver_3b"):
        code, _name, email = matrix.approver(slot)
        if code:
            by_code.setdefault(code, email)
    return [by_code.get(code) for code in codes]


def _message(act: Action, status: str, step: NextStep, level: int | None) -> str:
    if act == Action.REJECT:
        return "Purchase request rejected."
    if act == Action.RETURN:
        return "Purchase request returned to the requester for changes."
    if status == "approved":
        return "Purchase request approved."
    if step.is_parallel:
        return f"Approved. Forwarded to level {level} for a decision by either final approver."
    return f"Approved. Forwarded to level {level}."


def process_approval_action(
    db: Session,
    pr_number: str,
    actor_emp_code: str,
    action: str | Action,
    comment: str | None = None,
    now: datetime | None = None,
) -> ActionOutcome:
    """Apply an approval action by `actor_emp_code`.

    Raises:
        WorkflowValidationError: unknown action.
        NotFoundError: no such request.
        InvalidStateError: request not pending, or another action won a race.
        ConfigurationError: requester's approval matrix is gone.
        UnauthorizedActionError: actor may not act at the current level.
    """
    act = parse_action(action)
    now = now or utcnow()

    request: PurchaseRequest = purchase_request_svc.get_purchase_request(db, pr_number, for_update=True)
    if request.status != "pending":
        raise InvalidStateError(
            f"Purchase request {pr_number} has already been acted upon (status: {request.status})."
        )

    matrix = approval_matrix_svc.resolve(db, request.requester_emp_code)
    if matrix is None:
        raise ConfigurationError(
            f"No approval matrix configured for requester {request.requester_emp_code}."
        )

    snapshot = escalation_matrix_svc.get_escalation_matrix(db, pr_number)
    logs = escalation_matrix_svc.escalation_logs(db, pr_number)
    if not can_act(request, actor_emp_code, matrix, snapshot, logs):
        raise UnauthorizedActionError(
            f"You are not authorized to act on purchase request {pr_number} "
            f"at level {request.current_approval_level}."
        )

    level = request.current_approval_level
    expected_approver = request.current_approver_emp_code
    from_state = state_of(request.status, level, matrix)
    step = next_step(matrix, level, act, actor_emp_code, audit_svc.history(db, pr_number))
    to_state = ensure_transition(from_state, target_state(act, step))

    new_status = status_for(to_state)
    new_level = STATE_LEVELS[to_state]
    new_approver = step.next_approver if new_level is not None else None

    applied = purchase_request_svc.guarded_update(
        db,
        pr_number,
        expected_status="pending",
        expected_level=level,
        expected_approver=expected_approver,
        values={
            "status": new_status,
            "current_approval_level": new_level,
            "current_approver_emp_code": new_approver,
            "updated_by": actor_emp_code,
            "updated_at": now,
        },
    )
    if not applied:
        db.rollback()
        logger.info("Lost race on %s: %s by %s discarded", pr_number, act.value, actor_emp_code)
        raise InvalidStateError(f"Purchase request {pr_number} has already been acted upon.")

    audit_svc.log(
        db,
        pr_number=pr_number,
        approver_emp_code=actor_emp_code,
        approval_level=level,
        action=act.audit_action,
        comment=comment,
        acted_at=now,
    )
    db.commit()
    db.refresh(request)

    logger.info(
        "PR %s: %s by %s at level %s -> %s (level=%s approver=%s)",
        pr_number, act.value, actor_emp_code, level, new_status, new_level, new_approver,
    )

    if new_level is not None:
        email_svc.send_approval_request_email(
            request, _approver_emails(matrix, step.next_approvers), level=new_level
        )
    else:
        email_svc.send_decision_email(
            request,
            purchase_request_svc.requester_mail(db, request),
            decision=new_status,
            actor_emp_code=actor_emp_code,
            comment=comment,
        )

    return ActionOutcome(
        pr_number=pr_number,
        action=act.value,
        status=new_status,
        current_approval_level=new_level,
        current_approver_emp_code=new_approver,
        is_final=step.is_final,
        message=_message(act, new_status, step, new_level),
        next_approvers=list(step.next_approvers) if new_level is not None else [],
    )
