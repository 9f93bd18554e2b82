"""Purchase request API endpoints.

Handlers are plain `def` functions: the workflow services use the sync
session, so FastAPI runs them in its threadpool.
"""
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from prflow.core.deps import get_current_user
from prflow.db.session import get_sync_session
from prflow.models.purchase_request import PurchaseRequest
from prflow.models.user import User
from prflow.schemas.escalation import EscalationDue, EscalationLogOut, EscalationStatusOut
from prflow.schemas.purchase_request import (
    ApprovalActionOut,
    ApprovalActionRequest,
    AuditLogOut,
    PurchaseRequestCreate,
    PurchaseRequestListResponse,
    PurchaseRequestOut,
    PurchaseRequestSummary,
    PurchaseRequestUpdate,
)
from prflow.services import approval as approval_svc
from prflow.services import audit as audit_svc
from prflow.services import escalation as escalation_svc
from prflow.services import purchase_request as purchase_request_svc

router = APIRouter()

DbSession = Annotated[Session, Depends(get_sync_session)]
CurrentUser = Annotated[User, Depends(get_current_user)]


def _load_visible(db: Session, pr_number: str, user: User) -> PurchaseRequest:
    request = purchase_request_svc.get_purchase_request(db, pr_number)
    if not purchase_request_svc.can_view(db, request, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this purchase request.",
        )
    return request


# ─── Submission and listing ───

@router.post("", response_model=PurchaseRequestOut, status_code=status.HTTP_201_CREATED)
def create_purchase_request(
    body: PurchaseRequestCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Submit a purchase request; it starts at approval level 1."""
    return purchase_request_svc.create_purchase_request(db, current_user, body)


@router.get("", response_model=PurchaseRequestListResponse)
def list_purchase_requests(
    db: DbSession,
    current_user: CurrentUser,
    scope: Annotated[Literal["mine", "awaiting_action"], Query()] = "mine",
    status_filter: Annotated[str | None, Query(alias="status")] = None,
):
    """List the caller's own requests, or the ones waiting on the caller."""
    if scope == "awaiting_action":
        items = purchase_request_svc.list_awaiting_action(db, current_user.emp_code)
        if status_filter:
            items = [item for item in items if item.status == status_filter]
    else:
        items = purchase_request_svc.list_for_requester(db, current_user.emp_code, status_filter)
    return PurchaseRequestListResponse(
        items=[PurchaseRequestSummary.model_validate(item) for item in items],
        total=len(items),
    )


@router.get("/{pr_number}", response_model=PurchaseRequestOut)
def get_purchase_request(pr_number: str, db: DbSession, current_user: CurrentUser):
    return _load_visible(db, pr_number, current_user)


@router.put("/{pr_number}", response_model=PurchaseRequestOut)
def update_purchase_request(
    pr_number: str,
    body: PurchaseRequestUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Edit a level-1 request, or resubmit a returned one."""
    return purchase_request_svc.update_purchase_request(db, pr_number, current_user.emp_code, body)


# ─── Approval actions ───

def _act(db: Session, pr_number: str, user: User, action: str, body: ApprovalActionRequest | None):
    outcome = approval_svc.process_approval_action(
        db,
        pr_number=pr_number,
        actor_emp_code=user.emp_code,
        action=action,
        comment=body.comment if body else None,
    )
    return ApprovalActionOut.model_validate(outcome)


@router.post("/{pr_number}/approve", response_model=ApprovalActionOut)
def approve_purchase_request(
    pr_number: str,
    db: DbSession,
    current_user: CurrentUser,
    body: ApprovalActionRequest | None = None,
):
    return _act(db, pr_number, current_user, "approve", body)


@router.post("/{pr_number}/reject", response_model=ApprovalActionOut)
def reject_purchase_request(
    pr_number: str,
    db: DbSession,
    current_user: CurrentUser,
    body: ApprovalActionRequest | None = None,
):
    return _act(db, pr_number, current_user, "reject", body)


@router.post("/{pr_number}/return", response_model=ApprovalActionOut)
def return_purchase_request(
    pr_number: str,
    db: DbSession,
    current_user: CurrentUser,
    body: ApprovalActionRequest | None = None,
):
    return _act(db, pr_number, current_user, "return", body)


# ─── History ───

@router.get("/{pr_number}/audit-logs", response_model=list[AuditLogOut])
def list_audit_logs(pr_number: str, db: DbSession, current_user: CurrentUser):
    request = _load_visible(db, pr_number, current_user)
    return audit_svc.history(db, request.pr_number)


@router.get("/{pr_number}/escalations", response_model=EscalationStatusOut)
def get_escalation_status(pr_number: str, db: DbSession, current_user: CurrentUser):
    """Escalation events so far and the next scheduled escalation, if any."""
    request = _load_visible(db, pr_number, current_user)
    snapshot, logs, check = escalation_svc.escalation_status(db, request)
    return EscalationStatusOut(
        pr_number=request.pr_number,
        has_escalation_matrix=snapshot is not None,
        logs=[EscalationLogOut.model_validate(log) for log in logs],
        next_due=(
            EscalationDue(level=check.level, kind=check.kind, due_at=check.due_at)
            if check is not None
            else None
        ),
    )
