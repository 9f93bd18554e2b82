"""Purchase request lifecycle: numbering, submission, edits and resubmission.

All functions take a sync SQLAlchemy Session so the same code serves the
API handlers, Celery tasks and the in-process scheduler.
"""
import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from prflow.core.clock import utcnow
from prflow.core.errors import (
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedActionError,
    WorkflowValidationError,
)
from prflow.models.purchase_request import LineItem, PurchaseRequest
from prflow.models.user import User
from prflow.rules.approval_flow import ApprovalState, ensure_transition, state_of
from prflow.rules.authorization import eligible_approvers
from prflow.schemas.purchase_request import LineItemIn, PurchaseRequestCreate, PurchaseRequestUpdate
from prflow.services import approval_matrix as approval_matrix_svc
from prflow.services import audit as audit_svc
from prflow.services import email as email_svc
from prflow.services import escalation_matrix as escalation_matrix_svc

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 3
_SEQUENCE_RE = re.compile(r"-(\d+)$")
_ANY = object()


# ─── Lookups ───

def get_purchase_request(db: Session, pr_number: str, for_update: bool = False) -> PurchaseRequest:
    """Load a request with its line items or raise NotFoundError."""
    query = (
        select(PurchaseRequest)
        .options(selectinload(PurchaseRequest.line_items))
        .where(PurchaseRequest.pr_number == pr_number)
    )
    if for_update:
        query = query.with_for_update()
    # other writers (scanner, racing approvers) may have changed the row
    request = db.execute(query.execution_options(populate_existing=True)).scalars().first()
    if request is None:
        raise NotFoundError(f"Purchase request {pr_number} not found.")
    return request


def guarded_update(
    db: Session,
    pr_number: str,
    *,
    expected_status: str,
    expected_level: Any = _ANY,
    expected_approver: Any = _ANY,
    values: dict[str, Any],
) -> bool:
    """Apply `values` only if the row still matches the expected state.

    Returns False when another writer changed the request first.
    """
    stmt = update(PurchaseRequest).where(
        PurchaseRequest.pr_number == pr_number,
        PurchaseRequest.status == expected_status,
    )
    if expected_level is not _ANY:
        if expected_level is None:
            stmt = stmt.where(PurchaseRequest.current_approval_level.is_(None))
        else:
            stmt = stmt.where(PurchaseRequest.current_approval_level == expected_level)
    if expected_approver is not _ANY:
        if expected_approver is None:
            stmt = stmt.where(PurchaseRequest.current_approver_emp_code.is_(None))
        else:
            stmt = stmt.where(PurchaseRequest.current_approver_emp_code == expected_approver)
    result = db.execute(
        stmt.values(**values).execution_options(synchronize_session="evaluate")
    )
    return result.rowcount == 1


def requester_mail(db: Session, request: PurchaseRequest) -> str | None:
    snapshot = escalation_matrix_svc.get_escalation_matrix(db, request.pr_number)
    if snapshot is not None and snapshot.requester_mail:
        return snapshot.requester_mail
    return db.execute(
        select(User.email).where(User.emp_code == request.requester_emp_code)
    ).scalar()


# ─── Requisition numbering ───

def generate_requisition_number(db: Session, entity: str, now: datetime | None = None) -> str:
    """Next `{entity}-{yy}-{NNNNNN}` number for the entity and year."""
    now = now or utcnow()
    prefix = f"{entity}-{now:%y}-"
    latest = db.execute(
        select(PurchaseRequest.pr_number)
        .where(PurchaseRequest.pr_number.startswith(prefix, autoescape=True))
        .order_by(func.length(PurchaseRequest.pr_number).desc(), PurchaseRequest.pr_number.desc())
        .limit(1)
    ).scalar()

    sequence = 1
    if latest:
        match = _SEQUENCE_RE.search(latest)
        if match:
            sequence = int(match.group(1)) + 1
    return f"{prefix}{sequence:06d}"


# ─── Submission ───

def _build_line_items(items: list[LineItemIn]) -> list[LineItem]:
    return [
        LineItem(line_number=idx, **item.model_dump())
        for idx, item in enumerate(items, start=1)
    ]


def create_purchase_request(
    db: Session,
    requester: User,
    data: PurchaseRequestCreate,
    now: datetime | None = None,
) -> PurchaseRequest:
    """Submit a new purchase request at level 1.

    Raises ConfigurationError when the requester has no approval matrix.
    The escalation snapshot is taken in the same transaction; if it cannot
    be written the request is still created, without escalation.
    """
    now = now or utcnow()
    matrix = approval_matrix_svc.resolve(db, requester.emp_code)
    if matrix is None:
        raise ConfigurationError(
            f"No approval matrix configured for {requester.emp_code}; "
            "the purchase request cannot be submitted."
        )

    entity = data.entity or requester.entity
    department = data.department or requester.department or matrix.department
    location = data.location or requester.location or matrix.site
    if not entity:
        raise WorkflowValidationError("Entity is required to number the purchase request.")
    if not department or not location:
        raise WorkflowValidationError("Department and location are required.")

    total = data.total_estimated_cost
    if total is None:
        total = sum((item.estimated_cost for item in data.line_items), Decimal("0"))

    request = None
    for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
        pr_number = generate_requisition_number(db, entity, now)
        candidate = PurchaseRequest(
            pr_number=pr_number,
            entity=entity,
            title=data.title,
            request_date=data.request_date or now.date(),
            department=department,
            location=location,
            requester_emp_code=requester.emp_code,
            business_justification_code=data.business_justification_code,
            business_justification_details=data.business_justification_details,
            total_estimated_cost=total,
            status="pending",
            current_approval_level=1,
            current_approver_emp_code=matrix.approver_1_emp_code,
            created_by=requester.emp_code,
            updated_by=requester.emp_code,
            created_at=now,
            updated_at=now,
            line_items=_build_line_items(data.line_items),
        )
        try:
            with db.begin_nested():
                db.add(candidate)
        except IntegrityError:
            logger.warning("Requisition number %s already taken (attempt %d)", pr_number, attempt)
            continue
        request = candidate
        break

    if request is None:
        db.rollback()
        raise InvalidStateError("Could not allocate a requisition number; please retry.")

    escalation_matrix_svc.materialize(db, request.pr_number)
    db.commit()

    logger.info(
        "Purchase request %s submitted by %s; waiting on %s",
        request.pr_number, requester.emp_code, request.current_approver_emp_code,
    )
    email_svc.send_approval_request_email(request, [matrix.approver_1_email], level=1)
    return request


# ─── Edit / resubmission ───

def _apply_changes(request: PurchaseRequest, changes: PurchaseRequestUpdate) -> None:
    fields = changes.model_dump(exclude_unset=True, exclude={"line_items", "comment"})
    for field, value in fields.items():
        if value is not None:
            setattr(request, field, value)
    if changes.line_items is not None:
        request.line_items = _build_line_items(changes.line_items)
        if "total_estimated_cost" not in fields or fields["total_estimated_cost"] is None:
            request.total_estimated_cost = sum(
                (item.estimated_cost for item in changes.line_items), Decimal("0")
            )


def update_purchase_request(
    db: Session,
    pr_number: str,
    actor_emp_code: str,
    changes: PurchaseRequestUpdate,
    now: datetime | None = None,
) -> PurchaseRequest:
    """Edit a request, resubmitting it when it was returned.

    Only the requester may edit. A pending request can be edited while it
    is still at level 1; a returned request restarts at level 1 with a
    clean escalation history. Approved and rejected requests are final.
    """
    now = now or utcnow()
    request = get_purchase_request(db, pr_number, for_update=True)

    if request.requester_emp_code != actor_emp_code:
        raise UnauthorizedActionError("Only the requester can edit this purchase request.")

    if request.status in ("approved", "rejected"):
        raise InvalidStateError(
            f"Purchase request {pr_number} is {request.status} and can no longer be changed."
        )

    if request.status == "pending":
        if request.current_approval_level != 1:
            raise InvalidStateError(
                f"Purchase request {pr_number} is already under review at level "
                f"{request.current_approval_level} and cannot be edited."
            )
        _apply_changes(request, changes)
        request.updated_by = actor_emp_code
        request.updated_at = now
        db.commit()
        logger.info("Purchase request %s edited by %s", pr_number, actor_emp_code)
        return request

    # returned: resubmit
    matrix = approval_matrix_svc.resolve(db, request.requester_emp_code)
    if matrix is None:
        raise ConfigurationError(
            f"No approval matrix configured for {request.requester_emp_code}; "
            "the purchase request cannot be resubmitted."
        )
    ensure_transition(state_of(request.status, request.current_approval_level, matrix), ApprovalState.LEVEL_1)

    _apply_changes(request, changes)
    resubmitted = guarded_update(
        db,
        pr_number,
        expected_status="returned",
        values={
            "status": "pending",
            "current_approval_level": 1,
            "current_approver_emp_code": matrix.approver_1_emp_code,
            "updated_by": actor_emp_code,
            "updated_at": now,
        },
    )
    if not resubmitted:
        db.rollback()
        raise InvalidStateError(f"Purchase request {pr_number} has already been resubmitted.")

    cleared = escalation_matrix_svc.clear_escalation_logs(db, pr_number)
    audit_svc.log(
        db,
        pr_number=pr_number,
        approver_emp_code=actor_emp_code,
        approval_level=0,
        action="resubmitted",
        comment=changes.comment,
        acted_at=now,
    )
    db.commit()
    db.refresh(request)

    logger.info(
        "Purchase request %s resubmitted by %s (%d escalation log(s) cleared)",
        pr_number, actor_emp_code, cleared,
    )
    email_svc.send_approval_request_email(request, [matrix.approver_1_email], level=1)
    return request


# ─── Listings ───

def list_for_requester(
    db: Session,
    requester_emp_code: str,
    status: str | None = None,
) -> list[PurchaseRequest]:
    query = select(PurchaseRequest).where(PurchaseRequest.requester_emp_code == requester_emp_code)
    if status:
        query = query.where(PurchaseRequest.status == status)
    return list(db.execute(
        query.order_by(PurchaseRequest.created_at.desc()).execution_options(populate_existing=True)
    ).scalars().all())


def list_awaiting_action(db: Session, emp_code: str) -> list[PurchaseRequest]:
    """Pending requests `emp_code` may act on right now, escalations included."""
    candidates = db.execute(
        select(PurchaseRequest)
        .where(
            PurchaseRequest.status == "pending",
            or_(
                PurchaseRequest.current_approver_emp_code == emp_code,
                PurchaseRequest.current_approver_emp_code.is_(None),
            ),
        )
        .order_by(PurchaseRequest.created_at.asc())
        .execution_options(populate_existing=True)
    ).scalars().all()

    awaiting = []
    for request in candidates:
        if request.current_approver_emp_code == emp_code:
            awaiting.append(request)
            continue
        eligible = eligible_approvers(
            request,
            approval_matrix_svc.resolve(db, request.requester_emp_code),
            escalation_matrix_svc.get_escalation_matrix(db, request.pr_number),
            escalation_matrix_svc.escalation_logs(db, request.pr_number),
        )
        if emp_code in eligible:
            awaiting.append(request)
    return awaiting


def can_view(db: Session, request: PurchaseRequest, user: User) -> bool:
    """Requester, admins and anyone in the request's approval chain."""
    if user.role == "admin" or request.requester_emp_code == user.emp_code:
        return True
    snapshot = escalation_matrix_svc.get_escalation_matrix(db, request.pr_number)
    if snapshot is not None and user.emp_code in {
        snapshot.approver_1_code,
        snapshot.approver_2_code,
        snapshot.approver_3a_code,
        snapshot.approver_3b_code,
        snapshot.manager_1_code,
        snapshot.manager_2_code,
    }:
        return True
    matrix = approval_matrix_svc.resolve(db, request.requester_emp_code)
    if matrix is not None and user.emp_code in {
        matrix.approver_1_emp_code,
        matrix.approver_2_emp_code,
        matrix.approver_3a_emp_code,
        matrix.approver_3b_emp_code,
    }:
        return True
    return any(e.approver_emp_code == user.emp_code for e in audit_svc.history(db, request.pr_number))
