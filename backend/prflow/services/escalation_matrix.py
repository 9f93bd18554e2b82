"""Per-request escalation snapshot.

The snapshot freezes approvers and their managers at submission time.
Managers are resolved by name: approver.manager_name is matched against
users.name, with manager_email breaking ties between namesakes.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prflow.models.escalation import EscalationLog, EscalationMatrix
from prflow.models.purchase_request import PurchaseRequest
from prflow.models.user import User
from prflow.services import approval_matrix as approval_matrix_svc

logger = logging.getLogger(__name__)


def _find_manager(db: Session, approver: User | None) -> User | None:
    if approver is None or not approver.manager_name:
        return None
    candidates = db.execute(
        select(User)
        .where(User.name == approver.manager_name, User.deleted_at.is_(None))
        .order_by(User.emp_code)
    ).scalars().all()
    if not candidates:
        logger.debug("Manager %r of %s not found", approver.manager_name, approver.emp_code)
        return None
    if len(candidates) > 1 and approver.manager_email:
        wanted = approver.manager_email.lower()
        for candidate in candidates:
            if candidate.email and candidate.email.lower() == wanted:
                return candidate
    return candidates[0]


def materialize(db: Session, pr_number: str) -> EscalationMatrix | None:
    """Create the escalation snapshot for a purchase request.

    Runs inside a SAVEPOINT: a failure is logged and None returned, while
    the surrounding transaction (the PR creation) carries on.
    """
    request = db.execute(
        select(PurchaseRequest).where(PurchaseRequest.pr_number == pr_number)
    ).scalars().first()
    if request is None or not request.requester_emp_code:
        logger.warning("Cannot materialize escalation matrix: PR %s not found", pr_number)
        return None

    matrix = approval_matrix_svc.resolve(db, request.requester_emp_code)
    if matrix is None:
        logger.warning(
            "Cannot materialize escalation matrix for %s: no approval matrix for %s",
            pr_number, request.requester_emp_code,
        )
        return None

    codes = {
        code
        for code in (
            request.requester_emp_code,
            matrix.approver_1_emp_code,
            matrix.approver_2_emp_code,
            matrix.approver_3a_emp_code,
            matrix.approver_3b_emp_code,
        )
        if code
    }
    users = {
        user.emp_code: user
        for user in db.execute(select(User).where(User.emp_code.in_(codes))).scalars().all()
    }

    def person(slot: str) -> tuple[str | None, str | None, str | None]:
        code, name, email = matrix.approver(slot)
        user = users.get(code) if code else None
        if user is not None:
            return code, user.name or name, user.email or email
        return code, name, email

    requester = users.get(request.requester_emp_code)
    approver_1 = person("approver_1")
    approver_2 = person("approver_2")
    approver_3a = person("approver_3a")
    approver_3b = person("approver_3b")
    manager_1 = _find_manager(db, users.get(approver_1[0]) if approver_1[0] else None)
    manager_2 = _find_manager(db, users.get(approver_2[0]) if approver_2[0] else None)

    snapshot = EscalationMatrix(
        pr_number=pr_number,
        requester_code=request.requester_emp_code,
        requester_name=requester.name if requester else None,
        requester_mail=requester.email if requester else None,
        approver_1_code=approver_1[0],
        approver_1_name=approver_1[1],
        approver_1_mail=approver_1[2],
        approver_2_code=approver_2[0],
        approver_2_name=approver_2[1],
        approver_2_mail=approver_2[2],
        approver_3a_code=approver_3a[0],
        approver_3a_name=approver_3a[1],
        approver_3a_mail=approver_3a[2],
        approver_3b_code=approver_3b[0],
        approver_3b_name=approver_3b[1],
        approver_3b_mail=approver_3b[2],
        manager_1_code=manager_1.emp_code if manager_1 else None,
        manager_1_name=manager_1.name if manager_1 else None,
        manager_1_mail=manager_1.email if manager_1 else None,
        manager_2_code=manager_2.emp_code if manager_2 else None,
        manager_2_name=manager_2.name if manager_2 else None,
        manager_2_mail=manager_2.email if manager_2 else None,
    )

    try:
        with db.begin_nested():
            db.add(snapshot)
    except SQLAlchemyError:
        logger.exception("Failed to materialize escalation matrix for %s", pr_number)
        return None

    logger.info(
        "Escalation matrix created for %s (manager_1=%s, manager_2=%s)",
        pr_number, snapshot.manager_1_code, snapshot.manager_2_code,
    )
    return snapshot


def get_escalation_matrix(db: Session, pr_number: str) -> EscalationMatrix | None:
    return db.execute(
        select(EscalationMatrix).where(EscalationMatrix.pr_number == pr_number)
    ).scalars().first()


def escalation_logs(db: Session, pr_number: str) -> list[EscalationLog]:
    """Escalation events for a request, oldest first."""
    return list(
        db.execute(
            select(EscalationLog)
            .where(EscalationLog.pr_number == pr_number)
            .order_by(EscalationLog.escalated_at.asc())
        ).scalars().all()
    )


def clear_escalation_logs(db: Session, pr_number: str) -> int:
    """Delete every escalation event for a request (resubmission restarts the clock)."""
    result = db.execute(delete(EscalationLog).where(EscalationLog.pr_number == pr_number))
    return result.rowcount or 0
