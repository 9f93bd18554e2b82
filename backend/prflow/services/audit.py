"""Audit log helper: append-only writes to the audit_logs table."""
import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from prflow.core.clock import utcnow
from prflow.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log(
    db: Session,
    pr_number: str,
    approver_emp_code: str,
    approval_level: int,
    action: str,
    comment: str | None = None,
    acted_at: datetime | None = None,
) -> AuditLog:
    """Write a single audit entry.

    Args:
        db: Sync SQLAlchemy session. The caller controls the transaction.
        pr_number: Purchase request the action applies to.
        approver_emp_code: Employee who acted (the requester for resubmissions).
        approval_level: Level the request was at; 0 for resubmission.
        action: approved, rejected, returned or resubmitted.
        comment: Free-text remark from the actor.
        acted_at: Defaults to now.
    """
    entry = AuditLog(
        pr_number=pr_number,
        approver_emp_code=approver_emp_code,
        approval_level=approval_level,
        action=action,
        comment=comment,
        acted_at=acted_at or utcnow(),
    )
    db.add(entry)
    db.flush()
    logger.debug("Audit: %s %s level=%s by %s", action, pr_number, approval_level, approver_emp_code)
    return entry


def history(db: Session, pr_number: str) -> list[AuditLog]:
    """All entries for a request, oldest first."""
    return list(
        db.execute(
            select(AuditLog)
            .where(AuditLog.pr_number == pr_number)
            .order_by(AuditLog.acted_at.asc())
        ).scalars().all()
    )


def latest(
    db: Session,
    pr_number: str,
    action: str,
    emp_codes: Iterable[str | None] | None = None,
) -> AuditLog | None:
    """Most recent entry with `action`, optionally limited to some actors."""
    query = select(AuditLog).where(
        AuditLog.pr_number == pr_number,
        AuditLog.action == action,
    )
    if emp_codes is not None:
        codes = [code for code in emp_codes if code]
        if not codes:
            return None
        query = query.where(AuditLog.approver_emp_code.in_(codes))
    return db.execute(
        query.order_by(AuditLog.acted_at.desc()).limit(1)
    ).scalars().first()
