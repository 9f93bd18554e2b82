"""Escalation scanner.

One scan visits every pending purchase request:

  level 1  waiting longer than the level-1 threshold since the cycle began
           -> escalate to approver_1's manager (current approver cleared so
              both may act)
  level 2  waiting longer than the level-2 threshold since level 1 approved
           -> escalate to approver_2's manager
  level 3  waiting longer than the level-3 timeout since level 2 approved
           -> auto-reject

Thresholds are business hours (Sundays excluded when configured). Every
write is a conditional UPDATE on (status=pending, level=L), so an approver
acting at the same moment wins cleanly. Each request is processed in its
own transaction; one failure never stops the scan.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from prflow.core.clock import as_utc, utcnow
from prflow.core.config import Settings, settings
from prflow.models.escalation import EscalationLog, EscalationMatrix
from prflow.models.purchase_request import PurchaseRequest
from prflow.rules.business_hours import add_business_hours, business_hours_between
from prflow.services import audit as audit_svc
from prflow.services import email as email_svc
from prflow.services import escalation_matrix as escalation_matrix_svc
from prflow.services import purchase_request as purchase_request_svc

logger = logging.getLogger(__name__)

ESCALATE = "escalate"
AUTO_REJECT = "auto_reject"


@dataclass(frozen=True)
class EscalationPolicy:
    level1_hours: float = 12.0
    level2_hours: float = 12.0
    level3_timeout_hours: float = 24.0
    exclude_sundays: bool = True
    timezone: str = "Asia/Kolkata"

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "EscalationPolicy":
        return cls(
            level1_hours=cfg.ESCALATION_LEVEL1_HOURS,
            level2_hours=cfg.ESCALATION_LEVEL2_HOURS,
            level3_timeout_hours=cfg.ESCALATION_LEVEL3_TIMEOUT_HOURS,
            exclude_sundays=cfg.ESCALATION_EXCLUDE_SUNDAYS,
            timezone=cfg.ESCALATION_TIMEZONE,
        )

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    def threshold(self, level: int) -> float:
        return {1: self.level1_hours, 2: self.level2_hours, 3: self.level3_timeout_hours}[level]

    def elapsed(self, since: datetime, now: datetime) -> float:
        return business_hours_between(as_utc(since), as_utc(now), self.tz, self.exclude_sundays)

    def due_at(self, since: datetime, level: int) -> datetime:
        return add_business_hours(as_utc(since), self.threshold(level), self.tz, self.exclude_sundays)


@dataclass(frozen=True)
class PendingCheck:
    """What the scanner will do for a request once `due_at` passes."""

    level: int
    kind: str
    since: datetime
    due_at: datetime


def _has_log(db: Session, pr_number: str, level: int, status: str) -> bool:
    return db.execute(
        select(EscalationLog.id).where(
            EscalationLog.pr_number == pr_number,
            EscalationLog.level == level,
            EscalationLog.status == status,
        ).limit(1)
    ).first() is not None


def _cycle_start(db: Session, request: PurchaseRequest) -> datetime:
    resubmission = audit_svc.latest(db, request.pr_number, "resubmitted")
    if resubmission is not None:
        return resubmission.acted_at
    return request.created_at


def pending_check(
    db: Session,
    request: PurchaseRequest,
    snapshot: EscalationMatrix,
    policy: EscalationPolicy,
) -> PendingCheck | None:
    """The next escalation or timeout that applies to `request`, if any."""
    level = request.current_approval_level
    pr_number = request.pr_number

    if level == 1:
        if not snapshot.manager_1_code or _has_log(db, pr_number, 1, "escalated"):
            return None
        since = _cycle_start(db, request)
        kind = ESCALATE
    elif level == 2:
        if not snapshot.manager_2_code or _has_log(db, pr_number, 2, "escalated"):
            return None
        entry = audit_svc.latest(
            db, pr_number, "approved", (snapshot.approver_1_code, snapshot.manager_1_code)
        )
        if entry is None:
            return None
        since = entry.acted_at
        kind = ESCALATE
    elif level == 3:
        if _has_log(db, pr_number, 3, "rejected"):
            return None
        entry = audit_svc.latest(
            db, pr_number, "approved", (snapshot.approver_2_code, snapshot.manager_2_code)
        )
        if entry is None:
            return None
        since = entry.acted_at
        kind = AUTO_REJECT
    else:
        return None

    since = as_utc(since)
    return PendingCheck(level=level, kind=kind, since=since, due_at=policy.due_at(since, level))


# ─── Actions ───

def _escalate(
    db: Session,
    request: PurchaseRequest,
    snapshot: EscalationMatrix,
    level: int,
    now: datetime,
    policy: EscalationPolicy,
) -> bool:
    manager_mail = snapshot.manager_1_mail if level == 1 else snapshot.manager_2_mail
    approver_mail = snapshot.approver_1_mail if level == 1 else snapshot.approver_2_mail
    hours = policy.threshold(level)

    applied = purchase_request_svc.guarded_update(
        db,
        request.pr_number,
        expected_status="pending",
        expected_level=level,
        values={"current_approver_emp_code": None, "updated_at": now},
    )
    if not applied:
        db.rollback()
        logger.info("Escalation of %s at level %d skipped: request changed", request.pr_number, level)
        return False

    db.add(EscalationLog(
        pr_number=request.pr_number,
        level=level,
        status="escalated",
        escalated_at=now,
        email_sent_to=manager_mail,
        comment=f"No action from approver_{level} within {hours:g} business hours; "
                f"escalated to manager_{level}.",
    ))
    db.commit()

    logger.info("PR %s escalated at level %d to %s", request.pr_number, level, manager_mail)
    email_svc.send_escalation_email(request, manager_mail, approver_mail, level, hours)
    return True


def _auto_reject(
    db: Session,
    request: PurchaseRequest,
    snapshot: EscalationMatrix,
    now: datetime,
    policy: EscalationPolicy,
) -> bool:
    hours = policy.threshold(3)
    recipients = [
        snapshot.requester_mail,
        snapshot.approver_3a_mail,
        snapshot.approver_3b_mail,
    ]

    applied = purchase_request_svc.guarded_update(
        db,
        request.pr_number,
        expected_status="pending",
        expected_level=3,
        values={
            "status": "rejected",
            "current_approval_level": None,
            "current_approver_emp_code": None,
            "updated_at": now,
        },
    )
    if not applied:
        db.rollback()
        logger.info("Auto-rejection of %s skipped: request changed", request.pr_number)
        return False

    db.add(EscalationLog(
        pr_number=request.pr_number,
        level=3,
        status="rejected",
        escalated_at=now,
        email_sent_to=", ".join(r for r in recipients if r) or None,
        comment=f"No level 3 decision within {hours:g} business hours; auto-rejected.",
    ))
    db.commit()

    logger.info("PR %s auto-rejected after level 3 timeout", request.pr_number)
    email_svc.send_auto_rejection_email(request, recipients, hours)
    return True


def process_request(
    db: Session,
    pr_number: str,
    now: datetime,
    policy: EscalationPolicy,
) -> str:
    """Scan one request. Returns escalated, rejected or skipped."""
    request = db.execute(
        select(PurchaseRequest).where(PurchaseRequest.pr_number == pr_number)
        .execution_options(populate_existing=True)
    ).scalars().first()
    if request is None or request.status != "pending":
        return "skipped"

    snapshot = escalation_matrix_svc.get_escalation_matrix(db, pr_number)
    if snapshot is None:
        logger.warning("No escalation matrix for %s; escalation disabled", pr_number)
        return "skipped"

    check = pending_check(db, request, snapshot, policy)
    if check is None:
        return "skipped"

    elapsed = policy.elapsed(check.since, now)
    if elapsed < policy.threshold(check.level):
        logger.debug(
            "PR %s level %d: %.2f of %.2f business hours elapsed",
            pr_number, check.level, elapsed, policy.threshold(check.level),
        )
        return "skipped"

    if check.kind == AUTO_REJECT:
        return "rejected" if _auto_reject(db, request, snapshot, now, policy) else "skipped"
    return "escalated" if _escalate(db, request, snapshot, check.level, now, policy) else "skipped"


def run_escalation_scan(
    db: Session,
    now: datetime | None = None,
    policy: EscalationPolicy | None = None,
) -> dict[str, int]:
    """Run one pass over all pending requests.

    Returns:
        {"scanned", "escalated", "rejected", "skipped", "errors"} counts.
    """
    now = as_utc(now or utcnow())
    policy = policy or EscalationPolicy.from_settings()
    stats = {"scanned": 0, "escalated": 0, "rejected": 0, "skipped": 0, "errors": 0}

    pr_numbers = db.execute(
        select(PurchaseRequest.pr_number).where(PurchaseRequest.status == "pending")
    ).scalars().all()
    # release the read transaction before per-request work
    db.rollback()

    for pr_number in pr_numbers:
        stats["scanned"] += 1
        try:
            outcome = process_request(db, pr_number, now, policy)
            if db.in_transaction():
                db.rollback()
        except Exception:
            db.rollback()
            stats["errors"] += 1
            logger.exception("Escalation scan failed for %s", pr_number)
            continue
        stats[outcome] += 1

    logger.info(
        "Escalation scan at %s: scanned=%d escalated=%d rejected=%d skipped=%d errors=%d",
        now.isoformat(), stats["scanned"], stats["escalated"], stats["rejected"],
        stats["skipped"], stats["errors"],
    )
    return stats


def escalation_status(
    db: Session,
    request: PurchaseRequest,
    policy: EscalationPolicy | None = None,
) -> tuple[EscalationMatrix | None, list[EscalationLog], PendingCheck | None]:
    """Snapshot, logs and next due escalation for the status endpoint."""
    policy = policy or EscalationPolicy.from_settings()
    snapshot = escalation_matrix_svc.get_escalation_matrix(db, request.pr_number)
    logs = escalation_matrix_svc.escalation_logs(db, request.pr_number)
    check = None
    if snapshot is not None and request.status == "pending":
        check = pending_check(db, request, snapshot, policy)
    return snapshot, logs, check
