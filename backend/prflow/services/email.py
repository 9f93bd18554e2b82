"""Email notifications for the purchase request workflow.

With MAIL_ENABLED=False (the default) messages are written to the log
instead of being sent. With MAIL_ENABLED=True they are handed to the SMTP
server from settings. Delivery problems are logged and never raised: a
notification failure must not undo a committed workflow change.
"""
import logging
import smtplib
from collections.abc import Iterable
from email.message import EmailMessage
from email.utils import formataddr

from prflow.core.config import settings

logger = logging.getLogger(__name__)


def _recipients(addresses: Iterable[str | None]) -> list[str]:
    seen: dict[str, None] = {}
    for address in addresses:
        if address and address.strip():
            seen.setdefault(address.strip(), None)
    return list(seen)


def _pr_link(pr_number: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/purchase-requests/{pr_number}"


def _send_smtp(to: list[str], subject: str, body: str) -> None:
    message = EmailMessage()
    message["From"] = formataddr((settings.MAIL_FROM_NAME, settings.MAIL_FROM))
    message["To"] = ", ".join(to)
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(
        settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS
    ) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(message)


def dispatch(recipients: Iterable[str | None], subject: str, body: str) -> bool:
    """Send (or mock-log) one message. Returns True when handed off."""
    to = _recipients(recipients)
    if not to:
        logger.warning("No recipients for email %r; skipped.", subject)
        return False

    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== EMAIL ===\n"
            "To: %s\n"
            "Subject: %s\n"
            "%s\n"
            "=============",
            ", ".join(to),
            subject,
            body,
        )
        return True

    try:
        _send_smtp(to, subject, body)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email %r to %s", subject, ", ".join(to))
        return False
    logger.info("Email %r sent to %s", subject, ", ".join(to))
    return True


# ─── Approval request email ───

def send_approval_request_email(request, recipients: Iterable[str | None], level: int) -> bool:
    """Ask the approver(s) of `level` to act on a request.

    Args:
        request: PurchaseRequest ORM object.
        recipients: Approver email addresses (both 3a and 3b for parallel level 3).
        level: Approval level now waiting.
    """
    subject = f"Action Required: Purchase Request {request.pr_number} (Level {level})"
    body = (
        f"Purchase request {request.pr_number} is awaiting your approval.\n\n"
        f"Title: {request.title}\n"
        f"Requester: {request.requester_emp_code}\n"
        f"Department: {request.department}\n"
        f"Estimated cost: {float(request.total_estimated_cost):,.2f}\n\n"
        f"Review: {_pr_link(request.pr_number)}\n"
    )
    return dispatch(recipients, subject, body)


# ─── Escalation email ───

def send_escalation_email(
    request,
    manager_mail: str | None,
    approver_mail: str | None,
    level: int,
    hours: float,
) -> bool:
    subject = f"Escalation: Purchase Request {request.pr_number} pending at Level {level}"
    body = (
        f"Purchase request {request.pr_number} has waited more than {hours:g} business hours "
        f"for a level {level} decision and has been escalated to you.\n\n"
        f"Title: {request.title}\n"
        f"Estimated cost: {float(request.total_estimated_cost):,.2f}\n\n"
        f"You or the original approver may now act on it: {_pr_link(request.pr_number)}\n"
    )
    return dispatch([manager_mail, approver_mail], subject, body)


# ─── Decision emails ───

def send_decision_email(
    request,
    requester_mail: str | None,
    decision: str,
    actor_emp_code: str,
    comment: str | None = None,
) -> bool:
    """Tell the requester their request was approved, rejected or returned."""
    subject = f"Purchase Request {request.pr_number} {decision}"
    body = (
        f"Your purchase request {request.pr_number} ({request.title}) was {decision} "
        f"by {actor_emp_code}.\n"
    )
    if comment:
        body += f"\nComment: {comment}\n"
    if decision == "returned":
        body += "\nPlease update the request and resubmit it.\n"
    body += f"\nDetails: {_pr_link(request.pr_number)}\n"
    return dispatch([requester_mail], subject, body)


def send_auto_rejection_email(
    request,
    recipients: Iterable[str | None],
    hours: float,
) -> bool:
    subject = f"Purchase Request {request.pr_number} auto-rejected"
    body = (
        f"Purchase request {request.pr_number} ({request.title}) received no level 3 "
        f"decision within {hours:g} business hours and was rejected automatically.\n\n"
        f"Details: {_pr_link(request.pr_number)}\n"
    )
    return dispatch(recipients, subject, body)
