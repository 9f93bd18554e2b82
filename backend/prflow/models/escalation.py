"""Escalation snapshot and escalation log models."""
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from prflow.db.base import Base, TimestampMixin, UUIDMixin

ESCALATION_STATUSES = ("escalated", "rejected")


class EscalationMatrix(Base, UUIDMixin, TimestampMixin):
    """Immutable per-request snapshot of approvers and their managers.

    Written once at submission so later org changes do not move escalation
    targets for requests already in flight.
    """

    __tablename__ = "escalation_matrix"

    pr_number: Mapped[str] = mapped_column(
        String(50), ForeignKey("purchase_requests.pr_number"), unique=True, nullable=False, index=True
    )

    requester_code: Mapped[str] = mapped_column(String(50), nullable=False)
    requester_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    requester_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_1_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_1_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_1_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_2_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_2_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_2_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_3a_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_3a_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_3a_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_3b_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_3b_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_3b_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    manager_1_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    manager_1_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_1_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    manager_2_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    manager_2_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_2_mail: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def tier(self, level: int) -> tuple[str | None, str | None]:
        """(approver code, manager code) for an escalation tier (levels 1 and 2)."""
        if level == 1:
            return self.approver_1_code, self.manager_1_code
        if level == 2:
            return self.approver_2_code, self.manager_2_code
        return None, None


class EscalationLog(Base, UUIDMixin, TimestampMixin):
    """One escalation or auto-rejection event; cleared when a PR is resubmitted."""

    __tablename__ = "escalation_logs"

    pr_number: Mapped[str] = mapped_column(
        String(50), ForeignKey("purchase_requests.pr_number"), nullable=False, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # escalated, rejected
    escalated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    email_sent_to: Mapped[str | None] = mapped_column(String(500), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
