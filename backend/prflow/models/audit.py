from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from prflow.db.base import Base, TimestampMixin, UUIDMixin

AUDIT_ACTIONS = ("approved", "rejected", "returned", "resubmitted")


class AuditLog(Base, UUIDMixin, TimestampMixin):
    """Immutable audit trail of every approval action on a purchase request."""

    __tablename__ = "audit_logs"

    pr_number: Mapped[str] = mapped_column(
        String(50), ForeignKey("purchase_requests.pr_number"), nullable=False, index=True
    )
    approver_emp_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    approval_level: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = resubmission
    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    acted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
