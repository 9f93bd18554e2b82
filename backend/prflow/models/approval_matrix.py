"""Per-requester approval matrix (admin-maintained reference data)."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from prflow.db.base import Base, TimestampMixin, UUIDMixin

APPROVER_SLOTS = ("approver_1", "approver_2", "approver_3a", "approver_3b")


class ApprovalMatrix(Base, UUIDMixin, TimestampMixin):
    """Fixed approver chain for one requester.

    approver_3a and approver_3b are alternatives: either one may approve at
    level 3.
    """

    __tablename__ = "approval_matrix"

    emp_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    site: Mapped[str | None] = mapped_column(String(100), nullable=True)

    approver_1_emp_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_1_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_1_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_2_emp_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_2_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_2_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_3a_emp_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_3a_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_3a_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    approver_3b_emp_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_3b_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_3b_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def approver(self, slot: str) -> tuple[str | None, str | None, str | None]:
        """Return (emp_code, name, email) for one of APPROVER_SLOTS."""
        return (
            getattr(self, f"{slot}_emp_code"),
            getattr(self, f"{slot}_name"),
            getattr(self, f"{slot}_email"),
        )
