from datetime import date

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from prflow.db.base import Base, TimestampMixin, UUIDMixin

PR_STATUSES = ("pending", "approved", "rejected", "returned")


class PurchaseRequest(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "purchase_requests"
    __table_args__ = (
        CheckConstraint(
            "(status = 'pending' AND current_approval_level BETWEEN 1 AND 3) OR "
            "(status <> 'pending' AND current_approval_level IS NULL "
            "AND current_approver_emp_code IS NULL)",
            name="ck_purchase_requests_status_level",
        ),
    )

    pr_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    requester_emp_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    business_justification_code: Mapped[str] = mapped_column(String(50), nullable=False)
    business_justification_details: Mapped[str] = mapped_column(Text, nullable=False)
    total_estimated_cost: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, approved, rejected, returned
    current_approval_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # NULL while pending means every authorized party for the level may act
    current_approver_emp_code: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    created_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(50), nullable=True)

    line_items: Mapped[list["LineItem"]] = relationship(
        "LineItem",
        back_populates="purchase_request",
        cascade="all, delete-orphan",
        order_by="LineItem.line_number",
    )


class LineItem(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "line_items"

    pr_number: Mapped[str] = mapped_column(
        String(50), ForeignKey("purchase_requests.pr_number", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    required_quantity: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    required_by_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    delivery_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    estimated_cost: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    item_justification: Mapped[str | None] = mapped_column(Text, nullable=True)

    purchase_request: Mapped["PurchaseRequest"] = relationship(
        "PurchaseRequest", back_populates="line_items"
    )
