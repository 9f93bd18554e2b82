"""Pydantic schemas for purchase request endpoints."""
import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# ─── Line items ───

class LineItemIn(BaseModel):
    product_name: str = Field(min_length=1, max_length=255)
    required_quantity: Decimal = Field(gt=0)
    unit_of_measure: str = Field(min_length=1, max_length=50)
    vendor_account_number: str | None = None
    required_by_date: date | None = None
    delivery_location: str | None = None
    estimated_cost: Decimal = Field(ge=0)
    item_justification: str | None = None


class LineItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    product_name: str
    required_quantity: Decimal
    unit_of_measure: str
    vendor_account_number: str | None
    required_by_date: date | None
    delivery_location: str | None
    estimated_cost: Decimal
    item_justification: str | None


# ─── Purchase request input ───

class PurchaseRequestCreate(BaseModel):
    entity: str | None = Field(default=None, max_length=50)  # defaults to the requester's entity
    title: str = Field(min_length=1, max_length=255)
    request_date: date | None = None
    department: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=100)
    business_justification_code: str = Field(min_length=1, max_length=50)
    business_justification_details: str = Field(min_length=1)
    total_estimated_cost: Decimal | None = Field(default=None, ge=0)  # defaults to the line item sum
    line_items: list[LineItemIn] = Field(min_length=1)


class PurchaseRequestUpdate(BaseModel):
    """Edit of a pending level-1 request, or resubmission of a returned one."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    request_date: date | None = None
    department: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=100)
    business_justification_code: str | None = Field(default=None, min_length=1, max_length=50)
    business_justification_details: str | None = Field(default=None, min_length=1)
    total_estimated_cost: Decimal | None = Field(default=None, ge=0)
    line_items: list[LineItemIn] | None = Field(default=None, min_length=1)
    comment: str | None = None


# ─── Purchase request output ───

class PurchaseRequestSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pr_number: str
    entity: str
    title: str
    request_date: date
    department: str
    requester_emp_code: str
    total_estimated_cost: Decimal
    status: str
    current_approval_level: int | None
    current_approver_emp_code: str | None
    created_at: datetime
    updated_at: datetime


class PurchaseRequestOut(PurchaseRequestSummary):
    location: str
    business_justification_code: str
    business_justification_details: str
    created_by: str | None
    updated_by: str | None
    line_items: list[LineItemOut] = []


class PurchaseRequestListResponse(BaseModel):
    items: list[PurchaseRequestSummary]
    total: int


# ─── Approval actions ───

class ApprovalActionRequest(BaseModel):
    comment: str | None = None


class ApprovalActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pr_number: str
    action: str
    status: str
    current_approval_level: int | None
    current_approver_emp_code: str | None
    next_approvers: list[str]
    is_final: bool
    message: str


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pr_number: str
    approver_emp_code: str
    approval_level: int
    action: str
    comment: str | None
    acted_at: datetime
