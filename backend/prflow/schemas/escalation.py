"""Pydantic schemas for escalation status and scan results."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class EscalationLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pr_number: str
    level: int
    status: str
    escalated_at: datetime
    email_sent_to: str | None
    comment: str | None


class EscalationDue(BaseModel):
    level: int
    kind: str  # escalate, auto_reject
    due_at: datetime


class EscalationStatusOut(BaseModel):
    pr_number: str
    has_escalation_matrix: bool
    logs: list[EscalationLogOut]
    next_due: EscalationDue | None = None


class EscalationScanResult(BaseModel):
    scanned: int
    escalated: int
    rejected: int
    skipped: int
    errors: int
