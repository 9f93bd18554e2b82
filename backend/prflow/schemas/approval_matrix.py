"""Pydantic schema for the resolved approval matrix."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ApprovalMatrixOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    emp_code: str
    department: str | None
    site: str | None

    approver_1_emp_code: str | None
    approver_1_name: str | None
    approver_1_email: str | None

    approver_2_emp_code: str | None
    approver_2_name: str | None
    approver_2_email: str | None

    approver_3a_emp_code: str | None
    approver_3a_name: str | None
    approver_3a_email: str | None

    approver_3b_emp_code: str | None
    approver_3b_name: str | None
    approver_3b_email: str | None

    updated_at: datetime
