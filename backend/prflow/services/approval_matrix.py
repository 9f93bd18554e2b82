"""Approval matrix lookup."""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from prflow.models.approval_matrix import ApprovalMatrix

logger = logging.getLogger(__name__)


def resolve(db: Session, requester_emp_code: str | None) -> ApprovalMatrix | None:
    """Return the requester's approval matrix, or None if they cannot submit.

    A row without approver_1 is treated as missing.
    """
    if not requester_emp_code:
        return None
    matrix = db.execute(
        select(ApprovalMatrix).where(ApprovalMatrix.emp_code == requester_emp_code)
    ).scalars().first()
    if matrix is None:
        logger.debug("No approval matrix for %s", requester_emp_code)
        return None
    if not matrix.approver_1_emp_code:
        logger.warning("Approval matrix for %s has no first approver", requester_emp_code)
        return None
    return matrix
