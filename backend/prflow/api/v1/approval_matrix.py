"""Approval matrix lookup endpoint."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from prflow.core.deps import get_current_user
from prflow.db.session import get_sync_session
from prflow.models.user import User
from prflow.schemas.approval_matrix import ApprovalMatrixOut
from prflow.services import approval_matrix as approval_matrix_svc

router = APIRouter()


@router.get("/{emp_code}", response_model=ApprovalMatrixOut)
def get_approval_matrix(
    emp_code: str,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Resolved approval chain for a requester. Admins or the requester only."""
    if current_user.role != "admin" and current_user.emp_code != emp_code:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own approval matrix.",
        )
    matrix = approval_matrix_svc.resolve(db, emp_code)
    if matrix is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No approval matrix configured for {emp_code}.",
        )
    return matrix
