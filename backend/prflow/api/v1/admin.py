"""Admin operations."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from prflow.core.deps import require_role
from prflow.db.session import get_sync_session
from prflow.models.user import User
from prflow.schemas.escalation import EscalationScanResult
from prflow.services import escalation as escalation_svc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/escalations/run", response_model=EscalationScanResult)
def run_escalation_scan(
    db: Annotated[Session, Depends(get_sync_session)],
    current_user: Annotated[User, Depends(require_role("admin"))],
):
    """Run one escalation scan now instead of waiting for the next tick."""
    logger.info("Manual escalation scan triggered by %s", current_user.emp_code)
    return escalation_svc.run_escalation_scan(db)
