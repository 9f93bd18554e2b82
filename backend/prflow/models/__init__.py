from prflow.models.user import User
from prflow.models.approval_matrix import ApprovalMatrix
from prflow.models.purchase_request import PurchaseRequest, LineItem
from prflow.models.escalation import EscalationMatrix, EscalationLog
from prflow.models.audit import AuditLog

__all__ = [
    "User",
    "ApprovalMatrix",
    "PurchaseRequest", "LineItem",
    "EscalationMatrix", "EscalationLog",
    "AuditLog",
]
