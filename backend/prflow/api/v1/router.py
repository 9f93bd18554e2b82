from fastapi import APIRouter

from prflow.api.v1 import admin, auth, purchase_requests
from prflow.api.v1 import approval_matrix as am_module

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(purchase_requests.router, prefix="/purchase-requests", tags=["purchase-requests"])
api_router.include_router(am_module.router, prefix="/approval-matrix", tags=["approval-matrix"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
