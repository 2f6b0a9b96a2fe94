"""API routes."""

from fastapi import APIRouter

from .complaints import router as complaints_router
from .contracts import router as contracts_router
from .health import router as health_router
from .notifications import router as notifications_router
from .tenders import router as tenders_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(tenders_router, prefix="/tenders", tags=["Tenders"])
api_router.include_router(contracts_router, prefix="/contracts", tags=["Contracts"])
api_router.include_router(complaints_router, prefix="/complaints", tags=["Complaints"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

__all__ = ["api_router"]
