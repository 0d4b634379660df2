"""API v1 router aggregation."""

from fastapi import APIRouter

from .security import router as security_router

# Create main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(security_router)


__all__ = ["router"]
