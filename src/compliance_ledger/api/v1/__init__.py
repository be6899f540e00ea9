"""API v1 router aggregation."""

from fastapi import APIRouter

from .audit import router as audit_router
from .compliance import router as compliance_router

# Create main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(compliance_router, tags=["compliance"])
router.include_router(audit_router, tags=["audit"])
