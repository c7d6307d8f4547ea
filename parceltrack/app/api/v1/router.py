"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from parceltrack.app.api.v1.endpoints import admin, courier, member

router = APIRouter()

# Member endpoints
router.include_router(member.router)

# Courier endpoints
router.include_router(courier.router)

# Admin endpoints
router.include_router(admin.router)
