"""
API Router Aggregator.

Combines all v1 API routers into a single router for the main app.
"""

from fastapi import APIRouter

from alumni_connect.api.v1 import admin, auth, tables

api_router = APIRouter()

# Include all v1 routers with their prefixes and tags
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"],
)

api_router.include_router(
    tables.router,
    prefix="/rest",
    tags=["Tables"],
)
