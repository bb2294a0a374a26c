"""
🧭 Blog Media • API v1 Router Aggregator
========================================

Exports the combined `router` (mounted by `create_app` under `API_V1_STR`).

Layout
------
- `/admin/media/...`    media catalog, uploads, signed URLs, folders
- `/admin/storage/...`  credentials, configuration, sync, thumbnail backfill

Auth lives in the child routers; this layer only composes them.
"""

from fastapi import APIRouter

from .admin import router as admin_router


def build_v1_router() -> APIRouter:
    """Compose the API v1 surface into a single `APIRouter`."""
    r = APIRouter()
    r.include_router(admin_router, prefix="/admin")
    return r


router = build_v1_router()

__all__ = ["router", "build_v1_router"]
