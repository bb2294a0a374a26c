from __future__ import annotations

"""
Admin router package (v1)
=========================

Aggregates the admin domain routers into a single `router`:
- media    (`/media/...`)
- storage  (`/storage/...`)

Mount with a base path in your app:
    app.include_router(router, prefix="/api/v1/admin")

Common 401/403 response docs are attached at include-time for a uniform
OpenAPI; domain routers own their paths, tags and auth dependencies.
"""

from typing import Any, Dict

from fastapi import APIRouter, status

from .media import router as media_router
from .storage import router as storage_router

COMMON_ADMIN_RESPONSES: Dict[int, Dict[str, Any]] = {
    status.HTTP_401_UNAUTHORIZED: {"description": "Unauthorized (missing/invalid token)"},
    status.HTTP_403_FORBIDDEN: {"description": "Forbidden (admin role required)"},
}

router = APIRouter()  # callers mount with prefix="/api/v1/admin"

router.include_router(media_router, responses=COMMON_ADMIN_RESPONSES)
router.include_router(storage_router, responses=COMMON_ADMIN_RESPONSES)

__all__ = ["router", "COMMON_ADMIN_RESPONSES"]
