# blogmedia/api/v1/routers/admin/storage.py
"""
☁️ Blog Media · Admin Storage API
=================================

Operator controls for the storage subsystem under `/api/v1/admin/storage`.

Routes (7)
----------
- GET  /storage/credentials/status     → Manager state, expiry, last error + remediation
- POST /storage/credentials/refresh    → Force a credential refresh now
- POST /storage/test-connection        → Resolve credentials and list one key from the bucket
- GET  /storage/config                 → Current configuration (secrets redacted)
- PUT  /storage/config                 → Save configuration and re-initialize credentials
- POST /storage/sync                   → One reconciliation pass (≤ 1000 keys)
- POST /storage/thumbnails/backfill    → Thumbnails for records that have none

Notes
-----
- `PUT /storage/config` accepts partial configs; completeness is checked when
  credentials are resolved, and the outcome is returned in `status`.
- Credential errors keep their HTTP status (401 session expired, 422
  incomplete config, 502 upstream, 503 wrong platform).
"""

from __future__ import annotations

# ─────────────────────────────────────────────────────────────────────────────
# 📦 Imports
# ─────────────────────────────────────────────────────────────────────────────
from typing import Optional

from fastapi import APIRouter, Body, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.api.http_utils import set_sensitive_cache
from blogmedia.db.session import get_async_db
from blogmedia.dependencies.admin import Operator, get_current_operator
from blogmedia.schemas.media import (
    BackfillIn,
    BackfillOut,
    ConnectionTestOut,
    CredentialStatusOut,
    StorageConfigIn,
    StorageConfigOut,
    StorageConfigUpdateOut,
    SyncIn,
    SyncReportOut,
)
from blogmedia.services.context import get_media_service
from blogmedia.services.media_service import MediaService

router = APIRouter(prefix="/storage", tags=["Admin • Storage"])


# ─────────────────────────────────────────────────────────────────────────────
# 🔐 Credentials
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/credentials/status", summary="Credential status", response_model=CredentialStatusOut)
async def credentials_status(
    response: Response,
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> CredentialStatusOut:
    set_sensitive_cache(response)
    return CredentialStatusOut(**service.get_credential_status())


@router.post("/credentials/refresh", summary="Refresh credentials now", response_model=CredentialStatusOut)
async def credentials_refresh(
    response: Response,
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> CredentialStatusOut:
    """
    Force a resolution through the single-flight path.

    Raises
    ------
    401 / 422 / 502 / 503
        The provider's error, with `remediation` text for the operator.
    """
    set_sensitive_cache(response)
    return CredentialStatusOut(**await service.refresh_credentials_now())


@router.post("/test-connection", summary="Test storage connection", response_model=ConnectionTestOut)
async def connection_test(
    response: Response,
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> ConnectionTestOut:
    """Always 200; `ok=false` carries the failure and its remediation."""
    set_sensitive_cache(response)
    return ConnectionTestOut(**await service.test_connection())


# ─────────────────────────────────────────────────────────────────────────────
# ⚙️ Configuration
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/config", summary="Storage configuration (redacted)", response_model=StorageConfigOut)
async def get_config(
    response: Response,
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> StorageConfigOut:
    set_sensitive_cache(response)
    return StorageConfigOut(**await service.get_storage_config())


@router.put("/config", summary="Save storage configuration", response_model=StorageConfigUpdateOut)
async def put_config(
    payload: StorageConfigIn,
    response: Response,
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> StorageConfigUpdateOut:
    set_sensitive_cache(response)
    result = await service.update_storage_config(
        storage_type=payload.storage_type,
        strategy=payload.strategy,
        location=payload.location,
        params=payload.params,
    )
    return StorageConfigUpdateOut(
        config=StorageConfigOut(**result["config"]),
        status=CredentialStatusOut(**result["status"]),
    )


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Maintenance
# ─────────────────────────────────────────────────────────────────────────────
@router.post("/sync", summary="Reconcile bucket with catalog", response_model=SyncReportOut)
async def sync_bucket(
    payload: Optional[SyncIn] = Body(None),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> SyncReportOut:
    payload = payload or SyncIn()
    report = await service.sync(payload.prefix, continuation_token=payload.continuation_token)
    return SyncReportOut(**report.as_dict())


@router.post("/thumbnails/backfill", summary="Generate missing thumbnails", response_model=BackfillOut)
async def backfill_thumbnails(
    payload: Optional[BackfillIn] = Body(None),
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> BackfillOut:
    payload = payload or BackfillIn()
    report = await service.backfill_thumbnails(db, limit=payload.limit, dry_run=payload.dry_run)
    return BackfillOut(
        examined=report.examined,
        generated=report.generated,
        failed=report.failed,
        dry_run=report.dry_run,
        results=report.results,
    )
