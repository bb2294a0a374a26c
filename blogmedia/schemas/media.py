# blogmedia/schemas/media.py
from __future__ import annotations

"""
Blog Media • API schemas
========================

Request/response models for the admin media and storage routers.

- Output models read straight from ORM rows (`from_attributes=True`).
- Patch models are applied with `exclude_unset=True`, so omitted fields stay
  untouched while explicit `null` clears a value.
- Nothing here ever carries a secret; credential params are redacted before
  they reach `StorageConfigOut`.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from blogmedia.schemas.enums import CredentialStrategy, ExpiryStatus, FileClassification


# === Media files ==========================================================

class MediaUploadIn(BaseModel):
    """Direct proxy upload (base64 payload, ≤ MEDIA_MAX_UPLOAD_BYTES decoded)."""
    content_type: str
    data_base64: str
    folder_hint: Optional[str] = Field(None, description="Extra key segment under uploads/; sanitized")
    filename: Optional[str] = None
    alt_text: Optional[str] = None


class MediaFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    storage_key: str
    bucket: str
    file_type: FileClassification
    folder_path: str
    folder_overridden: bool = False
    mime_type: str
    size_bytes: int
    thumbnail_key: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    original_name: str
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    tags: Optional[List[str]] = None
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SideEffectOut(BaseModel):
    ok: bool
    key: Optional[str] = None
    error: Optional[str] = None


class MediaUploadOut(BaseModel):
    file: MediaFileOut
    thumbnail: SideEffectOut


class MediaDeleteOut(BaseModel):
    id: UUID
    deleted: bool = True
    object_removed: bool
    thumbnail: SideEffectOut


class MediaPatchIn(BaseModel):
    original_name: Optional[str] = Field(None, min_length=1, max_length=512)
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    tags: Optional[List[str]] = None


class MediaMoveIn(BaseModel):
    target_folder: str = Field(..., min_length=1, max_length=512)


class MediaPage(BaseModel):
    items: List[MediaFileOut]
    total: int
    page: int
    limit: int
    pages: int


class SignedUrlOut(BaseModel):
    url: str
    key: str
    ttl_seconds: int
    expires_at: datetime


# === Folders ==============================================================

class FolderCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    parent_path: Optional[str] = Field(None, description="Existing folder path; root when omitted")


class FolderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    path: str
    parent_id: Optional[UUID] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


# === Storage / credentials ================================================

class CredentialStatusOut(BaseModel):
    strategy: Optional[CredentialStrategy] = None
    valid_until: Optional[datetime] = None
    healthy: bool
    state: str
    expiry_status: ExpiryStatus
    remaining_minutes: Optional[int] = None
    last_refreshed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    remediation: Optional[str] = None


class ConnectionTestOut(BaseModel):
    ok: bool
    bucket: Optional[str] = None
    region: Optional[str] = None
    strategy: Optional[CredentialStrategy] = None
    key_hint: Optional[str] = None
    error: Optional[str] = None
    remediation: Optional[str] = None


class StorageConfigIn(BaseModel):
    """Admin edit of the storage configuration. Omitted sections are kept."""
    storage_type: Optional[str] = Field(None, description='Must be "aws" for cloud storage')
    strategy: Optional[CredentialStrategy] = None
    location: Optional[Dict[str, Any]] = Field(None, description="{region, bucketName, endpointUrl?}")
    params: Optional[Dict[str, Any]] = Field(None, description="camelCase parameters of `strategy`")


class StorageConfigOut(BaseModel):
    storage_type: Optional[str] = None
    strategy: Optional[CredentialStrategy] = None
    location: Dict[str, Any] = Field(default_factory=dict)
    params: Dict[str, Any] = Field(default_factory=dict)
    missing: List[str] = Field(default_factory=list)


class StorageConfigUpdateOut(BaseModel):
    config: StorageConfigOut
    status: CredentialStatusOut


class SyncIn(BaseModel):
    prefix: Optional[str] = None
    continuation_token: Optional[str] = None


class SyncItemOut(BaseModel):
    key: str
    status: str
    message: Optional[str] = None
    media_id: Optional[str] = None


class SyncReportOut(BaseModel):
    prefix: str
    inserted: int
    corrected: int
    total_processed: int
    failed: int
    results: List[SyncItemOut] = Field(default_factory=list)
    next_continuation_token: Optional[str] = None


class BackfillIn(BaseModel):
    limit: int = Field(50, ge=1, le=500)
    dry_run: bool = False


class BackfillOut(BaseModel):
    examined: int
    generated: int
    failed: int
    dry_run: bool
    results: List[Dict[str, Any]] = Field(default_factory=list)
