# blogmedia/api/v1/routers/admin/media.py
"""
🗂️ Blog Media · Admin Media Library API
=======================================

Admin routes under `/api/v1/admin/media` for the media catalog.

Routes (10)
-----------
- POST   /media/upload                     → Direct proxy upload (base64 JSON)
- GET    /media/files                      → Paginated, filtered listing
- GET    /media/files/{media_id}           → One record
- PATCH  /media/files/{media_id}           → Edit name / alt text / caption / tags
- DELETE /media/files/{media_id}           → Delete record (+ best-effort object & thumbnail)
- POST   /media/files/{media_id}/move      → Catalog-only move to another folder
- GET    /media/files/{media_id}/signed-url→ Time-boxed GET URL for one record
- GET    /media/signed-url?key=&ttl=       → Time-boxed GET URL by storage key
- GET    /media/folders                    → Folder tree (flat, path-ordered)
- POST   /media/folders                    → Create folder

Security & Operations
---------------------
- Every route requires an admin operator (`get_current_operator`).
- Responses carrying signed URLs are marked `Cache-Control: no-store`.
- Storage errors surface unchanged as problem+json with `remediation`.
"""

from __future__ import annotations

# ─────────────────────────────────────────────────────────────────────────────
# 📦 Imports
# ─────────────────────────────────────────────────────────────────────────────
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.api.http_utils import decode_base64_payload, set_sensitive_cache
from blogmedia.db.session import get_async_db
from blogmedia.dependencies.admin import Operator, get_current_operator
from blogmedia.schemas.enums import FileClassification
from blogmedia.schemas.media import (
    FolderCreateIn,
    FolderOut,
    MediaDeleteOut,
    MediaFileOut,
    MediaMoveIn,
    MediaPage,
    MediaPatchIn,
    MediaUploadIn,
    MediaUploadOut,
    SideEffectOut,
    SignedUrlOut,
)
from blogmedia.services.context import get_media_service
from blogmedia.services.media_service import MediaService

router = APIRouter(prefix="/media", tags=["Admin • Media"])


def _signed(res) -> SignedUrlOut:
    return SignedUrlOut(url=res.url, key=res.key, ttl_seconds=res.ttl_seconds, expires_at=res.expires_at)


# ─────────────────────────────────────────────────────────────────────────────
# 📤 Upload
# ─────────────────────────────────────────────────────────────────────────────
@router.post(
    "/upload",
    summary="Upload a file (base64 direct proxy)",
    response_model=MediaUploadOut,
    status_code=status.HTTP_201_CREATED,
)
async def upload_media(
    payload: MediaUploadIn,
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    operator: Operator = Depends(get_current_operator),
) -> MediaUploadOut:
    """
    Store a small file and catalogue it.

    The thumbnail outcome is reported in `thumbnail`; a failed thumbnail does
    not fail the upload.

    Raises
    ------
    400
        Invalid base64, empty body or disallowed MIME type.
    413
        Decoded payload exceeds `MEDIA_MAX_UPLOAD_BYTES`.
    """
    data = decode_base64_payload(payload.data_base64)
    row, thumb = await service.upload_object(
        db,
        data,
        payload.content_type,
        folder_hint=payload.folder_hint,
        original_name=payload.filename,
        uploader_id=operator.id,
        alt_text=payload.alt_text,
    )
    return MediaUploadOut(
        file=MediaFileOut.model_validate(row),
        thumbnail=SideEffectOut(ok=thumb.ok, key=thumb.key, error=thumb.error),
    )


# ─────────────────────────────────────────────────────────────────────────────
# 📃 Listing & single record
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/files", summary="List media files", response_model=MediaPage)
async def list_media(
    folder: Optional[str] = Query(None, description="Folder path, e.g. /images"),
    file_type: Optional[FileClassification] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> MediaPage:
    result = await service.list_objects(db, folder=folder, file_type=file_type, search=search, page=page, limit=limit)
    return MediaPage(
        items=[MediaFileOut.model_validate(r) for r in result["items"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        pages=result["pages"],
    )


@router.get("/files/{media_id}", summary="Get a media file", response_model=MediaFileOut)
async def get_media(
    media_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> MediaFileOut:
    return MediaFileOut.model_validate(await service.get_object(db, media_id))


@router.patch("/files/{media_id}", summary="Edit media metadata", response_model=MediaFileOut)
async def patch_media(
    media_id: UUID,
    payload: MediaPatchIn,
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> MediaFileOut:
    row = await service.update_metadata(db, media_id, payload.model_dump(exclude_unset=True))
    return MediaFileOut.model_validate(row)


@router.delete("/files/{media_id}", summary="Delete a media file", response_model=MediaDeleteOut)
async def delete_media(
    media_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> MediaDeleteOut:
    result = await service.delete_object(db, media_id)
    thumb = result["thumbnail"]
    return MediaDeleteOut(
        id=result["id"],
        deleted=result["deleted"],
        object_removed=result["object_removed"],
        thumbnail=SideEffectOut(ok=thumb.ok, key=thumb.key, error=thumb.error),
    )


@router.post("/files/{media_id}/move", summary="Move a media file to another folder", response_model=MediaFileOut)
async def move_media(
    media_id: UUID,
    payload: MediaMoveIn,
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> MediaFileOut:
    return MediaFileOut.model_validate(await service.move_object(db, media_id, payload.target_folder))


# ─────────────────────────────────────────────────────────────────────────────
# 🔏 Signed URLs
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/files/{media_id}/signed-url", summary="Signed GET URL for a media file", response_model=SignedUrlOut)
async def signed_url_for_media(
    media_id: UUID,
    response: Response,
    ttl: Optional[int] = Query(None, ge=1, le=604800, description="Lifetime in seconds"),
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> SignedUrlOut:
    set_sensitive_cache(response)
    return _signed(await service.get_signed_url_for(db, media_id, ttl))


@router.get("/signed-url", summary="Signed GET URL by storage key", response_model=SignedUrlOut)
async def signed_url_by_key(
    response: Response,
    key: str = Query(..., min_length=1, max_length=1024),
    ttl: Optional[int] = Query(None, ge=1, le=604800, description="Lifetime in seconds"),
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> SignedUrlOut:
    """
    Raises
    ------
    404
        `object_not_found` when the key is not catalogued, `bucket_mismatch`
        when the record points at another bucket.
    502
        `signing_failure` after one retry with fresh credentials.
    """
    set_sensitive_cache(response)
    return _signed(await service.get_signed_url(db, key, ttl))


# ─────────────────────────────────────────────────────────────────────────────
# 📁 Folders
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/folders", summary="List folders", response_model=List[FolderOut])
async def list_folders(
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    _operator: Operator = Depends(get_current_operator),
) -> List[FolderOut]:
    return [FolderOut.model_validate(f) for f in await service.list_folders(db)]


@router.post("/folders", summary="Create a folder", response_model=FolderOut, status_code=status.HTTP_201_CREATED)
async def create_folder(
    payload: FolderCreateIn,
    db: AsyncSession = Depends(get_async_db),
    service: MediaService = Depends(get_media_service),
    operator: Operator = Depends(get_current_operator),
) -> FolderOut:
    folder = await service.create_folder(db, payload.name, parent_path=payload.parent_path, created_by=operator.id)
    return FolderOut.model_validate(folder)
