# blogmedia/services/media_service.py
from __future__ import annotations

"""
📚 Blog Media • Media service
=============================

The surface route handlers and scripts call. Each method maps one admin
action onto the storage subsystem:

- uploads: validate → put object → catalog row → thumbnail (non-fatal)
- deletes: remote object + thumbnail (best-effort) → catalog row
- moves / metadata edits: catalog only
- signed URLs: catalog lookup → bucket check → `SignedUrlService`
- sync / backfill / credential status: delegated to the owning component
- connection test: credentials + a one-key listing, reported, never raised

Catalog writes commit inside the method; callers pass the request session.
"""

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.core.config import settings
from blogmedia.core.exceptions import (
    AppException,
    FolderConflict,
    ObjectNotFound,
    StorageError,
    UploadRejected,
)
from blogmedia.db.models.media_file import MediaFile
from blogmedia.db.models.media_folder import MediaFolder
from blogmedia.repositories import media as media_repo
from blogmedia.schemas.credentials import PARAMS_BY_STRATEGY
from blogmedia.schemas.enums import CredentialStrategy, FileClassification
from blogmedia.services.credentials.config_store import CredentialConfigStore
from blogmedia.services.credentials.manager import CredentialLifecycleManager
from blogmedia.services.reconciliation import ReconciliationEngine, SyncReport
from blogmedia.services.storage.client import S3StorageError
from blogmedia.services.storage.factory import StorageClientFactory
from blogmedia.services.storage.keys import (
    ALLOWED_UPLOAD_TYPES,
    InvalidKey,
    classify,
    folder_for,
    generate_upload_key,
    normalize_folder,
    normalize_key,
    original_name_from_key,
    sanitize_segment,
)
from blogmedia.services.storage.signed_urls import SignedUrl, SignedUrlService
from blogmedia.services.thumbnails import BackfillReport, SideEffectResult, ThumbnailPipeline

logger = logging.getLogger(__name__)


class MediaService:
    def __init__(
        self,
        *,
        manager: CredentialLifecycleManager,
        store: CredentialConfigStore,
        factory: StorageClientFactory,
        signer: SignedUrlService,
        reconciler: ReconciliationEngine,
        thumbnails: ThumbnailPipeline,
    ) -> None:
        self.manager = manager
        self.store = store
        self.factory = factory
        self.signer = signer
        self.reconciler = reconciler
        self.thumbnails = thumbnails

    # ─────────────────────────────────────────────────────────
    # 📤 Upload
    # ─────────────────────────────────────────────────────────
    async def upload_object(
        self,
        session: AsyncSession,
        data: bytes,
        mime_type: str,
        *,
        folder_hint: Optional[str] = None,
        original_name: Optional[str] = None,
        uploader_id: Optional[str] = None,
        alt_text: Optional[str] = None,
    ) -> Tuple[MediaFile, SideEffectResult]:
        """
        Store a new object and catalogue it.

        Returns
        -------
        (MediaFile, SideEffectResult)
            The committed record and the thumbnail outcome. A failed
            thumbnail never fails the upload.

        Raises
        ------
        UploadRejected
            Disallowed MIME type (400), empty body (400), too large (413).
        StorageError
            Credentials unavailable or the PUT itself failed.
        """
        mt = (mime_type or "").split(";")[0].strip().lower()
        if mt not in ALLOWED_UPLOAD_TYPES:
            raise UploadRejected(
                f"File type not allowed: {mime_type or 'unknown'}",
                remediation="Allowed types: " + ", ".join(sorted(ALLOWED_UPLOAD_TYPES)),
                details={"mime_type": mime_type},
            )
        if not data:
            raise UploadRejected("Empty file")
        if len(data) > settings.MEDIA_MAX_UPLOAD_BYTES:
            raise UploadRejected(
                "File too large",
                details={"size_bytes": len(data), "max_bytes": settings.MEDIA_MAX_UPLOAD_BYTES},
                status_code=413,
            )

        key = generate_upload_key(mt, original_name=original_name, folder_hint=folder_hint)
        client = await self.factory.get_client()
        try:
            await asyncio.to_thread(client.put_bytes, key, data, content_type=mt)
        except S3StorageError as e:
            raise StorageError(
                "Upload to storage failed",
                remediation="Check storage credentials status and s3:PutObject permission",
                details={"reason": str(e)},
                status_code=502,
            ) from e

        try:
            row = await media_repo.create_media(
                session,
                storage_key=key,
                bucket=client.bucket,
                mime_type=mt,
                size_bytes=len(data),
                file_type=classify(mt),
                folder_path=folder_for(mt),
                folder_overridden=False,
                original_name=(original_name or "").strip() or original_name_from_key(key),
                alt_text=alt_text,
                tags=[],
                uploaded_by=uploader_id,
            )
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            await asyncio.to_thread(client.delete, key)
            raise
        logger.info("Uploaded %s (%s, %s bytes) by %s", key, mt, len(data), uploader_id or "-")

        if not self.thumbnails.supports(mt):
            return row, SideEffectResult(ok=True)

        thumb = await self.thumbnails.generate(key, data, mt)
        if thumb.ok:
            self.thumbnails.attach(row, thumb)
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.warning("Thumbnail link not saved (non-fatal) | key=%s error=%s", key, e)
                thumb = SideEffectResult(ok=False, key=thumb.key, error="Thumbnail stored but not linked to the record")
            await session.refresh(row)
        return row, thumb

    # ─────────────────────────────────────────────────────────
    # 🗑️ Delete / 📦 Move / ✏️ Metadata
    # ─────────────────────────────────────────────────────────
    async def get_object(self, session: AsyncSession, media_id: UUID) -> MediaFile:
        row = await media_repo.get_media(session, media_id)
        if row is None:
            raise ObjectNotFound("Media file not found", details={"id": str(media_id)})
        return row

    async def delete_object(self, session: AsyncSession, media_id: UUID) -> Dict[str, Any]:
        """Delete the record; remote object and thumbnail removal are best-effort."""
        row = await self.get_object(session, media_id)
        key, thumbnail_key = row.storage_key, row.thumbnail_key

        object_removed = False
        try:
            client = await self.factory.get_client()
            object_removed = await asyncio.to_thread(client.delete, key)
        except StorageError as e:
            logger.warning("Object delete skipped (non-fatal) | key=%s error=%s", key, e.message)
        thumb = await self.thumbnails.delete_thumbnail(thumbnail_key)

        await media_repo.delete_media(session, media_id)
        await session.commit()
        logger.info("Deleted media %s (object_removed=%s)", key, object_removed)
        return {"id": media_id, "deleted": True, "object_removed": object_removed, "thumbnail": thumb}

    async def move_object(self, session: AsyncSession, media_id: UUID, target_folder: str) -> MediaFile:
        """Catalog-only move; the object key never changes."""
        row = await self.get_object(session, media_id)
        row.folder_path = normalize_folder(target_folder)
        row.folder_overridden = True
        await session.commit()
        await session.refresh(row)
        return row

    async def update_metadata(self, session: AsyncSession, media_id: UUID, changes: Dict[str, Any]) -> MediaFile:
        row = await self.get_object(session, media_id)
        for field_name in ("original_name", "alt_text", "caption", "tags"):
            if field_name in changes:
                setattr(row, field_name, changes[field_name])
        await session.commit()
        await session.refresh(row)
        return row

    # ─────────────────────────────────────────────────────────
    # 🔏 Signed URLs
    # ─────────────────────────────────────────────────────────
    async def get_signed_url(self, session: AsyncSession, storage_key: str, ttl_seconds: Optional[int] = None) -> SignedUrl:
        # Catalogued keys are matched as stored; a sloppy path ("/a//b.png") falls back to its normalized form.
        row = await media_repo.get_media_by_key(session, storage_key)
        if row is None:
            try:
                row = await media_repo.get_media_by_key(session, normalize_key(storage_key))
            except InvalidKey:
                row = None
        if row is None:
            raise ObjectNotFound("Media file not found", details={"key": storage_key})
        return await self.signer.sign(row.storage_key, bucket=row.bucket, ttl=ttl_seconds, response_content_type=row.mime_type)

    async def get_signed_url_for(self, session: AsyncSession, media_id: UUID, ttl_seconds: Optional[int] = None) -> SignedUrl:
        row = await self.get_object(session, media_id)
        return await self.signer.sign(row.storage_key, bucket=row.bucket, ttl=ttl_seconds, response_content_type=row.mime_type)

    # ─────────────────────────────────────────────────────────
    # 📃 Listing / folders
    # ─────────────────────────────────────────────────────────
    async def list_objects(
        self,
        session: AsyncSession,
        *,
        folder: Optional[str] = None,
        file_type: Optional[FileClassification] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        page = max(int(page or 1), 1)
        limit = max(1, min(int(limit or settings.MEDIA_PAGE_SIZE), 100))
        items, total = await media_repo.search_media(
            session,
            folder=normalize_folder(folder) if folder else None,
            file_type=file_type,
            search=search,
            page=page,
            limit=limit,
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        }

    async def list_folders(self, session: AsyncSession) -> List[MediaFolder]:
        return await media_repo.list_folders(session)

    async def create_folder(
        self,
        session: AsyncSession,
        name: str,
        *,
        parent_path: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> MediaFolder:
        segment = sanitize_segment(name, "")
        if not segment:
            raise AppException(status_code=422, message="Invalid folder name", code="invalid_folder", details={"name": name})

        parent: Optional[MediaFolder] = None
        parent_norm = normalize_folder(parent_path)
        if parent_norm != "/":
            parent = await media_repo.get_folder_by_path(session, parent_norm)
            if parent is None:
                raise ObjectNotFound("Parent folder not found", details={"path": parent_norm})
        path = f"{parent_norm.rstrip('/')}/{segment}"

        if await media_repo.get_folder_by_path(session, path) is not None:
            raise FolderConflict("Folder already exists", details={"path": path})
        try:
            folder = await media_repo.create_folder(
                session,
                name=name.strip(),
                path=path,
                parent_id=parent.id if parent else None,
                created_by=created_by,
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise FolderConflict("Folder already exists", details={"path": path})
        return folder

    # ─────────────────────────────────────────────────────────
    # 🔄 Maintenance
    # ─────────────────────────────────────────────────────────
    async def sync(self, prefix: Optional[str] = None, *, continuation_token: Optional[str] = None) -> SyncReport:
        return await self.reconciler.sync(prefix, continuation_token=continuation_token)

    async def backfill_thumbnails(self, session: AsyncSession, *, limit: int = 50, dry_run: bool = False) -> BackfillReport:
        return await self.thumbnails.backfill(session, limit=limit, dry_run=dry_run)

    # ─────────────────────────────────────────────────────────
    # 🔐 Credentials / configuration
    # ─────────────────────────────────────────────────────────
    def get_credential_status(self) -> Dict[str, Any]:
        return self.manager.status()

    async def refresh_credentials_now(self) -> Dict[str, Any]:
        """Force a refresh; errors propagate with their remediation text."""
        await self.manager.refresh_now()
        return self.manager.status()

    async def test_connection(self) -> Dict[str, Any]:
        """
        Resolve credentials and list one key from the bucket.

        Never raises for storage failures; the outcome carries the error and
        the remediation an operator should follow.
        """
        location = (await self.store.load()).location
        result: Dict[str, Any] = {
            "ok": False,
            "bucket": location.bucket_name,
            "region": location.region,
            "strategy": None,
            "key_hint": None,
            "error": None,
            "remediation": None,
        }
        try:
            client = await self.factory.get_client()
        except StorageError as e:
            result.update(error=e.message, remediation=e.remediation)
            logger.info("Storage connection test failed at credentials: %s", e.message)
            return result

        result.update(
            bucket=client.bucket,
            region=client.region,
            strategy=client.credential.strategy.value if client.credential.strategy else None,
            key_hint=client.credential.key_hint,
        )
        try:
            await asyncio.to_thread(client.list_objects, "", max_keys=1)
        except S3StorageError as e:
            result.update(error=str(e), remediation="Check bucket name, region and s3:ListBucket permission")
            logger.info("Storage connection test failed at bucket listing: %s", e)
            return result

        result["ok"] = True
        return result

    async def get_storage_config(self) -> Dict[str, Any]:
        """Current configuration with secrets masked."""
        config = await self.store.load()
        params: Dict[str, Any] = {}
        missing: List[str] = []
        if config.strategy is not None:
            model = config.params_for(PARAMS_BY_STRATEGY[config.strategy])
            params = model.redacted()
            missing = model.missing_fields()
        missing.extend(f"aws_storage.{name}" for name in config.location.missing_fields())
        return {
            "storage_type": config.storage_type,
            "strategy": config.strategy,
            "location": config.location.model_dump(by_alias=True, exclude_none=True),
            "params": params,
            "missing": missing,
        }

    async def update_storage_config(
        self,
        *,
        storage_type: Optional[str] = None,
        strategy: Optional[CredentialStrategy] = None,
        location: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Persist an admin edit and re-initialize the manager from it.

        Re-initialization errors are not raised: a partial config is a valid
        intermediate state and surfaces through `status`.
        """
        try:
            await self.store.save(storage_type=storage_type, strategy=strategy, location=location, params=params)
        except ValueError as e:
            raise AppException(status_code=422, message="Invalid storage configuration", code="invalid_config", details={"reason": str(e)})
        try:
            await self.manager.reinitialize()
        except StorageError as e:
            logger.info("Storage config saved but not usable yet: %s", e.message)
        return {"config": await self.get_storage_config(), "status": self.manager.status()}


__all__ = ["MediaService"]
