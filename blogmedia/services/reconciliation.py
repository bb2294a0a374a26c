# blogmedia/services/reconciliation.py
from __future__ import annotations

"""
🔄 Blog Media • Bucket ↔ catalog reconciliation
===============================================

One `sync()` call is one pass over **one** ListObjectsV2 page (≤ 1000 keys):

1) List objects under the prefix (directory markers, thumbnail artifacts and
   traversing keys are skipped).
2) Load the catalog rows for the keys on this page only.
3) Insert a row for every uncatalogued object. The insert is
   `ON CONFLICT (storage_key) DO NOTHING RETURNING id` inside a SAVEPOINT, so
   a concurrent pass that got there first shows up as `already_exists`.
4) Correct `file_type` / `folder_path` on this page's existing rows whose MIME
   type implies a different classification (`folder_path` is left alone once moved).
5) Return a `SyncReport`; callers wanting the whole bucket follow
   `next_continuation_token`.

Running two passes back to back with no remote changes reports
`inserted == corrected == 0` on the second.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.core.config import settings
from blogmedia.core.exceptions import StorageError
from blogmedia.core.metrics import inc_sync_object
from blogmedia.db.models.media_file import MediaFile
from blogmedia.repositories import media as media_repo
from blogmedia.schemas.enums import SyncItemStatus
from blogmedia.services.storage.client import RemoteObject, S3StorageError
from blogmedia.services.storage.factory import StorageClientFactory
from blogmedia.services.storage.keys import (
    InvalidKey,
    check_existing_key,
    classify,
    folder_for,
    is_thumbnail_key,
    mime_from_key,
    original_name_from_key,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


# ─────────────────────────────────────────────────────────────────────────────
# 📄 Report
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class SyncItemResult:
    key: str
    status: SyncItemStatus
    message: Optional[str] = None
    media_id: Optional[UUID] = None


@dataclass
class SyncReport:
    prefix: str
    inserted: int = 0
    corrected: int = 0
    total_processed: int = 0
    failed: int = 0
    results: List[SyncItemResult] = field(default_factory=list)
    next_continuation_token: Optional[str] = None

    def record(self, key: str, status: SyncItemStatus, message: Optional[str] = None, media_id: Optional[UUID] = None) -> None:
        self.results.append(SyncItemResult(key=key, status=status, message=message, media_id=media_id))
        inc_sync_object(status.value)

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for item in data["results"]:
            item["status"] = item["status"].value
            if item["media_id"] is not None:
                item["media_id"] = str(item["media_id"])
        return data


# ─────────────────────────────────────────────────────────────────────────────
# 🔧 Engine
# ─────────────────────────────────────────────────────────────────────────────
class ReconciliationEngine:
    def __init__(
        self,
        factory: StorageClientFactory,
        session_factory: SessionFactory,
        *,
        page_size: Optional[int] = None,
    ) -> None:
        self._factory = factory
        self._session_factory = session_factory
        self._page_size = int(page_size or settings.MEDIA_SYNC_PAGE_SIZE)

    async def sync(self, prefix: Optional[str] = None, *, continuation_token: Optional[str] = None) -> SyncReport:
        """
        Reconcile one listing page under `prefix`.

        Raises
        ------
        StorageError
            Credentials could not be obtained or the listing itself failed.
            Per-object failures never raise; they are counted in `failed`.
        """
        prefix = settings.MEDIA_SYNC_PREFIX if prefix is None else prefix.lstrip("/")
        client = await self._factory.get_client()
        try:
            page = await asyncio.to_thread(
                client.list_objects,
                prefix,
                max_keys=self._page_size,
                continuation_token=continuation_token,
            )
        except S3StorageError as e:
            raise StorageError(
                "Failed to list bucket contents",
                remediation="Check bucket name and s3:ListBucket permission",
                details={"prefix": prefix, "reason": str(e)},
                status_code=502,
            ) from e

        report = SyncReport(prefix=prefix, next_continuation_token=page.next_token)

        candidates: List[RemoteObject] = []
        for obj in page.objects:
            if obj.key.endswith("/") or is_thumbnail_key(obj.key):
                report.record(obj.key, SyncItemStatus.SKIPPED)
                continue
            try:
                check_existing_key(obj.key)
            except InvalidKey as e:
                report.record(obj.key, SyncItemStatus.SKIPPED, message=str(e))
                continue
            candidates.append(obj)

        async with self._session_factory() as session:
            existing = {row.storage_key: row for row in await media_repo.list_media_by_keys(session, [o.key for o in candidates])}

            for obj in candidates:
                report.total_processed += 1
                if obj.key in existing:
                    report.record(obj.key, SyncItemStatus.ALREADY_EXISTS)
                    continue
                await self._insert(session, obj, client.bucket, report)

            await self._correct(session, existing.values(), report)
            await session.commit()

        logger.info(
            "Sync pass done | prefix=%s inserted=%s corrected=%s processed=%s failed=%s more=%s",
            prefix,
            report.inserted,
            report.corrected,
            report.total_processed,
            report.failed,
            bool(report.next_continuation_token),
        )
        return report

    async def _insert(self, session: AsyncSession, obj: RemoteObject, bucket: str, report: SyncReport) -> None:
        mime_type = mime_from_key(obj.key)
        values: Dict[str, Any] = {
            "storage_key": obj.key,
            "bucket": bucket,
            "mime_type": mime_type,
            "size_bytes": obj.size,
            "file_type": classify(mime_type),
            "folder_path": folder_for(mime_type),
            "folder_overridden": False,
            "original_name": original_name_from_key(obj.key),
            "tags": [],
        }
        if obj.last_modified is not None:
            values["created_at"] = obj.last_modified
        try:
            async with session.begin_nested():
                media_id = await media_repo.insert_if_absent(session, values)
        except SQLAlchemyError as e:
            report.failed += 1
            report.record(obj.key, SyncItemStatus.ERROR, message=str(e.__cause__ or e))
            logger.warning("Sync insert failed for %s: %s", obj.key, e)
            return

        if media_id is None:
            report.record(obj.key, SyncItemStatus.ALREADY_EXISTS, message="Inserted by a concurrent pass")
            return
        report.inserted += 1
        report.record(obj.key, SyncItemStatus.SYNCED, media_id=media_id)

    async def _correct(self, session: AsyncSession, rows: Iterable[MediaFile], report: SyncReport) -> None:
        for row in rows:
            expected_type = classify(row.mime_type)
            expected_folder = folder_for(row.mime_type)
            changes = []
            if row.file_type != expected_type:
                changes.append(f"file_type {row.file_type.value if row.file_type else None} → {expected_type.value}")
                row.file_type = expected_type
            if not row.folder_overridden and row.folder_path != expected_folder:
                changes.append(f"folder {row.folder_path} → {expected_folder}")
                row.folder_path = expected_folder
            if changes:
                report.corrected += 1
                report.record(row.storage_key, SyncItemStatus.CORRECTED, message="; ".join(changes), media_id=row.id)
        await session.flush()


__all__ = ["ReconciliationEngine", "SyncReport", "SyncItemResult"]
