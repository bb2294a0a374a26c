# blogmedia/repositories/media.py
from __future__ import annotations

"""Catalog queries for `media_files` and `media_folders`.

Functions take an `AsyncSession` and never commit; the caller owns the
transaction. `insert_if_absent` is the conflict-safe insert used by the
reconciliation pass (`ON CONFLICT (storage_key) DO NOTHING RETURNING id`).
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.db.models.media_file import MediaFile
from blogmedia.db.models.media_folder import MediaFolder
from blogmedia.db.session import dialect_insert
from blogmedia.schemas.enums import FileClassification

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# 🔎 Reads
# ─────────────────────────────────────────────────────────────
async def get_media(session: AsyncSession, media_id: UUID) -> Optional[MediaFile]:
    return await session.get(MediaFile, media_id)


async def get_media_by_key(session: AsyncSession, storage_key: str) -> Optional[MediaFile]:
    stmt = select(MediaFile).where(MediaFile.storage_key == storage_key)
    return (await session.execute(stmt)).scalars().first()


async def list_media_by_keys(session: AsyncSession, storage_keys: Sequence[str]) -> List[MediaFile]:
    """Catalog rows for the given keys (one listing page at most)."""
    if not storage_keys:
        return []
    stmt = select(MediaFile).where(MediaFile.storage_key.in_(list(storage_keys))).order_by(MediaFile.storage_key)
    return list((await session.execute(stmt)).scalars().all())


async def search_media(
    session: AsyncSession,
    *,
    folder: Optional[str] = None,
    file_type: Optional[FileClassification] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[MediaFile], int]:
    """
    Filtered, newest-first page of catalog rows.

    `folder` matches the folder itself and its descendants; `search` is a
    case-insensitive substring match on name, alt text and caption.
    """
    conditions = []
    if folder and folder != "/":
        conditions.append(
            or_(
                MediaFile.folder_path == folder,
                MediaFile.folder_path.startswith(folder.rstrip("/") + "/", autoescape=True),
            )
        )
    if file_type is not None:
        conditions.append(MediaFile.file_type == file_type)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                MediaFile.original_name.ilike(pattern),
                MediaFile.alt_text.ilike(pattern),
                MediaFile.caption.ilike(pattern),
            )
        )

    total = (await session.execute(select(func.count()).select_from(MediaFile).where(*conditions))).scalar_one()
    stmt = (
        select(MediaFile)
        .where(*conditions)
        .order_by(MediaFile.created_at.desc(), MediaFile.storage_key)
        .offset(max(page - 1, 0) * limit)
        .limit(limit)
    )
    items = list((await session.execute(stmt)).scalars().all())
    return items, int(total)


async def list_missing_thumbnails(
    session: AsyncSession,
    *,
    mime_types: Sequence[str],
    limit: int = 100,
) -> List[MediaFile]:
    stmt = (
        select(MediaFile)
        .where(MediaFile.thumbnail_key.is_(None), MediaFile.mime_type.in_(list(mime_types)))
        .order_by(MediaFile.created_at)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


# ─────────────────────────────────────────────────────────────
# ✍️ Writes
# ─────────────────────────────────────────────────────────────
async def create_media(session: AsyncSession, **fields: Any) -> MediaFile:
    row = MediaFile(**fields)
    session.add(row)
    await session.flush()
    return row


async def insert_if_absent(session: AsyncSession, values: Dict[str, Any]) -> Optional[UUID]:
    """Insert a catalog row unless `storage_key` exists. Returns the new id or None."""
    stmt = (
        dialect_insert(session, MediaFile)
        .values(**values)
        .on_conflict_do_nothing(index_elements=[MediaFile.storage_key])
        .returning(MediaFile.id)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def delete_media(session: AsyncSession, media_id: UUID) -> int:
    result = await session.execute(delete(MediaFile).where(MediaFile.id == media_id))
    return int(result.rowcount or 0)


# ─────────────────────────────────────────────────────────────
# 📁 Folders
# ─────────────────────────────────────────────────────────────
async def list_folders(session: AsyncSession) -> List[MediaFolder]:
    return list((await session.execute(select(MediaFolder).order_by(MediaFolder.path))).scalars().all())


async def get_folder_by_path(session: AsyncSession, path: str) -> Optional[MediaFolder]:
    stmt = select(MediaFolder).where(MediaFolder.path == path)
    return (await session.execute(stmt)).scalars().first()


async def create_folder(
    session: AsyncSession,
    *,
    name: str,
    path: str,
    parent_id: Optional[UUID] = None,
    created_by: Optional[str] = None,
) -> MediaFolder:
    folder = MediaFolder(name=name, path=path, parent_id=parent_id, created_by=created_by)
    session.add(folder)
    await session.flush()
    return folder


__all__ = [
    "get_media",
    "get_media_by_key",
    "list_media_by_keys",
    "search_media",
    "list_missing_thumbnails",
    "create_media",
    "insert_if_absent",
    "delete_media",
    "list_folders",
    "get_folder_by_path",
    "create_folder",
]
