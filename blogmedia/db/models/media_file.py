# blogmedia/db/models/media_file.py
from __future__ import annotations

"""
🗂️ Blog Media • MediaFile (catalog row for one stored object)
=============================================================

One row per object in the media bucket (originals only; thumbnails are
referenced through `thumbnail_key`, never catalogued on their own).

Design highlights
-----------------
• **Unique `storage_key`**: the reconciliation pass relies on it for
  conflict-safe inserts when two passes race.
• **Derived placement**: `file_type` and `folder_path` follow the MIME type
  (`/images`, `/videos`, `/documents`) unless an operator moved the file,
  which sets `folder_overridden`.
• **Thumbnail link**: `thumbnail_key` plus original `width`/`height`.
"""

from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy import Enum as SAEnum

from blogmedia.db.base_class import Base, JSONType
from blogmedia.schemas.enums import FileClassification


class MediaFile(Base):
    """Catalogued object in the media bucket."""

    __tablename__ = "media_files"

    # ── Identity ──────────────────────────────────────────────
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # ── Storage ──────────────────────────────────────────────
    storage_key = Column(String(1024), nullable=False, doc="S3 object key.")
    bucket = Column(String(255), nullable=False)
    mime_type = Column(String(127), nullable=False)
    size_bytes = Column(BigInteger, nullable=False, server_default=text("0"))

    # ── Classification / placement ───────────────────────────
    file_type = Column(
        SAEnum(FileClassification, name="media_file_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    folder_path = Column(String(512), nullable=False, server_default="/documents", index=True)
    folder_overridden = Column(Boolean, nullable=False, server_default=text("false"))

    # ── Derived artifacts ────────────────────────────────────
    thumbnail_key = Column(String(1024), nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    # ── Editorial metadata ───────────────────────────────────
    original_name = Column(String(512), nullable=False)
    alt_text = Column(Text, nullable=True)
    caption = Column(Text, nullable=True)
    tags = Column(JSONType, nullable=True)

    uploaded_by = Column(String(64), nullable=True, doc="Operator id (null for sync-discovered rows).")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        UniqueConstraint("storage_key", name="uq_media_files_storage_key"),
        CheckConstraint("size_bytes >= 0", name="size_nonneg"),
        CheckConstraint("(width IS NULL OR width > 0) AND (height IS NULL OR height > 0)", name="dims_positive"),
        Index("ix_media_files_created_at", "created_at"),
    )
