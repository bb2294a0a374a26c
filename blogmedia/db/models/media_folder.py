# blogmedia/db/models/media_folder.py
from __future__ import annotations

"""
📁 Blog Media • MediaFolder (navigation tree)

Self-referential folder hierarchy shown in the media library sidebar. Folders
are navigation only: `MediaFile.folder_path` is not constrained by them.
"""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import relationship

from blogmedia.db.base_class import Base


class MediaFolder(Base):
    __tablename__ = "media_folders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    path = Column(String(512), nullable=False)
    parent_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("media_folders.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_by = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    parent = relationship("MediaFolder", remote_side=[id], back_populates="children")
    children = relationship("MediaFolder", back_populates="parent", passive_deletes=True)

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (UniqueConstraint("path", name="uq_media_folders_path"),)
