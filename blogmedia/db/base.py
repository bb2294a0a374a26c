# blogmedia/db/base.py
"""
Blog Media • SQLAlchemy Base registry
=====================================

Import all ORM models so their tables are registered on `Base.metadata`
(Alembic autogeneration, test `create_all`).

Keep this file import-only; no runtime logic.
"""

from blogmedia.db.base_class import Base

from blogmedia.db.models.setting import Setting
from blogmedia.db.models.media_file import MediaFile
from blogmedia.db.models.media_folder import MediaFolder

__all__ = ["Base", "Setting", "MediaFile", "MediaFolder"]
