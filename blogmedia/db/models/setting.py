# blogmedia/db/models/setting.py
from __future__ import annotations

"""
⚙️ Blog Media • Setting (string-keyed typed configuration)
==========================================================

Key/value rows shared with the rest of the blog platform. Values are stored
as text and tagged with a `type` (`text` | `json`) so readers know whether to
parse them. The storage subsystem owns these keys:

- `media_storage_type`        text  ("aws" enables cloud storage)
- `aws_auth_strategy`         text  (explicit strategy selector)
- `aws_storage`               json  (region / bucketName / endpointUrl)
- `aws_<strategy>`            json  (one parameter blob per strategy)
- `aws_resolved_credentials`  json  (last resolved temporary credential)
"""

from sqlalchemy import Column, DateTime, String, Text, func
from sqlalchemy import Enum as SAEnum

from blogmedia.db.base_class import Base
from blogmedia.schemas.enums import SettingType


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=True)
    type = Column(
        SAEnum(SettingType, name="setting_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SettingType.TEXT,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
