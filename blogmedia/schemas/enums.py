# blogmedia/schemas/enums.py
from __future__ import annotations

"""Shared enums for the storage subsystem."""

from enum import Enum


class CredentialStrategy(str, Enum):
    """Mutually exclusive ways of obtaining storage credentials."""

    STATIC_TEMPORARY = "static_temporary"
    IDENTITY_CENTER_SSO = "identity_center_sso"
    ROLE_ASSUMPTION = "role_assumption"
    WEB_IDENTITY = "web_identity"
    LONG_LIVED_REFRESH = "long_lived_refresh"

    @property
    def settings_key(self) -> str:
        """Settings-table key holding this strategy's parameters."""
        return f"aws_{self.value}"


class ManagerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    REFRESHING = "refreshing"
    FAILED = "failed"


class FileClassification(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    OTHER = "other"


class ExpiryStatus(str, Enum):
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    NONE = "none"  # strategy reports no expiry


class SettingType(str, Enum):
    TEXT = "text"
    JSON = "json"


class SyncItemStatus(str, Enum):
    SYNCED = "synced"
    ALREADY_EXISTS = "already_exists"
    CORRECTED = "corrected"
    SKIPPED = "skipped"
    ERROR = "error"
