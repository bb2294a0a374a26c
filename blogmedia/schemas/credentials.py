# blogmedia/schemas/credentials.py
from __future__ import annotations

"""
🔐 Credential schemas
=====================

- `*Params`: per-strategy parameter blobs as stored in the settings table
  (camelCase on the wire). Every field is optional so that partial configs
  can be saved from the admin UI; completeness is checked at resolution
  time via `missing_fields()`.
- `StorageLocation`: region / bucket / optional S3-compatible endpoint.
- `CredentialConfig`: the explicit strategy plus its params and location.
- `ResolvedCredential`: immutable, time-boxed key set handed to clients.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blogmedia.schemas.enums import CredentialStrategy


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# 🧾 Strategy parameter blobs
# ─────────────────────────────────────────────────────────────────────────────
class _Params(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    required: ClassVar[Tuple[str, ...]] = ()
    secret_fields: ClassVar[Tuple[str, ...]] = ()

    def missing_fields(self) -> List[str]:
        """camelCase names of required fields that are unset or blank."""
        missing: List[str] = []
        for name in self.required:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(to_camel(name))
        return missing

    def redacted(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        for name in self.secret_fields:
            alias = to_camel(name)
            if data.get(alias):
                data[alias] = "********"
        return data


class StaticTemporaryParams(_Params):
    required = ("access_key_id", "secret_access_key", "session_token")
    secret_fields = ("secret_access_key", "session_token")

    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    issued_at: Optional[datetime] = None


class IdentityCenterSSOParams(_Params):
    required = ("start_url", "sso_region", "account_id", "role_name")

    start_url: Optional[str] = None
    sso_region: Optional[str] = None
    account_id: Optional[str] = None
    role_name: Optional[str] = None
    sso_session: Optional[str] = None
    cache_dir: Optional[str] = None


class RoleAssumptionParams(_Params):
    required = ("access_key_id", "secret_access_key", "role_arn")
    secret_fields = ("secret_access_key", "session_token")

    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    role_arn: Optional[str] = None
    external_id: Optional[str] = None
    session_name: str = "MediaLibraryAutoRefresh"
    duration_seconds: int = Field(3600, ge=900, le=43200)


class WebIdentityParams(_Params):
    required = ("role_arn",)

    role_arn: Optional[str] = None
    token_file: Optional[str] = None
    session_name: str = "MediaLibraryWebIdentity"
    issuer: Optional[str] = None
    subject: Optional[str] = None
    audience: Optional[str] = None
    duration_seconds: int = Field(3600, ge=900, le=43200)


class LongLivedRefreshParams(_Params):
    required = ("access_key_id", "secret_access_key")
    secret_fields = ("secret_access_key",)

    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


PARAMS_BY_STRATEGY: Dict[CredentialStrategy, Type[_Params]] = {
    CredentialStrategy.STATIC_TEMPORARY: StaticTemporaryParams,
    CredentialStrategy.IDENTITY_CENTER_SSO: IdentityCenterSSOParams,
    CredentialStrategy.ROLE_ASSUMPTION: RoleAssumptionParams,
    CredentialStrategy.WEB_IDENTITY: WebIdentityParams,
    CredentialStrategy.LONG_LIVED_REFRESH: LongLivedRefreshParams,
}


class StorageLocation(_Params):
    required = ("region", "bucket_name")

    region: Optional[str] = None
    bucket_name: Optional[str] = None
    endpoint_url: Optional[str] = None


# ─────────────────────────────────────────────────────────────────────────────
# 🧩 Aggregate config
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class CredentialConfig:
    """Everything a provider needs, loaded in one read of the settings table."""

    storage_type: Optional[str]
    strategy: Optional[CredentialStrategy]
    location: StorageLocation
    params: Dict[str, Any] = field(default_factory=dict)

    def params_for(self, model: Type[_Params]) -> Any:
        return model.model_validate(self.params or {})


# ─────────────────────────────────────────────────────────────────────────────
# 🎟️ Resolved credential
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ResolvedCredential:
    """
    A concrete key set. Never mutated; each refresh produces a new instance.

    `expires_at` is the expiry reported to callers (None for non-expiring
    strategies). `rotate_after` is an internal deadline used when the
    strategy hides a real session lifetime behind `expires_at=None`.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None
    strategy: Optional[CredentialStrategy] = None
    resolved_at: datetime = field(default_factory=utcnow)
    rotate_after: Optional[datetime] = None

    @property
    def deadline(self) -> Optional[datetime]:
        return _as_utc(self.expires_at or self.rotate_after)

    def remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        deadline = self.deadline
        if deadline is None:
            return None
        return deadline - (now or utcnow())

    def is_expired(self, now: Optional[datetime] = None, *, margin: timedelta = timedelta(0)) -> bool:
        remaining = self.remaining(now)
        return remaining is not None and remaining <= margin

    @property
    def key_hint(self) -> str:
        """Loggable identifier (last 4 chars of the access key id)."""
        return f"…{self.access_key_id[-4:]}" if self.access_key_id else "…"

    def to_cache(self, **extra: Any) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "accessKeyId": self.access_key_id,
            "secretAccessKey": self.secret_access_key,
            "sessionToken": self.session_token,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "strategy": self.strategy.value if self.strategy else None,
            "resolvedAt": self.resolved_at.isoformat(),
        }
        data.update(extra)
        return data

    @classmethod
    def from_cache(cls, data: Dict[str, Any]) -> "ResolvedCredential":
        def _dt(v: Any) -> Optional[datetime]:
            return _as_utc(datetime.fromisoformat(v)) if v else None

        strategy = data.get("strategy")
        return cls(
            access_key_id=data["accessKeyId"],
            secret_access_key=data["secretAccessKey"],
            session_token=data.get("sessionToken"),
            expires_at=_dt(data.get("expiresAt")),
            strategy=CredentialStrategy(strategy) if strategy else None,
            resolved_at=_dt(data.get("resolvedAt")) or utcnow(),
        )


__all__ = [
    "utcnow",
    "StaticTemporaryParams",
    "IdentityCenterSSOParams",
    "RoleAssumptionParams",
    "WebIdentityParams",
    "LongLivedRefreshParams",
    "PARAMS_BY_STRATEGY",
    "StorageLocation",
    "CredentialConfig",
    "ResolvedCredential",
]
