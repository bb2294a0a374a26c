# blogmedia/core/config.py
from __future__ import annotations

"""
# Blog Media Storage • Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; explicit where prod needs secrets.
- Cloud credentials are **not** configured here: the active strategy and its
  parameters live in the `settings` table and are editable at runtime.
  This module only carries process-level knobs (timers, thresholds, limits).

## Usage
    from blogmedia.core.config import settings
"""

import logging
from pathlib import Path
from typing import List, Optional, Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)
load_dotenv()  # harmless in prod; convenient in dev


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _split_csv(v: str | None) -> list[str]:
    """Split a comma-separated string into a trimmed list (empty-safe)."""
    if not v:
        return []
    return [s.strip() for s in str(v).split(",") if s and s.strip()]


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global application settings sourced from environment.

    Credentials:
        - Refresh cadence and thresholds for the credential lifecycle manager.
        - Well-known local paths used by the SSO and web-identity strategies.

    Media:
        - Upload limits, sync prefix/page size, thumbnail geometry.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "Blog Media Storage"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENV: Literal["development", "staging", "production", "test"] = "development"
    ENABLE_DOCS: bool = True

    # ── Security / JWT (tokens are issued elsewhere; we only verify) ──
    JWT_SECRET_KEY: SecretStr = SecretStr("change-me")
    JWT_ALGORITHM: Literal["HS256", "HS384", "HS512"] = "HS256"
    ADMIN_ROLES: str = "ADMIN,SUPERUSER"  # CSV

    # ── Database (PostgreSQL) ─────────────────────────────────
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = SecretStr("postgres")
    POSTGRES_DB: str = "blog"
    DATABASE_URL_OVERRIDE: Optional[str] = None  # e.g. sqlite+aiosqlite:///./dev.db

    # ── Credential lifecycle ──────────────────────────────────
    CREDENTIAL_SCHEDULER_ENABLED: bool = True
    CREDENTIAL_CHECK_INTERVAL_MINUTES: int = Field(10, ge=5, le=15)
    CREDENTIAL_CHECK_JITTER_SECONDS: int = Field(15, ge=0, le=120)
    CREDENTIAL_WARN_THRESHOLD_MINUTES: int = Field(120, ge=1)
    CREDENTIAL_EAGER_REFRESH_MINUTES: int = Field(30, ge=1)

    # ── AWS (process-local hints; secrets live in the settings table) ──
    AWS_DEFAULT_REGION: str = "us-east-1"
    AWS_SSO_CACHE_DIR: Path = Path("~/.aws/sso/cache")
    AWS_WEB_IDENTITY_TOKEN_FILE: Optional[str] = None

    # ── Storage / media ───────────────────────────────────────
    SIGNED_URL_DEFAULT_TTL_SECONDS: int = Field(3600, ge=1, le=7 * 24 * 60 * 60)
    MEDIA_SYNC_PREFIX: str = "uploads/"
    MEDIA_SYNC_PAGE_SIZE: int = Field(1000, ge=1, le=1000)
    MEDIA_MAX_UPLOAD_BYTES: int = Field(10 * 1024 * 1024, ge=1)
    MEDIA_PAGE_SIZE: int = Field(20, ge=1, le=200)

    # ── Thumbnails ────────────────────────────────────────────
    THUMBNAIL_MAX_WIDTH: int = Field(400, ge=16)
    THUMBNAIL_MAX_HEIGHT: int = Field(400, ge=16)
    THUMBNAIL_JPEG_QUALITY: int = Field(80, ge=1, le=95)
    PDF_THUMBNAIL_WIDTH: int = Field(300, ge=16)
    PDFTOPPM_PATH: str = "pdftoppm"
    PDF_RENDER_TIMEOUT_SECONDS: float = Field(30.0, gt=0)

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("MEDIA_SYNC_PREFIX", mode="before")
    @classmethod
    def _normalize_prefix(cls, v: str | None) -> str:
        s = str(v or "").strip().lstrip("/")
        if s and not s.endswith("/"):
            s += "/"
        return s

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def admin_roles_list(self) -> List[str]:
        return [r.upper() for r in _split_csv(self.ADMIN_ROLES)]

    @property
    def sso_cache_dir(self) -> Path:
        return self.AWS_SSO_CACHE_DIR.expanduser()

    # Database DSNs (stringified for simplicity)
    @property
    def DATABASE_URL(self) -> str:
        """Sync DSN."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """Async SQLAlchemy DSN (override wins, e.g. for sqlite in dev/tests)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


# Singleton instance
settings = Settings()
