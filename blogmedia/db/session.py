# blogmedia/db/session.py
from __future__ import annotations

"""
Blog Media • Database engine & session dependencies

- Async engine/session for FastAPI, scripts and the credential store.
- Pool knobs are only applied to server databases (SQLite pools reject them).
- `dialect_insert` picks the dialect-specific INSERT so repositories can use
  `ON CONFLICT` on both PostgreSQL and SQLite.
"""

from typing import Any, AsyncGenerator, Dict
import logging
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from blogmedia.core.config import settings

logger = logging.getLogger(__name__)

ASYNC_DATABASE_URL: str = settings.ASYNC_DATABASE_URL

# Pool knobs
_POOL_PRE_PING = True
_POOL_RECYCLE = 1800
_POOL_TIMEOUT = 30
_POOL_SIZE = 10
_MAX_OVERFLOW = 20


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": _POOL_PRE_PING,
        "pool_recycle": _POOL_RECYCLE,
        "pool_size": _POOL_SIZE,
        "max_overflow": _MAX_OVERFLOW,
        "pool_timeout": _POOL_TIMEOUT,
    }


# ─────────────────────────────────────────────────────────────
# ⚡ ASYNC ENGINE
# ─────────────────────────────────────────────────────────────

async_engine: AsyncEngine = create_async_engine(
    ASYNC_DATABASE_URL,
    echo=False,
    **_engine_kwargs(ASYNC_DATABASE_URL),
)


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINTs nest correctly."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # pragma: no cover - driver hook
        conn.exec_driver_sql("BEGIN")


if ASYNC_DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(async_engine)


async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async SQLAlchemy session."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def transactional_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session and a transaction (commit on success, rollback on error)."""
    async with async_session_maker() as session:
        async with session.begin():
            yield session


async def db_healthcheck() -> bool:
    """Quick SELECT 1 to verify DB connectivity (used by /readyz)."""
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("DB healthcheck failed")
        return False


def dialect_insert(session: AsyncSession, table: Any):
    """Return an INSERT construct supporting `on_conflict_*` for the bound dialect."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise RuntimeError(f"Unsupported dialect for conflict-safe insert: {name}")


__all__ = [
    "async_engine",
    "async_session_maker",
    "get_async_db",
    "transactional_async_session",
    "db_healthcheck",
    "dialect_insert",
    "enable_sqlite_savepoints",
]
