"""
🧬 Alembic environment for the media storage schema
===================================================

Tables owned here: `settings`, `media_files`, `media_folders`.

URL resolution (first hit wins):
1) `-x url=...` on the alembic command line
2) `ALEMBIC_DATABASE_URL`
3) `settings.ASYNC_DATABASE_URL` (honours `DATABASE_URL_OVERRIDE`)

Online runs always go through an async engine; SQLite targets use batch mode
so column alterations work on a local file database.
"""

import asyncio
import os
import sys
from logging.config import fileConfig
from typing import Optional

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from blogmedia.core.config import settings  # noqa: E402
from blogmedia.db.base import Base  # noqa: E402  (imports every model)

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
MANAGED_TABLES = frozenset(target_metadata.tables)


def _database_url() -> str:
    cli_url: Optional[str] = context.get_x_argument(as_dictionary=True).get("url")
    return cli_url or os.getenv("ALEMBIC_DATABASE_URL") or settings.ASYNC_DATABASE_URL


def _include_object(obj, name, type_, reflected, compare_to) -> bool:
    # Leave tables belonging to the rest of the platform alone on autogenerate.
    if type_ == "table" and reflected and name not in MANAGED_TABLES:
        return False
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        include_object=_include_object,
        version_table="alembic_version_media",
        **kwargs,
    )


# ─── 📴 Offline: emit SQL ─────────────────────────────────
def run_migrations_offline() -> None:
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


# ─── 🌐 Online: async engine ──────────────────────────────
def _run_sync(connection: Connection) -> None:
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
