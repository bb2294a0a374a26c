# blogmedia/repositories/settings.py
from __future__ import annotations

"""Typed access to the string-keyed `settings` table.

Values are stored as text; `json` rows are (de)serialized here so callers only
ever see Python objects. Writes are upserts (`ON CONFLICT (key) DO UPDATE`).
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.db.models.setting import Setting
from blogmedia.db.session import dialect_insert
from blogmedia.schemas.enums import SettingType

logger = logging.getLogger(__name__)


def _decode(row: Setting) -> Any:
    if row.value is None:
        return None
    if row.type == SettingType.JSON:
        try:
            return json.loads(row.value)
        except ValueError:
            logger.warning("Setting %s holds invalid JSON; treating as empty", row.key)
            return None
    return row.value


async def get_settings(session: AsyncSession, keys: Iterable[str]) -> Dict[str, Any]:
    """Return `{key: decoded value}` for the keys that exist."""
    wanted = list(keys)
    if not wanted:
        return {}
    rows = (await session.execute(select(Setting).where(Setting.key.in_(wanted)))).scalars().all()
    return {row.key: _decode(row) for row in rows}


async def get_setting(session: AsyncSession, key: str) -> Optional[Any]:
    return (await get_settings(session, [key])).get(key)


async def upsert_setting(session: AsyncSession, key: str, value: Any, *, type_: Optional[SettingType] = None) -> None:
    """
    Insert or replace a single setting. Does not commit.

    Dicts and lists are stored as `json`; everything else as `text` unless
    `type_` says otherwise. `None` stores SQL NULL.
    """
    if type_ is None:
        type_ = SettingType.JSON if isinstance(value, (dict, list)) else SettingType.TEXT
    if value is None:
        raw = None
    elif type_ == SettingType.JSON:
        raw = json.dumps(value, default=str)
    else:
        raw = str(value)

    stmt = dialect_insert(session, Setting).values(key=key, value=raw, type=type_)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Setting.key],
        set_={"value": raw, "type": type_, "updated_at": func.now()},
    )
    await session.execute(stmt)


async def delete_setting(session: AsyncSession, key: str) -> None:
    row = await session.get(Setting, key)
    if row is not None:
        await session.delete(row)


__all__ = ["get_settings", "get_setting", "upsert_setting", "delete_setting"]
