# blogmedia/services/credentials/config_store.py
from __future__ import annotations

"""
CredentialConfig store
----------------------
Reads and writes the storage configuration kept in the `settings` table.

Two kinds of record live here and are never mixed:

- *how to authenticate*: `media_storage_type`, `aws_auth_strategy`,
  `aws_storage` and one `aws_<strategy>` blob per strategy;
- *what was last resolved*: `aws_resolved_credentials`, written only by
  strategies that mint temporary keys worth surviving a restart.

The store opens its own short-lived sessions so the lifecycle manager can use
it from the background timer as well as from request handlers.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.repositories.settings import delete_setting, get_setting, get_settings, upsert_setting
from blogmedia.schemas.credentials import (
    PARAMS_BY_STRATEGY,
    CredentialConfig,
    ResolvedCredential,
    StorageLocation,
)
from blogmedia.schemas.enums import CredentialStrategy, SettingType

logger = logging.getLogger(__name__)

STORAGE_TYPE_KEY = "media_storage_type"
STRATEGY_KEY = "aws_auth_strategy"
LOCATION_KEY = "aws_storage"
RESOLVED_KEY = "aws_resolved_credentials"

SessionFactory = Callable[[], Any]  # async_sessionmaker / compatible


class CredentialConfigStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    # ── reads ────────────────────────────────────────────────
    async def load(self) -> CredentialConfig:
        """Load the active configuration. Never validates completeness."""
        keys = [STORAGE_TYPE_KEY, STRATEGY_KEY, LOCATION_KEY] + [s.settings_key for s in CredentialStrategy]
        async with self._session_factory() as session:
            values = await get_settings(session, keys)

        raw_strategy = values.get(STRATEGY_KEY)
        strategy: Optional[CredentialStrategy]
        try:
            strategy = CredentialStrategy(raw_strategy) if raw_strategy else None
        except ValueError:
            logger.warning("Unknown credential strategy %r in settings", raw_strategy)
            strategy = None

        params: Dict[str, Any] = {}
        if strategy is not None and isinstance(values.get(strategy.settings_key), dict):
            params = values[strategy.settings_key]

        location_raw = values.get(LOCATION_KEY)
        location = StorageLocation.model_validate(location_raw if isinstance(location_raw, dict) else {})

        return CredentialConfig(
            storage_type=values.get(STORAGE_TYPE_KEY),
            strategy=strategy,
            location=location,
            params=params,
        )

    async def load_resolved(self) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as session:
            value = await get_setting(session, RESOLVED_KEY)
        return value if isinstance(value, dict) else None

    # ── writes ───────────────────────────────────────────────
    async def save_resolved(self, credential: ResolvedCredential, **extra: Any) -> None:
        async with self._session_factory() as session:
            await upsert_setting(session, RESOLVED_KEY, credential.to_cache(**extra), type_=SettingType.JSON)
            await session.commit()
        logger.info("Persisted resolved %s credential %s", credential.strategy, credential.key_hint)

    async def save(
        self,
        *,
        storage_type: Optional[str] = None,
        strategy: Optional[CredentialStrategy] = None,
        location: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncSession] = None,
    ) -> None:
        """
        Persist an admin edit. Partial params are accepted as-is; the blob
        for `strategy` is merged over what is stored so secrets need not be
        re-sent on every save.
        """
        if session is None:
            async with self._session_factory() as own:
                await self._save(own, storage_type, strategy, location, params)
                await own.commit()
            return
        await self._save(session, storage_type, strategy, location, params)

    async def _save(self, session, storage_type, strategy, location, params) -> None:
        if storage_type is not None:
            await upsert_setting(session, STORAGE_TYPE_KEY, storage_type, type_=SettingType.TEXT)
        if strategy is not None:
            await upsert_setting(session, STRATEGY_KEY, strategy.value, type_=SettingType.TEXT)
        if location is not None:
            current = await get_setting(session, LOCATION_KEY) or {}
            merged = {**current, **StorageLocation.model_validate(location).model_dump(by_alias=True, exclude_unset=True, exclude_none=True)}
            await upsert_setting(session, LOCATION_KEY, merged, type_=SettingType.JSON)
        if params is not None:
            target = strategy
            if target is None:
                stored = await get_setting(session, STRATEGY_KEY)
                target = CredentialStrategy(stored) if stored else None
            if target is None:
                raise ValueError("Cannot store strategy parameters without a strategy")
            model = PARAMS_BY_STRATEGY[target]
            current = await get_setting(session, target.settings_key) or {}
            incoming = model.model_validate(params).model_dump(by_alias=True, exclude_unset=True, exclude_none=True, mode="json")
            await upsert_setting(session, target.settings_key, {**current, **incoming}, type_=SettingType.JSON)
        # A config edit invalidates whatever the previous config resolved to.
        await delete_setting(session, RESOLVED_KEY)


__all__ = [
    "CredentialConfigStore",
    "STORAGE_TYPE_KEY",
    "STRATEGY_KEY",
    "LOCATION_KEY",
    "RESOLVED_KEY",
]
