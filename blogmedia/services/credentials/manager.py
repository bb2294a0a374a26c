# blogmedia/services/credentials/manager.py
from __future__ import annotations

"""
♻️ Blog Media • Credential lifecycle manager
============================================

Owns the active `CredentialProvider` and the last `ResolvedCredential`.

State machine
-------------
    UNINITIALIZED → INITIALIZING → READY ⇄ REFRESHING
                               ↘ FAILED  (cached credential served until its deadline,
                                            then the next get_credentials() re-initializes)

Guarantees
----------
- **Never stale**: a credential whose deadline has passed is never returned.
- **Single-flight**: concurrent callers share one in-flight initialization or
  refresh task and its outcome (success or error).
- **Generation fence**: a resolution started before `reinitialize()` never
  replaces the credential resolved from the new configuration.
- **Non-blocking readers**: while the cached credential is valid, readers
  return it without touching any lock.
- **Atomic swap**: the cached credential is an immutable object replaced by a
  single assignment.
- **One attempt inline**: resolution errors propagate to the caller; the
  background `check_expiry()` is the only automatic retry path.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from blogmedia.core.config import settings
from blogmedia.core.exceptions import StorageError
from blogmedia.core.metrics import inc_credential_refresh
from blogmedia.schemas.credentials import CredentialConfig, ResolvedCredential, StorageLocation, utcnow
from blogmedia.schemas.enums import CredentialStrategy, ExpiryStatus, ManagerState
from blogmedia.services.credentials.providers import CredentialProvider, build_provider

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[..., CredentialProvider]
Listener = Callable[[Optional[ResolvedCredential]], None]


class CredentialLifecycleManager:
    """
    Parameters
    ----------
    store : CredentialConfigStore
        Source of `CredentialConfig`; also handed to providers that persist
        resolved credentials.
    provider_builder : callable
        `build_provider`-compatible factory (overridable in tests).
    warn_threshold / eager_refresh : timedelta
        Background-check thresholds (defaults: 2h / 30min from settings).
    """

    def __init__(
        self,
        store: Any,
        *,
        provider_builder: ProviderBuilder = build_provider,
        provider_kwargs: Optional[Dict[str, Any]] = None,
        warn_threshold: Optional[timedelta] = None,
        eager_refresh: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._provider_builder = provider_builder
        self._provider_kwargs = dict(provider_kwargs or {})
        self._warn_threshold = warn_threshold or timedelta(minutes=settings.CREDENTIAL_WARN_THRESHOLD_MINUTES)
        self._eager_refresh = eager_refresh or timedelta(minutes=settings.CREDENTIAL_EAGER_REFRESH_MINUTES)
        self._clock = clock

        self._state = ManagerState.UNINITIALIZED
        self._config: Optional[CredentialConfig] = None
        self._provider: Optional[CredentialProvider] = None
        self._credential: Optional[ResolvedCredential] = None
        self._last_error: Optional[StorageError] = None
        self._last_refreshed_at: Optional[datetime] = None

        self._init_task: Optional[asyncio.Task] = None
        self._refresh_lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Task] = None
        self._generation = 0
        self._listeners: List[Listener] = []

    # ─────────────────────────────────────────────────────────
    # 🔎 Introspection
    # ─────────────────────────────────────────────────────────
    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def strategy(self) -> Optional[CredentialStrategy]:
        return self._config.strategy if self._config else None

    @property
    def location(self) -> Optional[StorageLocation]:
        return self._config.location if self._config else None

    @property
    def current(self) -> Optional[ResolvedCredential]:
        return self._credential

    @property
    def last_error(self) -> Optional[StorageError]:
        return self._last_error

    def add_listener(self, listener: Listener) -> None:
        """Called with the new credential (or None on reset) after every swap."""
        self._listeners.append(listener)

    # ─────────────────────────────────────────────────────────
    # 🚀 Initialization
    # ─────────────────────────────────────────────────────────
    async def initialize(self) -> ResolvedCredential:
        """
        Load config, build the provider and resolve once.

        Concurrent callers share one initialization task and its outcome;
        whoever arrives after a successful initialization gets the cached
        credential without a second resolution.
        """
        credential = self._credential
        if self._state in (ManagerState.READY, ManagerState.REFRESHING) and credential is not None:
            return credential
        task = self._init_task
        if task is None:
            task = asyncio.ensure_future(self._do_initialize())
            self._init_task = task
        return await asyncio.shield(task)

    async def _do_initialize(self) -> ResolvedCredential:
        try:
            while True:
                self._state = ManagerState.INITIALIZING
                generation = self._generation
                strategy_label = "unknown"
                try:
                    config = await self._store.load()
                    strategy_label = config.strategy.value if config.strategy else "unset"
                    provider = self._provider_builder(config, store=self._store, **self._provider_kwargs)
                    credential = await provider.resolve()
                except StorageError as e:
                    if generation != self._generation:
                        logger.info("Discarding initialization failure from a superseded configuration")
                        continue
                    self._fail(e, strategy_label)
                    raise
                except Exception:
                    self._state = ManagerState.UNINITIALIZED
                    raise

                if generation == self._generation:
                    break
                logger.info("Discarding initialization result from a superseded configuration")
        finally:
            if self._init_task is asyncio.current_task():
                self._init_task = None

        self._config = config
        self._provider = provider
        self._swap(credential)
        self._state = ManagerState.READY
        self._last_error = None
        inc_credential_refresh(strategy_label, "ok")
        logger.info(
            "Storage credentials ready: strategy=%s key=%s expires=%s",
            strategy_label,
            credential.key_hint,
            credential.expires_at.isoformat() if credential.expires_at else "none",
        )
        return credential

    async def reinitialize(self) -> ResolvedCredential:
        """Drop cached credential + provider and start over from the stored config."""
        self._generation += 1
        self._inflight = None
        self._provider = None
        self._config = None
        self._swap(None)
        self._state = ManagerState.UNINITIALIZED
        logger.info("Credential manager reinitializing after configuration change")
        return await self.initialize()

    # ─────────────────────────────────────────────────────────
    # 🎟️ Access
    # ─────────────────────────────────────────────────────────
    async def get_credentials(self) -> ResolvedCredential:
        # A failed background refresh leaves the old credential usable until its deadline.
        credential = self._credential
        if credential is not None and self._provider is not None and not credential.is_expired(self._clock()):
            return credential

        if self._state in (ManagerState.UNINITIALIZED, ManagerState.FAILED) or self._provider is None:
            credential = await self.initialize()
            if not credential.is_expired(self._clock()):
                return credential
        return await self._refresh(force=False)

    async def refresh_now(self) -> ResolvedCredential:
        """Force a resolution (joins one already in flight)."""
        if self._provider is None:
            return await self.initialize()
        return await self._refresh(force=True)

    async def _refresh(self, *, force: bool) -> ResolvedCredential:
        async with self._refresh_lock:
            task = self._inflight
            if task is None:
                current = self._credential
                if not force and current is not None and not current.is_expired(self._clock()):
                    return current
                task = asyncio.ensure_future(self._do_refresh())
                self._inflight = task
        # shield: a cancelled waiter must not cancel the shared refresh
        return await asyncio.shield(task)

    async def _do_refresh(self) -> ResolvedCredential:
        provider = self._provider
        generation = self._generation
        strategy_label = self.strategy.value if self.strategy else "unset"
        previous_state = self._state
        self._state = ManagerState.REFRESHING
        try:
            if provider is None:
                raise RuntimeError("refresh without provider")
            credential = await provider.resolve()
        except StorageError as e:
            if generation != self._generation:
                logger.info("Discarding refresh failure from a superseded configuration")
                return await self.initialize()
            self._fail(e, strategy_label)
            raise
        except Exception:
            if generation == self._generation:
                self._state = previous_state
            raise
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

        if generation != self._generation:
            # reinitialize() ran meanwhile; its credential wins
            logger.info("Discarding refresh result from a superseded configuration")
            return await self.initialize()

        self._swap(credential)
        self._state = ManagerState.READY
        self._last_error = None
        inc_credential_refresh(strategy_label, "ok")
        logger.info("Storage credentials refreshed: strategy=%s key=%s", strategy_label, credential.key_hint)
        return credential

    # ─────────────────────────────────────────────────────────
    # ⏰ Background check (driven by the scheduler)
    # ─────────────────────────────────────────────────────────
    async def check_expiry(self) -> Optional[ResolvedCredential]:
        """
        Timer body. Logs below the warning threshold, refreshes eagerly below
        the refresh threshold, and retries initialization after a retryable
        failure. Never raises.
        """
        try:
            if self._state == ManagerState.FAILED:
                if self._last_error is not None and self._last_error.retryable:
                    logger.info("Retrying credential initialization after %s", type(self._last_error).__name__)
                    return await self.initialize()
                return None
            if self._state == ManagerState.UNINITIALIZED or self._credential is None:
                return None

            remaining = self._credential.remaining(self._clock())
            if remaining is None:
                return None
            minutes = int(remaining.total_seconds() // 60)
            if remaining <= self._eager_refresh:
                logger.info("Credentials expire in %s min; refreshing eagerly", minutes)
                return await self.refresh_now()
            if remaining <= self._warn_threshold:
                logger.warning("Storage credentials expire in %s min (strategy=%s)", minutes, self.strategy)
            return None
        except StorageError as e:
            logger.error("Background credential refresh failed: %s", e)
            return None
        except Exception:
            logger.exception("Unexpected error during background credential check")
            return None

    # ─────────────────────────────────────────────────────────
    # 📊 Status
    # ─────────────────────────────────────────────────────────
    def status(self) -> Dict[str, Any]:
        now = self._clock()
        credential = self._credential
        valid_until = credential.expires_at if credential else None
        remaining = credential.remaining(now) if credential else None

        if credential is None:
            expiry = ExpiryStatus.EXPIRED if self._state == ManagerState.FAILED else ExpiryStatus.NONE
        elif remaining is None or credential.expires_at is None:
            expiry = ExpiryStatus.NONE
        elif remaining <= timedelta(0):
            expiry = ExpiryStatus.EXPIRED
        elif remaining <= self._warn_threshold:
            expiry = ExpiryStatus.EXPIRING_SOON
        else:
            expiry = ExpiryStatus.VALID

        healthy = (
            credential is not None
            and self._state in (ManagerState.READY, ManagerState.REFRESHING)
            and not credential.is_expired(now)
        )
        return {
            "strategy": self.strategy.value if self.strategy else None,
            "valid_until": valid_until,
            "healthy": healthy,
            "state": self._state.value,
            "expiry_status": expiry.value,
            "remaining_minutes": int(remaining.total_seconds() // 60) if remaining is not None and credential.expires_at else None,
            "last_refreshed_at": self._last_refreshed_at,
            "last_error": self._last_error.message if self._last_error else None,
            "remediation": self._last_error.remediation if self._last_error else None,
        }

    # ─────────────────────────────────────────────────────────
    # 🧪 Internals
    # ─────────────────────────────────────────────────────────
    def _swap(self, credential: Optional[ResolvedCredential]) -> None:
        self._credential = credential
        if credential is not None:
            self._last_refreshed_at = credential.resolved_at
        for listener in list(self._listeners):
            listener(credential)

    def _fail(self, error: StorageError, strategy_label: str) -> None:
        self._state = ManagerState.FAILED
        self._last_error = error
        if self._credential is not None and self._credential.is_expired(self._clock()):
            self._swap(None)
        inc_credential_refresh(strategy_label, type(error).__name__)
        logger.warning("Credential resolution failed (%s): %s", type(error).__name__, error.message)


__all__ = ["CredentialLifecycleManager"]
