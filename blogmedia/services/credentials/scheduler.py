# blogmedia/services/credentials/scheduler.py
from __future__ import annotations

"""
Blog Media • credential expiry timer
------------------------------------
One APScheduler interval job per process that runs
`CredentialLifecycleManager.check_expiry()`.

The scheduler is owned by `StorageContext`: started from the application
lifespan, shut down on exit. Nothing here runs on import.
"""

import logging
from datetime import timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from blogmedia.core.config import settings
from blogmedia.services.credentials.manager import CredentialLifecycleManager

logger = logging.getLogger(__name__)

JOB_ID = "storage_credential_expiry_check"


class CredentialRefreshScheduler:
    def __init__(
        self,
        manager: CredentialLifecycleManager,
        *,
        interval_minutes: Optional[int] = None,
        jitter_seconds: Optional[int] = None,
    ) -> None:
        self._manager = manager
        self._interval = int(interval_minutes or settings.CREDENTIAL_CHECK_INTERVAL_MINUTES)
        self._jitter = int(settings.CREDENTIAL_CHECK_JITTER_SECONDS if jitter_seconds is None else jitter_seconds)
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the job on the running event loop (idempotent)."""
        if self.running:
            return
        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        scheduler.add_job(
            self._manager.check_expiry,
            IntervalTrigger(minutes=self._interval, jitter=self._jitter or None, timezone=timezone.utc),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Credential expiry scheduler started | interval=%sm, jitter=%ss", self._interval, self._jitter)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Credential expiry scheduler stopped")


__all__ = ["CredentialRefreshScheduler", "JOB_ID"]
