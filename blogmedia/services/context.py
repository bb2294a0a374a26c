# blogmedia/services/context.py
from __future__ import annotations

"""
🧩 Blog Media • Storage context
===============================

Explicit owner of every long-lived storage object in the process:

    CredentialConfigStore → CredentialLifecycleManager → StorageClientFactory
        → SignedUrlService / ReconciliationEngine / ThumbnailPipeline
        → MediaService
    CredentialRefreshScheduler (background expiry check)

Created in the FastAPI lifespan (or by a script), stored on `app.state`, and
handed to routes through `get_storage_context` / `get_media_service`.
Nothing is built on import.
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Request, status

from blogmedia.core.config import settings
from blogmedia.core.exceptions import AppException, StorageError
from blogmedia.services.credentials.config_store import CredentialConfigStore
from blogmedia.services.credentials.manager import CredentialLifecycleManager
from blogmedia.services.credentials.providers import build_provider
from blogmedia.services.credentials.scheduler import CredentialRefreshScheduler
from blogmedia.services.media_service import MediaService
from blogmedia.services.reconciliation import ReconciliationEngine
from blogmedia.services.storage.client import StorageClient
from blogmedia.services.storage.factory import StorageClientFactory
from blogmedia.services.storage.signed_urls import SignedUrlService
from blogmedia.services.thumbnails import PdfRenderer, ThumbnailPipeline

logger = logging.getLogger(__name__)


class StorageContext:
    """
    Parameters
    ----------
    session_factory : callable
        `async_sessionmaker` used by the config store and sync passes.
    provider_builder / provider_kwargs
        Forwarded to the manager (tests inject fake providers or boto clients).
    client_builder : callable
        `StorageClient`-compatible constructor (tests inject a fake S3).
    renderer : PdfRenderer | None
        PDF first-page renderer; `pdftoppm` when omitted.
    scheduler_enabled : bool | None
        Start the background expiry check on `start()` (default from settings).
    """

    def __init__(
        self,
        session_factory: Callable[[], Any],
        *,
        provider_builder: Callable[..., Any] = build_provider,
        provider_kwargs: Optional[Dict[str, Any]] = None,
        client_builder: Callable[..., Any] = StorageClient,
        renderer: Optional[PdfRenderer] = None,
        scheduler_enabled: Optional[bool] = None,
    ) -> None:
        self.session_factory = session_factory
        self.store = CredentialConfigStore(session_factory)
        self.manager = CredentialLifecycleManager(
            self.store,
            provider_builder=provider_builder,
            provider_kwargs=provider_kwargs,
        )
        self.factory = StorageClientFactory(self.manager, client_builder=client_builder)
        self.signer = SignedUrlService(self.factory)
        self.reconciler = ReconciliationEngine(self.factory, session_factory)
        self.thumbnails = ThumbnailPipeline(self.factory, renderer=renderer)
        self.media = MediaService(
            manager=self.manager,
            store=self.store,
            factory=self.factory,
            signer=self.signer,
            reconciler=self.reconciler,
            thumbnails=self.thumbnails,
        )
        self.scheduler = CredentialRefreshScheduler(self.manager)
        self._scheduler_enabled = (
            settings.CREDENTIAL_SCHEDULER_ENABLED if scheduler_enabled is None else scheduler_enabled
        )

    async def start(self) -> None:
        """
        Resolve credentials once and start the expiry timer.

        A storage error here is logged, not raised: the API stays up, status
        reports the failure, and the timer retries retryable errors.
        """
        try:
            await self.manager.initialize()
        except StorageError as e:
            logger.warning("Storage credentials unavailable at startup (%s): %s", type(e).__name__, e.message)
        except Exception:
            logger.exception("Storage credential initialization crashed at startup")
        if self._scheduler_enabled:
            self.scheduler.start()

    async def stop(self) -> None:
        self.scheduler.stop()


# ─────────────────────────────────────────────────────────────────────────────
# 🔌 FastAPI dependencies
# ─────────────────────────────────────────────────────────────────────────────
def get_storage_context(request: Request) -> StorageContext:
    ctx = getattr(request.app.state, "storage", None)
    if ctx is None:
        raise AppException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message="Storage subsystem not started",
            code="storage_unavailable",
        )
    return ctx


def get_media_service(request: Request) -> MediaService:
    return get_storage_context(request).media


__all__ = ["StorageContext", "get_storage_context", "get_media_service"]
