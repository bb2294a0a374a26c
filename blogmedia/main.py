# blogmedia/main.py
from __future__ import annotations

"""
# Blog Media Storage API • Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the blog platform's media storage
service.

## Design Goals
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- The storage subsystem (`StorageContext`) is built in the lifespan, stored
  on `app.state.storage` and torn down on exit; nothing starts on import.
- Centralized problem+json exception handling.

## Probes
- `/healthz`: liveness (process up).
- `/readyz`: readiness (DB reachable + storage credential state).
- `/metrics`: Prometheus exposition.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging
import os

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse, Response

# -- Logging bootstrap (Loguru + stdlib intercept) ----------------------------
from blogmedia.core import logger as _logsetup  # noqa: F401

from blogmedia.api.v1.routers import router as api_v1_router
from blogmedia.core.config import settings
from blogmedia.core.exception_handlers import (
    app_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from blogmedia.core.exceptions import AppException
from blogmedia.db.session import async_engine, async_session_maker, db_healthcheck
from blogmedia.middleware.request_id import RequestIDMiddleware
from blogmedia.services.context import StorageContext

logger = logging.getLogger("blogmedia")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup:
        - Build the storage context (unless one was injected) and start it:
          resolve credentials once, start the expiry timer.

    Shutdown:
        - Stop the timer.
        - Dispose the DB async engine.
    """
    logger.info("✅ %s starting up", settings.PROJECT_NAME)
    ctx = getattr(app.state, "storage", None)
    if ctx is None:
        ctx = StorageContext(async_session_maker)
        app.state.storage = ctx
    await ctx.start()

    try:
        yield
    finally:
        await ctx.stop()
        try:
            await async_engine.dispose()
            logger.info("🛑 Database engine disposed")
        except Exception:
            logger.exception("Error disposing DB engine")
        logger.info("🛑 %s shutting down", settings.PROJECT_NAME)


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Returns:
        FastAPI: application with middleware, exception handlers, routers and
        health/readiness/metrics endpoints.
    """
    enable_docs = settings.ENABLE_DOCS
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if enable_docs else None,
        redoc_url="/redoc" if enable_docs else None,
        openapi_url="/openapi.json" if enable_docs else None,
        lifespan=lifespan,
    )

    # ── Middlewares ─────────────────────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)

    # ── Exception handlers ──────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]

    # ── Routers (versioned API) ─────────────────────────────────────────────
    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])
    async def healthz() -> dict[str, bool]:
        """Liveness check. No external checks."""
        return {"ok": True}

    @app.get("/readyz", tags=["meta"])
    async def readyz() -> JSONResponse:
        """
        Readiness check.

        `ready` requires the database. Storage health is reported alongside
        but does not gate readiness: an operator must be able to reach the
        admin API to fix a broken storage configuration.
        """
        db_ok = await db_healthcheck()
        ctx = getattr(app.state, "storage", None)
        storage = ctx.manager.status() if ctx is not None else None
        body = {
            "ready": db_ok,
            "checks": {
                "db": db_ok,
                "storage": bool(storage and storage["healthy"]),
                "storage_state": storage["state"] if storage else "not_started",
            },
        }
        return JSONResponse(body, status_code=200 if db_ok else 503)

    @app.get("/metrics", tags=["meta"], include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn/Gunicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app"]


# Local dev runner (prefer: `uvicorn blogmedia.main:app --reload`)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "blogmedia.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
        log_level=os.getenv("LOG_LEVEL", "info"),
    )
