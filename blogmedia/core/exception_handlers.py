# blogmedia/core/exception_handlers.py
from __future__ import annotations

"""
Problem+JSON exception handlers (RFC 7807).

Installed by `blogmedia.main.create_app`. All HTTP errors are rendered as
application/problem+json with a stable schema; `AppException` subclasses add
their `code`, `details` and (for storage errors) `remediation` members.
"""

import logging
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogmedia.core.exceptions import AppException

logger = logging.getLogger(__name__)


def _problem(title: str, detail: str, status_code: int, request: Request, **members: Any) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "detail": detail,
        "status": status_code,
        "instance": str(request.url),
    }
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["request_id"] = request_id
    body.update(members)
    return JSONResponse(status_code=status_code, content=body, media_type="application/problem+json")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:  # type: ignore
    title = exc.__class__.__name__.replace("Exception", "").strip() or "Error"
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", title, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "type": "about:blank",
            "title": title,
            "detail": exc.message,
            "status": exc.status_code,
            "instance": str(request.url),
            **exc.to_problem(),
        },
        media_type="application/problem+json",
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    title = exc.__class__.__name__.replace("Exception", "").strip() or "Error"
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _problem(title, detail, exc.status_code, request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    detail = "Validation error"
    return _problem(
        detail,
        detail,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        request,
        errors=exc.errors(),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    logger.exception("Unhandled error on %s", request.url.path)
    return _problem("Internal Server Error", "An unexpected error occurred.", status.HTTP_500_INTERNAL_SERVER_ERROR, request)


__all__ = [
    "app_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
]
