# tests/fixtures/app.py

"""
🧩 App Fixture:
- Builds the real app (`create_app`) with the test storage context injected
- Each request gets its own session from the test sessionmaker
- HTTP client + admin bearer headers for integration tests
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.core.config import settings
from blogmedia.db.session import get_async_db
from blogmedia.main import create_app
from tests.fixtures.db import SessionFactory


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionFactory() as session:
        yield session


def make_token(sub: str = "op-1", role: str = "ADMIN", **claims) -> str:
    payload = {
        "sub": sub,
        "role": role,
        "token_type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


@pytest.fixture()
async def app(storage_ctx) -> FastAPI:
    """
    🧪 Production app factory; lifespan is not run by ASGITransport, so the
    started storage context is attached directly.
    """
    app = create_app()
    app.state.storage = storage_ctx
    app.dependency_overrides[get_async_db] = _override_get_db
    return app


@pytest.fixture()
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
