# tests/test_api/test_meta_endpoints.py
from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient


@pytest.mark.anyio
async def test_healthz(async_client: AsyncClient):
    r = await async_client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


@pytest.mark.anyio
async def test_readyz_reports_db_and_storage(async_client: AsyncClient):
    r = await async_client.get("/readyz")
    assert r.status_code == 200
    body = r.json()
    assert body["ready"] is True
    assert body["checks"]["db"] is True
    assert body["checks"]["storage"] is True
    assert body["checks"]["storage_state"] == "ready"


@pytest.mark.anyio
async def test_request_id_is_echoed_or_minted(async_client: AsyncClient):
    rid = str(uuid.uuid4())
    r = await async_client.get("/healthz", headers={"X-Request-ID": rid})
    assert r.headers["x-request-id"] == rid

    r = await async_client.get("/healthz", headers={"X-Request-ID": "not-a-uuid"})
    assert r.headers["x-request-id"] != "not-a-uuid"
    assert uuid.UUID(r.headers["x-request-id"]).version == 4


@pytest.mark.anyio
async def test_metrics_exposition(async_client: AsyncClient, admin_headers, fake_s3):
    fake_s3.seed("uploads/2026-01-02/a-11111111.png")
    await async_client.post("/api/v1/admin/storage/sync", headers=admin_headers)

    r = await async_client.get("/metrics")
    assert r.status_code == 200
    assert "media_sync_objects_total" in r.text
