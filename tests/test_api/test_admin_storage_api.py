# tests/test_api/test_admin_storage_api.py
from __future__ import annotations

import pytest
from httpx import AsyncClient

from blogmedia.core.exceptions import SessionExpired
from tests.fixtures.storage import png_bytes
from tests.utils.factory import create_media

BASE = "/api/v1/admin/storage"


# ──────────────────────────────────────────────────────────────────────────────
# 🔐 Credentials
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_credential_status(async_client: AsyncClient, admin_headers):
    r = await async_client.get(f"{BASE}/credentials/status", headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    body = r.json()
    assert body["strategy"] == "long_lived_refresh"
    assert body["healthy"] is True
    assert body["state"] == "ready"
    assert body["expiry_status"] == "expiring_soon"  # 1h stub lifetime < 120 min warn threshold
    assert 55 <= body["remaining_minutes"] <= 60


@pytest.mark.anyio
async def test_refresh_now(async_client: AsyncClient, admin_headers, stub_providers):
    r = await async_client.post(f"{BASE}/credentials/refresh", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["healthy"] is True
    assert stub_providers.resolutions == 2


@pytest.mark.anyio
async def test_refresh_failure_carries_remediation(async_client: AsyncClient, admin_headers, stub_providers):
    stub_providers.errors.append(SessionExpired("SSO session expired", remediation="Run `aws sso login`"))
    r = await async_client.post(f"{BASE}/credentials/refresh", headers=admin_headers)
    assert r.status_code == 401
    body = r.json()
    assert body["code"] == "session_expired"
    assert body["remediation"] == "Run `aws sso login`"

    r = await async_client.get(f"{BASE}/credentials/status", headers=admin_headers)
    assert r.json()["last_error"] == "SSO session expired"


@pytest.mark.anyio
async def test_status_requires_admin(async_client: AsyncClient):
    r = await async_client.get(f"{BASE}/credentials/status")
    assert r.status_code == 401


@pytest.mark.anyio
async def test_connection_test_endpoint(async_client: AsyncClient, admin_headers, fake_s3):
    r = await async_client.post(f"{BASE}/test-connection", headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    body = r.json()
    assert body["ok"] is True
    assert body["bucket"] == "media-bucket"
    assert body["strategy"] == "long_lived_refresh"

    fake_s3.list_failures = 1
    r = await async_client.post(f"{BASE}/test-connection", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is False
    assert "s3:ListBucket" in body["remediation"]
    assert "secret" not in r.text.lower()


@pytest.mark.anyio
async def test_connection_test_requires_admin(async_client: AsyncClient):
    r = await async_client.post(f"{BASE}/test-connection")
    assert r.status_code == 401


# ──────────────────────────────────────────────────────────────────────────────
# ⚙️ Configuration
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_config_get_is_redacted(async_client: AsyncClient, admin_headers):
    r = await async_client.get(f"{BASE}/config", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["strategy"] == "long_lived_refresh"
    assert body["params"]["secretAccessKey"] == "********"
    assert "base-secret" not in r.text


@pytest.mark.anyio
async def test_config_put_merges_and_reinitializes(async_client: AsyncClient, admin_headers, stub_providers):
    r = await async_client.put(
        f"{BASE}/config",
        json={
            "strategy": "role_assumption",
            "params": {"accessKeyId": "AKIANEW", "secretAccessKey": "new-secret", "roleArn": "arn:aws:iam::1:role/media"},
        },
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["config"]["strategy"] == "role_assumption"
    assert body["config"]["missing"] == []
    assert body["config"]["params"]["secretAccessKey"] == "********"
    assert body["status"]["strategy"] == "role_assumption"
    assert "new-secret" not in r.text
    assert stub_providers.built == 2

    r = await async_client.put(
        f"{BASE}/config",
        json={"location": {"bucketName": "other-bucket"}},
        headers=admin_headers,
    )
    assert r.json()["config"]["location"] == {"region": "us-east-1", "bucketName": "other-bucket"}


@pytest.mark.anyio
async def test_config_put_rejects_unknown_strategy(async_client: AsyncClient, admin_headers):
    r = await async_client.put(f"{BASE}/config", json={"strategy": "carrier_pigeon"}, headers=admin_headers)
    assert r.status_code == 422


# ──────────────────────────────────────────────────────────────────────────────
# 🔄 Maintenance
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_sync_endpoint(async_client: AsyncClient, admin_headers, fake_s3):
    fake_s3.seed("uploads/2026-01-02/a-11111111.png")
    fake_s3.seed("uploads/2026-01-02/b-22222222.pdf")

    r = await async_client.post(f"{BASE}/sync", headers=admin_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["prefix"] == "uploads/"
    assert body["inserted"] == 2
    assert body["next_continuation_token"] is None

    r = await async_client.post(f"{BASE}/sync", json={"prefix": "uploads/2026-01-02/"}, headers=admin_headers)
    assert r.json()["inserted"] == 0


@pytest.mark.anyio
async def test_sync_listing_failure_is_502(async_client: AsyncClient, admin_headers, fake_s3):
    fake_s3.list_failures = 1
    r = await async_client.post(f"{BASE}/sync", headers=admin_headers)
    assert r.status_code == 502
    assert r.json()["remediation"]


@pytest.mark.anyio
async def test_backfill_endpoint(async_client: AsyncClient, admin_headers, fake_s3, session_factory):
    key = "uploads/2026-10-19/hero-11111111.png"
    fake_s3.seed(key, png_bytes())
    async with session_factory() as s:
        await create_media(s, key)

    r = await async_client.post(f"{BASE}/thumbnails/backfill", json={"dry_run": True}, headers=admin_headers)
    assert r.json()["examined"] == 1
    assert r.json()["generated"] == 0

    r = await async_client.post(f"{BASE}/thumbnails/backfill", json={"limit": 10}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["generated"] == 1
    assert r.json()["results"][0]["thumbnail_key"] == "uploads/2026-10-19/thumbnails/hero-11111111-thumb.jpg"
