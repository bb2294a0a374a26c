# tests/test_api/test_admin_media_api.py
from __future__ import annotations

import base64
from uuid import uuid4

import pytest
from httpx import AsyncClient

from tests.fixtures.app import make_token
from tests.fixtures.storage import png_bytes
from tests.utils.factory import create_media

BASE = "/api/v1/admin/media"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


# ──────────────────────────────────────────────────────────────────────────────
# 🔐 Guard
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_routes_require_admin_token(async_client: AsyncClient):
    r = await async_client.get(f"{BASE}/files")
    assert r.status_code == 401
    assert r.json()["code"] == "invalid_token"

    r = await async_client.get(f"{BASE}/files", headers={"Authorization": f"Bearer {make_token(role='AUTHOR')}"})
    assert r.status_code == 403

    r = await async_client.get(f"{BASE}/files", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


# ──────────────────────────────────────────────────────────────────────────────
# 📤 Upload → list → sign → delete
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_upload_list_sign_delete_flow(async_client: AsyncClient, admin_headers, fake_s3):
    r = await async_client.post(
        f"{BASE}/upload",
        json={"content_type": "image/png", "data_base64": _b64(png_bytes()), "filename": "cover.png", "alt_text": "Cover"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    media = body["file"]
    assert media["file_type"] == "image"
    assert media["folder_path"] == "/images"
    assert media["uploaded_by"] == "op-1"
    assert media["width"] == 640
    assert body["thumbnail"]["ok"] is True
    assert media["storage_key"] in fake_s3.objects

    r = await async_client.get(f"{BASE}/files", params={"file_type": "image"}, headers=admin_headers)
    assert r.status_code == 200
    page = r.json()
    assert page["total"] == 1
    assert page["items"][0]["id"] == media["id"]

    r = await async_client.get(f"{BASE}/signed-url", params={"key": media["storage_key"], "ttl": 300}, headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    assert r.json()["ttl_seconds"] == 300
    assert "X-Amz-Expires=300" in r.json()["url"]

    r = await async_client.get(f"{BASE}/files/{media['id']}/signed-url", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["key"] == media["storage_key"]

    r = await async_client.delete(f"{BASE}/files/{media['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["object_removed"] is True
    assert media["storage_key"] not in fake_s3.objects

    r = await async_client.get(f"{BASE}/files/{media['id']}", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "object_not_found"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload, status, code",
    [
        ({"content_type": "text/html", "data_base64": _b64(b"<p>")}, 400, "upload_rejected"),
        ({"content_type": "image/png", "data_base64": "%%%not-base64"}, 400, "upload_rejected"),
        ({"content_type": "image/png", "data_base64": ""}, 400, "upload_rejected"),
    ],
)
async def test_upload_rejections(async_client: AsyncClient, admin_headers, payload, status, code):
    r = await async_client.post(f"{BASE}/upload", json=payload, headers=admin_headers)
    assert r.status_code == status
    assert r.json()["code"] == code
    assert r.headers["content-type"].startswith("application/problem+json")


@pytest.mark.anyio
async def test_upload_storage_failure_is_502_with_remediation(async_client: AsyncClient, admin_headers, fake_s3):
    fake_s3.put_failures = 1
    r = await async_client.post(
        f"{BASE}/upload",
        json={"content_type": "image/png", "data_base64": _b64(png_bytes())},
        headers=admin_headers,
    )
    assert r.status_code == 502
    assert r.json()["remediation"]


# ──────────────────────────────────────────────────────────────────────────────
# ✏️ Edit / move
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_patch_and_move(async_client: AsyncClient, admin_headers, session_factory):
    async with session_factory() as s:
        row = await create_media(s, "uploads/2026-10-19/hero-11111111.png", caption="keep me")

    r = await async_client.patch(
        f"{BASE}/files/{row.id}",
        json={"alt_text": "Hero", "tags": ["home", "banner"]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["alt_text"] == "Hero"
    assert r.json()["tags"] == ["home", "banner"]
    assert r.json()["caption"] == "keep me"

    r = await async_client.post(f"{BASE}/files/{row.id}/move", json={"target_folder": "/blog/hero"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["folder_path"] == "/blog/hero"
    assert r.json()["folder_overridden"] is True
    assert r.json()["storage_key"] == "uploads/2026-10-19/hero-11111111.png"


@pytest.mark.anyio
async def test_signed_url_for_unknown_key_is_404(async_client: AsyncClient, admin_headers):
    r = await async_client.get(f"{BASE}/signed-url", params={"key": "uploads/nope.png"}, headers=admin_headers)
    assert r.status_code == 404

    r = await async_client.get(f"{BASE}/files/{uuid4()}/signed-url", headers=admin_headers)
    assert r.status_code == 404


# ──────────────────────────────────────────────────────────────────────────────
# 📁 Folders
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_folders(async_client: AsyncClient, admin_headers):
    r = await async_client.post(f"{BASE}/folders", json={"name": "Blog"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["path"] == "/blog"
    assert r.json()["created_by"] == "op-1"

    r = await async_client.post(f"{BASE}/folders", json={"name": "Hero", "parent_path": "/blog"}, headers=admin_headers)
    assert r.status_code == 201

    r = await async_client.post(f"{BASE}/folders", json={"name": "blog"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "folder_conflict"

    r = await async_client.get(f"{BASE}/folders", headers=admin_headers)
    assert [f["path"] for f in r.json()] == ["/blog", "/blog/hero"]
