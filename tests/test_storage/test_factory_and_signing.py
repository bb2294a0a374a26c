# tests/test_storage/test_factory_and_signing.py
from __future__ import annotations

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from blogmedia.core.exceptions import BucketMismatch, ConfigurationIncomplete, SigningFailure
from blogmedia.services.credentials.manager import CredentialLifecycleManager
from blogmedia.services.storage.client import StorageClient
from blogmedia.services.storage.factory import StorageClientFactory
from blogmedia.services.storage.signed_urls import MAX_TTL_SECONDS, SignedUrlService, clamp_ttl
from tests.fixtures.storage import BUCKET, FakeS3, FakeStore, StubProviders, aws_config


def _wire(*, store=None, stubs=None, s3=None, builder=None):
    stubs = stubs or StubProviders()
    manager = CredentialLifecycleManager(store or FakeStore(), provider_builder=stubs)
    s3 = s3 or FakeS3()
    factory = StorageClientFactory(manager, client_builder=builder or s3.builder)
    return manager, factory, s3, stubs


# ──────────────────────────────────────────────────────────────────────────────
# 🏭 Factory
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_factory_reuses_client_until_credentials_swap():
    manager, factory, s3, _ = _wire()
    await manager.initialize()

    a = await factory.get_client()
    b = await factory.get_client()
    assert a is b
    assert len(s3.clients_built) == 1

    await manager.refresh_now()
    c = await factory.get_client()
    assert c is not a
    assert c.bound_to(manager.current)
    assert c.client._credential.access_key_id == "AKIASTUB0002"


@pytest.mark.anyio
async def test_factory_build_fresh_is_not_cached():
    manager, factory, s3, stubs = _wire()
    cached = await factory.get_client()
    fresh = await factory.build_fresh()
    assert fresh is not cached
    assert stubs.resolutions == 2
    # the cached client was bound to the replaced credential; next call rebuilds
    assert (await factory.get_client()) is not cached


@pytest.mark.anyio
async def test_factory_requires_bucket_and_region():
    _, factory, _, _ = _wire()
    with pytest.raises(ConfigurationIncomplete):
        factory.bucket


# ──────────────────────────────────────────────────────────────────────────────
# 🔏 Signed URLs
# ──────────────────────────────────────────────────────────────────────────────
def test_clamp_ttl_bounds():
    assert clamp_ttl(0) == 1
    assert clamp_ttl(60) == 60
    assert clamp_ttl(10**9) == MAX_TTL_SECONDS
    assert clamp_ttl(None) == 3600


@pytest.mark.anyio
async def test_presigned_url_with_real_signer_carries_expiry():
    manager, factory, _, _ = _wire(builder=StorageClient)
    await manager.initialize()

    signed = await SignedUrlService(factory).sign("uploads/2026-10-19/cover-1a2b3c4d.png", ttl=60)

    url = urlparse(signed.url)
    query = parse_qs(url.query)
    assert BUCKET in url.netloc or url.path.startswith(f"/{BUCKET}/")
    assert url.path.endswith("uploads/2026-10-19/cover-1a2b3c4d.png")
    assert query["X-Amz-Expires"] == ["60"]
    assert query["X-Amz-Credential"][0].startswith("AKIASTUB0001/")
    assert "X-Amz-Security-Token" in query
    assert signed.ttl_seconds == 60
    assert timedelta(seconds=55) < signed.expires_at - manager.current.resolved_at <= timedelta(seconds=65)


@pytest.mark.anyio
async def test_sign_rejects_foreign_bucket():
    manager, factory, _, _ = _wire()
    await manager.initialize()
    with pytest.raises(BucketMismatch):
        await SignedUrlService(factory).sign("uploads/a.png", bucket="someone-elses-bucket")


@pytest.mark.anyio
async def test_sign_retries_once_with_fresh_credentials():
    manager, factory, s3, stubs = _wire()
    await manager.initialize()
    s3.presign_failures = 1

    signed = await SignedUrlService(factory).sign("uploads/a.png", ttl=120)

    assert stubs.resolutions == 2
    assert "X-Amz-Credential=AKIASTUB0002" in signed.url
    assert "X-Amz-Expires=120" in signed.url


@pytest.mark.anyio
async def test_sign_gives_up_after_second_failure():
    manager, factory, s3, _ = _wire()
    await manager.initialize()
    s3.presign_failures = 2

    with pytest.raises(SigningFailure) as exc:
        await SignedUrlService(factory).sign("uploads/a.png")
    assert exc.value.status_code == 502
    assert exc.value.remediation


@pytest.mark.anyio
async def test_sign_with_unusable_config_fails_cleanly():
    store = FakeStore(aws_config(bucket=None))
    manager = CredentialLifecycleManager(store)
    factory = StorageClientFactory(manager, client_builder=FakeS3().builder)
    with pytest.raises(ConfigurationIncomplete):
        await SignedUrlService(factory).sign("uploads/a.png")


@pytest.mark.anyio
async def test_sign_does_not_refresh_for_a_traversing_key():
    manager, factory, s3, stubs = _wire()
    await manager.initialize()

    with pytest.raises(SigningFailure) as exc:
        await SignedUrlService(factory).sign("uploads/../secrets.txt")

    assert "traversal" in exc.value.details["reason"]
    assert stubs.resolutions == 1
    assert len(s3.clients_built) == 1


@pytest.mark.anyio
async def test_sign_accepts_keys_outside_the_upload_charset():
    manager, factory, _, stubs = _wire()
    await manager.initialize()

    signed = await SignedUrlService(factory).sign("uploads/2026-01-02/Résumé, final #2.pdf")

    assert signed.key == "uploads/2026-01-02/Résumé, final #2.pdf"
    assert stubs.resolutions == 1
