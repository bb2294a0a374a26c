# tests/test_credentials/test_manager.py
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from blogmedia.core.exceptions import ConfigurationIncomplete, SessionExpired, UpstreamAuthError
from blogmedia.schemas.enums import ManagerState
from blogmedia.services.credentials.manager import CredentialLifecycleManager
from tests.fixtures.storage import FakeStore, StubProviders, aws_config


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


def _manager(*, lifetime=timedelta(hours=1), delay=0.0, store=None):
    clock = _Clock()
    stubs = StubProviders(lifetime=lifetime, delay=delay, clock=clock)
    manager = CredentialLifecycleManager(store or FakeStore(), provider_builder=stubs, clock=clock)
    return manager, stubs, clock


# ──────────────────────────────────────────────────────────────────────────────
# 🚀 Initialization
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_initialize_resolves_once_and_reports_ready():
    manager, stubs, _ = _manager()
    cred = await manager.initialize()

    assert manager.state is ManagerState.READY
    assert stubs.resolutions == 1
    assert await manager.get_credentials() is cred
    assert stubs.resolutions == 1


@pytest.mark.anyio
async def test_concurrent_initialize_shares_one_resolution():
    manager, stubs, _ = _manager(delay=0.05)
    results = await asyncio.gather(*(manager.initialize() for _ in range(10)))

    assert stubs.resolutions == 1
    assert len({id(c) for c in results}) == 1


@pytest.mark.anyio
async def test_initialize_failure_sets_failed_state_and_status():
    manager, stubs, _ = _manager()
    stubs.errors.append(SessionExpired("SSO session expired", remediation="Run aws sso login"))

    with pytest.raises(SessionExpired):
        await manager.initialize()

    status = manager.status()
    assert manager.state is ManagerState.FAILED
    assert status["healthy"] is False
    assert status["last_error"] == "SSO session expired"
    assert status["remediation"] == "Run aws sso login"

    # next caller re-initializes inline
    cred = await manager.get_credentials()
    assert cred.access_key_id.startswith("AKIASTUB")
    assert manager.state is ManagerState.READY
    assert manager.status()["last_error"] is None


@pytest.mark.anyio
async def test_real_provider_builder_surfaces_incomplete_config():
    manager = CredentialLifecycleManager(FakeStore(aws_config(bucket=None)))
    with pytest.raises(ConfigurationIncomplete):
        await manager.initialize()
    assert manager.status()["state"] == "failed"


# ──────────────────────────────────────────────────────────────────────────────
# ♻️ Refresh / single-flight
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_expired_credential_is_never_returned():
    manager, stubs, clock = _manager()
    first = await manager.initialize()

    clock.advance(hours=1, seconds=1)
    fresh = await manager.get_credentials()

    assert fresh is not first
    assert fresh.expires_at > clock()
    assert stubs.resolutions == 2


@pytest.mark.anyio
async def test_concurrent_callers_share_one_refresh():
    manager, stubs, clock = _manager(delay=0.05)
    first = await manager.initialize()
    clock.advance(hours=2)

    results = await asyncio.gather(*(manager.get_credentials() for _ in range(25)))

    assert stubs.resolutions == 2
    assert len({id(c) for c in results}) == 1
    assert results[0] is not first
    assert manager.current is results[0]


@pytest.mark.anyio
async def test_concurrent_callers_share_refresh_failure():
    manager, stubs, clock = _manager(delay=0.05)
    await manager.initialize()
    clock.advance(hours=2)
    stubs.errors.append(UpstreamAuthError("STS unreachable"))

    results = await asyncio.gather(*(manager.get_credentials() for _ in range(5)), return_exceptions=True)

    assert all(isinstance(r, UpstreamAuthError) for r in results)
    assert stubs.resolutions == 2
    assert manager.state is ManagerState.FAILED
    # the expired credential was dropped, not kept around
    assert manager.current is None


@pytest.mark.anyio
async def test_refresh_now_forces_new_credential():
    manager, stubs, _ = _manager()
    first = await manager.initialize()
    second = await manager.refresh_now()
    assert second is not first
    assert manager.current is second
    assert stubs.resolutions == 2


@pytest.mark.anyio
async def test_reinitialize_rebuilds_provider_and_notifies_listeners():
    manager, stubs, _ = _manager()
    seen = []
    manager.add_listener(lambda cred: seen.append(cred.access_key_id if cred else None))

    await manager.initialize()
    await manager.reinitialize()

    assert stubs.built == 2
    assert seen == ["AKIASTUB0001", None, "AKIASTUB0002"]


# ──────────────────────────────────────────────────────────────────────────────
# ⏰ Background check
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_check_expiry_leaves_fresh_credentials_alone():
    manager, stubs, clock = _manager(lifetime=timedelta(hours=3))
    await manager.initialize()

    clock.advance(minutes=30)
    assert await manager.check_expiry() is None
    assert stubs.resolutions == 1
    assert manager.status()["expiry_status"] == "valid"


@pytest.mark.anyio
async def test_check_expiry_warns_then_refreshes_eagerly():
    manager, stubs, clock = _manager(lifetime=timedelta(hours=3))
    await manager.initialize()

    clock.advance(minutes=90)  # 90 min left: below the 2h warning threshold
    assert await manager.check_expiry() is None
    assert stubs.resolutions == 1
    assert manager.status()["expiry_status"] == "expiring_soon"

    clock.advance(minutes=70)  # 20 min left: below the 30 min refresh threshold
    refreshed = await manager.check_expiry()
    assert refreshed is not None
    assert stubs.resolutions == 2
    assert manager.status()["expiry_status"] == "valid"


@pytest.mark.anyio
async def test_check_expiry_retries_only_retryable_failures():
    manager, stubs, _ = _manager()
    stubs.errors.append(UpstreamAuthError("STS unreachable"))
    with pytest.raises(UpstreamAuthError):
        await manager.initialize()

    assert await manager.check_expiry() is not None
    assert manager.state is ManagerState.READY

    manager2, stubs2, _ = _manager()
    stubs2.errors.append(SessionExpired("expired"))
    with pytest.raises(SessionExpired):
        await manager2.initialize()
    assert await manager2.check_expiry() is None
    assert stubs2.resolutions == 1
    assert manager2.state is ManagerState.FAILED


@pytest.mark.anyio
async def test_check_expiry_never_raises():
    manager, stubs, clock = _manager()
    await manager.initialize()
    clock.advance(minutes=45)
    stubs.errors.append(UpstreamAuthError("boom"))

    assert await manager.check_expiry() is None
    assert manager.state is ManagerState.FAILED


@pytest.mark.anyio
async def test_non_expiring_credentials_report_none():
    manager, _, _ = _manager(lifetime=None)
    await manager.initialize()
    status = manager.status()
    assert status["healthy"] is True
    assert status["expiry_status"] == "none"
    assert status["valid_until"] is None
    assert status["remaining_minutes"] is None
    assert await manager.check_expiry() is None


# ──────────────────────────────────────────────────────────────────────────────
# 🩹 Failure & reconfiguration
# ──────────────────────────────────────────────────────────────────────────────
@pytest.mark.anyio
async def test_failed_background_refresh_keeps_serving_valid_credential():
    manager, stubs, clock = _manager()
    first = await manager.initialize()

    clock.advance(minutes=40)  # 20 min left: eager refresh kicks in
    stubs.errors.extend([UpstreamAuthError("STS unreachable"), UpstreamAuthError("STS unreachable")])
    assert await manager.check_expiry() is None
    assert manager.state is ManagerState.FAILED
    assert manager.current is first

    # request path does not resolve again while the credential is still valid
    assert await manager.get_credentials() is first
    assert stubs.resolutions == 2
    assert len(stubs.errors) == 1


@pytest.mark.anyio
async def test_failed_state_reinitializes_once_cached_credential_expires():
    manager, stubs, clock = _manager()
    await manager.initialize()
    clock.advance(minutes=40)
    stubs.errors.append(UpstreamAuthError("STS unreachable"))
    await manager.check_expiry()

    clock.advance(minutes=21)
    fresh = await manager.get_credentials()
    assert fresh.expires_at > clock()
    assert manager.state is ManagerState.READY
    assert stubs.resolutions == 3


@pytest.mark.anyio
async def test_concurrent_callers_in_failed_state_share_one_initialization():
    manager, stubs, _ = _manager(delay=0.05)
    stubs.errors.append(UpstreamAuthError("STS unreachable"))
    with pytest.raises(UpstreamAuthError):
        await manager.initialize()
    assert stubs.resolutions == 1

    stubs.errors.append(UpstreamAuthError("still unreachable"))
    results = await asyncio.gather(*(manager.get_credentials() for _ in range(5)), return_exceptions=True)

    assert all(isinstance(r, UpstreamAuthError) for r in results)
    assert {r.message for r in results} == {"still unreachable"}
    assert stubs.resolutions == 2
    assert manager.state is ManagerState.FAILED


@pytest.mark.anyio
async def test_refresh_in_flight_during_reinitialize_does_not_win():
    manager, stubs, _ = _manager()
    await manager.initialize()  # AKIASTUB0001

    stubs.delay = 0.1
    old_refresh = asyncio.ensure_future(manager.refresh_now())  # resolves AKIASTUB0002
    await asyncio.sleep(0.01)
    reinit = asyncio.ensure_future(manager.reinitialize())  # resolves AKIASTUB0003

    old_result, new_result = await asyncio.gather(old_refresh, reinit)

    assert new_result.access_key_id == "AKIASTUB0003"
    assert old_result is new_result
    assert manager.current.access_key_id == "AKIASTUB0003"
    assert manager.state is ManagerState.READY
