# tests/test_credentials/test_scheduler.py
from __future__ import annotations

import pytest

from blogmedia.services.credentials.manager import CredentialLifecycleManager
from blogmedia.services.credentials.scheduler import JOB_ID, CredentialRefreshScheduler
from tests.fixtures.storage import FakeStore, StubProviders


@pytest.mark.anyio
async def test_scheduler_registers_one_expiry_job():
    manager = CredentialLifecycleManager(FakeStore(), provider_builder=StubProviders())
    scheduler = CredentialRefreshScheduler(manager, interval_minutes=5, jitter_seconds=0)

    scheduler.start()
    scheduler.start()  # idempotent
    try:
        assert scheduler.running
        jobs = scheduler._scheduler.get_jobs()
        assert [j.id for j in jobs] == [JOB_ID]
        assert jobs[0].trigger.interval.total_seconds() == 300
        assert jobs[0].max_instances == 1
    finally:
        scheduler.stop()

    assert not scheduler.running
    scheduler.stop()  # no-op once stopped


@pytest.mark.anyio
async def test_context_starts_scheduler_only_when_enabled(storage_ctx):
    assert not storage_ctx.scheduler.running
