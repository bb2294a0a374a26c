# tests/test_media/test_reconciliation.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime

import pytest
from sqlalchemy import select

from blogmedia.core.exceptions import StorageError
from blogmedia.db.models.media_file import MediaFile
from blogmedia.repositories import media as media_repo
from blogmedia.schemas.enums import FileClassification, SyncItemStatus
from blogmedia.services.reconciliation import ReconciliationEngine
from tests.utils.factory import create_media

DAY = "uploads/2026-01-02"


async def _rows(session_factory):
    async with session_factory() as s:
        return {r.storage_key: r for r in (await s.execute(select(MediaFile))).scalars().all()}


@pytest.mark.anyio
async def test_sync_catalogues_and_classifies_new_objects(storage_ctx, fake_s3, session_factory):
    fake_s3.seed(f"{DAY}/cover-1a2b3c4d.png", b"png!")
    fake_s3.seed(f"{DAY}/report-0badf00d.pdf", b"%PDF-1.7")
    fake_s3.seed(f"{DAY}/clip-deadbeef.mp4", b"mp4")
    fake_s3.seed(f"{DAY}/blob-12345678.xyz", b"x")
    fake_s3.seed(f"{DAY}/thumbnails/cover-1a2b3c4d-thumb.jpg", b"t")
    fake_s3.seed(f"{DAY}/", b"")
    fake_s3.seed("elsewhere/ignored.png")

    report = await storage_ctx.reconciler.sync()

    assert report.prefix == "uploads/"
    assert (report.inserted, report.corrected, report.failed) == (4, 0, 0)
    assert report.total_processed == 4
    assert report.next_continuation_token is None
    statuses = {r.key: r.status for r in report.results}
    assert statuses[f"{DAY}/thumbnails/cover-1a2b3c4d-thumb.jpg"] is SyncItemStatus.SKIPPED
    assert statuses[f"{DAY}/"] is SyncItemStatus.SKIPPED
    assert "elsewhere/ignored.png" not in statuses

    rows = await _rows(session_factory)
    assert set(rows) == {
        f"{DAY}/cover-1a2b3c4d.png",
        f"{DAY}/report-0badf00d.pdf",
        f"{DAY}/clip-deadbeef.mp4",
        f"{DAY}/blob-12345678.xyz",
    }
    png = rows[f"{DAY}/cover-1a2b3c4d.png"]
    assert (png.file_type, png.folder_path, png.mime_type) == (FileClassification.IMAGE, "/images", "image/png")
    assert png.original_name == "cover.png"
    assert png.size_bytes == 4
    assert png.bucket == "media-bucket"
    assert png.uploaded_by is None
    assert png.created_at.replace(tzinfo=None) == datetime(2026, 1, 2, 3, 4, 5)

    pdf = rows[f"{DAY}/report-0badf00d.pdf"]
    assert (pdf.file_type, pdf.folder_path) == (FileClassification.DOCUMENT, "/documents")
    mp4 = rows[f"{DAY}/clip-deadbeef.mp4"]
    assert (mp4.file_type, mp4.folder_path) == (FileClassification.VIDEO, "/videos")
    other = rows[f"{DAY}/blob-12345678.xyz"]
    assert (other.file_type, other.folder_path, other.mime_type) == (
        FileClassification.OTHER,
        "/documents",
        "application/octet-stream",
    )


@pytest.mark.anyio
async def test_second_pass_changes_nothing(storage_ctx, fake_s3):
    fake_s3.seed(f"{DAY}/a-11111111.png")
    fake_s3.seed(f"{DAY}/b-22222222.pdf")

    first = await storage_ctx.reconciler.sync()
    second = await storage_ctx.reconciler.sync()

    assert first.inserted == 2
    assert (second.inserted, second.corrected, second.failed) == (0, 0, 0)
    assert {r.status for r in second.results} == {SyncItemStatus.ALREADY_EXISTS}


@pytest.mark.anyio
async def test_sync_corrects_misclassified_rows(storage_ctx, fake_s3, session_factory):
    key = f"{DAY}/photo-33333333.png"
    moved = f"{DAY}/moved-44444444.png"
    fake_s3.seed(key)
    fake_s3.seed(moved)
    async with session_factory() as s:
        await create_media(s, key, file_type=FileClassification.DOCUMENT, folder_path="/documents")
        await create_media(
            s,
            moved,
            file_type=FileClassification.OTHER,
            folder_path="/blog/hero",
            folder_overridden=True,
        )

    report = await storage_ctx.reconciler.sync()

    assert report.inserted == 0
    assert report.corrected == 2
    rows = await _rows(session_factory)
    assert (rows[key].file_type, rows[key].folder_path) == (FileClassification.IMAGE, "/images")
    # an operator move is respected; only the type is fixed
    assert (rows[moved].file_type, rows[moved].folder_path) == (FileClassification.IMAGE, "/blog/hero")

    again = await storage_ctx.reconciler.sync()
    assert again.corrected == 0


@pytest.mark.anyio
async def test_sync_pages_through_large_listings(storage_ctx, fake_s3):
    for i in range(5):
        fake_s3.seed(f"{DAY}/img{i}-{i:08x}.png")
    engine = ReconciliationEngine(storage_ctx.factory, storage_ctx.session_factory, page_size=2)

    seen, token, passes = 0, None, 0
    while True:
        report = await engine.sync(continuation_token=token)
        seen += report.inserted
        passes += 1
        token = report.next_continuation_token
        if not token:
            break

    assert passes == 3
    assert seen == 5


@pytest.mark.anyio
async def test_listing_failure_raises_storage_error(storage_ctx, fake_s3):
    fake_s3.list_failures = 1
    with pytest.raises(StorageError) as exc:
        await storage_ctx.reconciler.sync()
    assert exc.value.status_code == 502
    assert exc.value.remediation


@pytest.mark.anyio
async def test_report_serializes_for_api(storage_ctx, fake_s3):
    fake_s3.seed(f"{DAY}/a-55555555.gif")
    data = (await storage_ctx.reconciler.sync()).as_dict()
    assert data["inserted"] == 1
    item = data["results"][0]
    assert item["status"] == "synced"
    assert isinstance(item["media_id"], str)


@pytest.mark.anyio
async def test_concurrent_passes_never_duplicate_rows(storage_ctx, fake_s3, session_factory, monkeypatch):
    keys = sorted(f"{DAY}/race{i}-{i:08x}.png" for i in range(3))
    for key in keys:
        fake_s3.seed(key)

    # both passes read the catalog before either one writes
    async def nothing_catalogued_yet(session, storage_keys):
        return []

    monkeypatch.setattr(media_repo, "list_media_by_keys", nothing_catalogued_yet)

    writer = asyncio.Lock()  # SQLite allows one writer at a time

    @asynccontextmanager
    async def one_writer_session():
        async with writer:
            async with session_factory() as s:
                yield s

    engine = ReconciliationEngine(storage_ctx.factory, one_writer_session)
    first, second = await asyncio.gather(engine.sync(), engine.sync())

    winner, loser = (first, second) if first.inserted else (second, first)
    assert (winner.inserted, loser.inserted) == (3, 0)
    assert winner.failed == loser.failed == 0
    assert [r.status for r in loser.results] == [SyncItemStatus.ALREADY_EXISTS] * 3
    assert all(r.message == "Inserted by a concurrent pass" for r in loser.results)

    async with session_factory() as s:
        stored = (await s.execute(select(MediaFile.storage_key))).scalars().all()
    assert sorted(stored) == keys


@pytest.mark.anyio
async def test_corrections_only_touch_rows_on_the_listed_page(storage_ctx, fake_s3, session_factory):
    listed = f"{DAY}/a-11111111.png"
    unlisted = f"{DAY}/z-99999999.png"
    fake_s3.seed(listed)
    fake_s3.seed(f"{DAY}/b-22222222.png")
    async with session_factory() as s:
        await create_media(s, listed, file_type=FileClassification.DOCUMENT, folder_path="/documents")
        await create_media(s, unlisted, file_type=FileClassification.DOCUMENT, folder_path="/documents")

    engine = ReconciliationEngine(storage_ctx.factory, storage_ctx.session_factory, page_size=1)
    report = await engine.sync()

    assert report.corrected == 1
    rows = await _rows(session_factory)
    assert rows[listed].file_type is FileClassification.IMAGE
    assert rows[unlisted].file_type is FileClassification.DOCUMENT


@pytest.mark.anyio
async def test_traversing_keys_are_skipped(storage_ctx, fake_s3):
    fake_s3.seed(f"{DAY}/../escape.png")
    report = await storage_ctx.reconciler.sync()

    assert report.inserted == 0
    assert report.total_processed == 0
    assert report.results[0].status is SyncItemStatus.SKIPPED
    assert "traversal" in report.results[0].message
