#!/usr/bin/env python3
from __future__ import annotations

"""
Blog Media • Reconcile bucket with catalog
==========================================

Runs reconciliation passes in-process (same settings/DB as the API). One
pass covers one listing page (≤ 1000 keys); `--all` follows continuation
tokens until the prefix is exhausted.

Usage
-----
    python scripts/sync_bucket.py --prefix uploads/ --all
    python scripts/sync_bucket.py --prefix uploads/2026-10-19/ --verbose
"""

import argparse
import asyncio
import logging
import sys

from blogmedia.core import logger as _logsetup  # noqa: F401
from blogmedia.core.config import settings
from blogmedia.core.exceptions import StorageError
from blogmedia.db.session import async_engine, async_session_maker
from blogmedia.schemas.enums import SyncItemStatus
from blogmedia.services.context import StorageContext

logger = logging.getLogger("scripts.sync_bucket")


async def run(prefix: str, *, follow: bool, max_passes: int, verbose: bool, token: str | None = None) -> int:
    ctx = StorageContext(async_session_maker, scheduler_enabled=False)
    totals = {"inserted": 0, "corrected": 0, "processed": 0, "failed": 0}
    passes = 0
    try:
        while True:
            report = await ctx.reconciler.sync(prefix, continuation_token=token)
            passes += 1
            totals["inserted"] += report.inserted
            totals["corrected"] += report.corrected
            totals["processed"] += report.total_processed
            totals["failed"] += report.failed
            for item in report.results:
                if item.status == SyncItemStatus.ERROR or (verbose and item.status != SyncItemStatus.ALREADY_EXISTS):
                    print(f"  {item.status.value:<15} {item.key} {item.message or ''}".rstrip())
            token = report.next_continuation_token
            if not (follow and token) or passes >= max_passes:
                break
    except StorageError as e:
        print(f"Sync aborted: {e.message}", file=sys.stderr)
        if e.remediation:
            print(f"  → {e.remediation}", file=sys.stderr)
        return 2
    finally:
        await ctx.stop()
        await async_engine.dispose()

    print(
        f"Sync complete ({passes} pass{'es' if passes != 1 else ''}): "
        f"inserted={totals['inserted']} corrected={totals['corrected']} "
        f"processed={totals['processed']} failed={totals['failed']}"
    )
    if token:
        print(f"More objects remain; resume with --continuation-token {token}")
    return 1 if totals["failed"] else 0


def main() -> None:
    ap = argparse.ArgumentParser(description="Reconcile the media bucket with the catalog")
    ap.add_argument("--prefix", default=settings.MEDIA_SYNC_PREFIX, help="Key prefix to reconcile (default: %(default)s)")
    ap.add_argument("--all", action="store_true", help="Follow continuation tokens until the prefix is exhausted")
    ap.add_argument("--max-passes", type=int, default=1000, help="Upper bound on passes with --all")
    ap.add_argument("--continuation-token", default=None, help="Resume from a previous pass")
    ap.add_argument("--verbose", action="store_true", help="Print every inserted/corrected/skipped key")
    args = ap.parse_args()

    code = asyncio.run(
        run(
            args.prefix,
            follow=args.all,
            max_passes=max(1, args.max_passes),
            verbose=args.verbose,
            token=args.continuation_token,
        )
    )
    sys.exit(code)


if __name__ == "__main__":
    main()
