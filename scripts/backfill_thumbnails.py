#!/usr/bin/env python3
from __future__ import annotations

"""
Blog Media • Backfill thumbnails
================================

Generates thumbnails for image/PDF catalog rows that have none: downloads the
original, renders the preview (Pillow / pdftoppm), uploads it next to the
original and links it on the row.

Usage
-----
    python scripts/backfill_thumbnails.py --limit 200
    python scripts/backfill_thumbnails.py --dry-run
"""

import argparse
import asyncio
import sys

from blogmedia.core import logger as _logsetup  # noqa: F401
from blogmedia.core.exceptions import StorageError
from blogmedia.db.session import async_engine, async_session_maker
from blogmedia.services.context import StorageContext


async def run(limit: int, dry_run: bool) -> int:
    ctx = StorageContext(async_session_maker, scheduler_enabled=False)
    try:
        async with async_session_maker() as session:
            report = await ctx.thumbnails.backfill(session, limit=limit, dry_run=dry_run)
    except StorageError as e:
        print(f"Backfill aborted: {e.message}", file=sys.stderr)
        if e.remediation:
            print(f"  → {e.remediation}", file=sys.stderr)
        return 2
    finally:
        await async_engine.dispose()

    for item in report.results:
        line = f"  {item['status']:<10} {item['key']}"
        if item.get("thumbnail_key"):
            line += f" → {item['thumbnail_key']}"
        if item.get("error"):
            line += f" ({item['error']})"
        print(line)
    print(
        f"{'Would process' if dry_run else 'Processed'} {report.examined} record(s): "
        f"generated={report.generated} failed={report.failed}"
    )
    return 1 if report.failed else 0


def main() -> None:
    ap = argparse.ArgumentParser(description="Generate thumbnails for catalog rows missing one")
    ap.add_argument("--limit", type=int, default=100, help="Max records to process (default: %(default)s)")
    ap.add_argument("--dry-run", action="store_true", help="List candidates without touching storage")
    args = ap.parse_args()
    sys.exit(asyncio.run(run(max(1, args.limit), args.dry_run)))


if __name__ == "__main__":
    main()
