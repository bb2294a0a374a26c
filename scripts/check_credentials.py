#!/usr/bin/env python3
from __future__ import annotations

"""
Blog Media • Check storage credentials
======================================

Loads the stored configuration, resolves credentials once with the selected
strategy and prints the manager status as JSON. With `--bucket` it also lists
one key from the configured bucket. Exit code 0 when healthy, 2 otherwise
(remediation text goes to stderr).

Usage
-----
    python scripts/check_credentials.py [--bucket]
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from blogmedia.core import logger as _logsetup  # noqa: F401
from blogmedia.core.exceptions import StorageError
from blogmedia.db.session import async_engine, async_session_maker
from blogmedia.services.context import StorageContext


def _report(error: str, remediation: Optional[str]) -> None:
    print(error, file=sys.stderr)
    if remediation:
        print(f"  → {remediation}", file=sys.stderr)


async def run(check_bucket: bool) -> int:
    ctx = StorageContext(async_session_maker, scheduler_enabled=False)
    code = 0
    connection = None
    try:
        try:
            await ctx.manager.initialize()
        except StorageError as e:
            _report(f"{type(e).__name__}: {e.message}", e.remediation)
            code = 2
        if check_bucket and code == 0:
            connection = await ctx.media.test_connection()
            if not connection["ok"]:
                _report(f"Bucket check failed: {connection['error']}", connection["remediation"])
                code = 2
    finally:
        await async_engine.dispose()

    output = {"status": ctx.manager.status()}
    if connection is not None:
        output["connection"] = connection
    print(json.dumps(output, indent=2, default=str))
    return code


def main() -> None:
    parser = argparse.ArgumentParser(description="Resolve storage credentials and report their status")
    parser.add_argument("--bucket", action="store_true", help="Also list one key from the configured bucket")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.bucket)))


if __name__ == "__main__":
    main()
