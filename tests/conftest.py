# tests/conftest.py
"""
Global test bootstrap
- Points the app at a throwaway SQLite file (aiosqlite) BEFORE any project import
- Disables the background credential timer (tests drive `check_expiry` directly)
- Pulls in the shared fixtures (db, storage fakes, app/client)
"""

from __future__ import annotations

import os
import tempfile

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env
#   NOTE: set BEFORE importing blogmedia so `settings` and the engine pick it up.
# ──────────────────────────────────────────────────────────────────────────────
_DB_DIR = tempfile.mkdtemp(prefix="blogmedia-tests-")
os.environ.setdefault("DATABASE_URL_OVERRIDE", f"sqlite+aiosqlite:///{_DB_DIR}/test.db")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("CREDENTIAL_SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Shared fixtures
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.db import *        # noqa: F401,F403,E402
from tests.fixtures.storage import *   # noqa: F401,F403,E402
from tests.fixtures.app import *       # noqa: F401,F403,E402
