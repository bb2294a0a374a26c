# blogmedia/core/logger.py
from __future__ import annotations

"""
Blog Media • Logging (Loguru)
-----------------------------
- Pretty console logs by default; JSON logs via `LOG_JSON=1`
- Request correlation through `request_id` (bound by RequestIDMiddleware)
- Routes stdlib logging (our modules, uvicorn, fastapi, apscheduler, botocore)
  into Loguru so every line shares one format
- Optional rotating file sink

Modules keep using `logging.getLogger(__name__)`; importing this module once
(done by `blogmedia.main`) is enough to wire everything.

Env
---
LOG_LEVEL=INFO|DEBUG|WARNING|ERROR (default: INFO)
LOG_JSON=1
LOG_TO_FILE=1 (default: 0)
LOG_DIR=logs
LOG_FILE=media.log
LOG_ROTATION=10 MB
APP_DEBUG=1 (backtrace/diagnose on console sink)
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from loguru import logger

# ─────────────────────────────────────────────────────────────
# ⚙️ Env
# ─────────────────────────────────────────────────────────────
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "0").lower() in {"1", "true", "yes"}
APP_DEBUG = os.getenv("APP_DEBUG", "0").lower() in {"1", "true", "yes"}

LOG_TO_FILE = os.getenv("LOG_TO_FILE", "0").lower() in {"1", "true", "yes"}
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE = os.getenv("LOG_FILE", "media.log")
LOG_ROTATION = os.getenv("LOG_ROTATION", "10 MB")

# Loggers whose records we pull into Loguru
INTERCEPTED = (
    "blogmedia",
    "scripts",
    "uvicorn",
    "uvicorn.error",
    "fastapi",
    "starlette",
    "apscheduler",
    "botocore.credentials",
)

logger.remove()


# ─────────────────────────────────────────────────────────────
# 🧾 Formatters
# ─────────────────────────────────────────────────────────────
def _fmt_pretty(record) -> str:
    record["extra"].setdefault("request_id", "N/A")
    name = record["extra"].get("logger_name") or record["name"]
    safe_name = str(name).replace("<", "[").replace(">", "]")
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        f"<cyan>{safe_name}</cyan>:<cyan>{{line}}</cyan> - "
        "<level>{message}</level> | request_id={extra[request_id]}\n{exception}"
    )


def _serialize(record) -> str:
    """Structured JSON line, safe for ingestion (Loki, ELK, Datadog)."""
    payload: Dict[str, Any] = {
        "time": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f%z"),
        "level": record["level"].name,
        "logger": record["extra"].get("logger_name") or record["name"],
        "line": record["line"],
        "message": record["message"],
        "request_id": record["extra"].get("request_id", "N/A"),
    }
    for k, v in record["extra"].items():
        if k not in payload and k != "logger_name":
            payload[k] = v if isinstance(v, (str, int, float, bool, type(None))) else str(v)
    if record["exception"] is not None:
        payload["exception"] = str(record["exception"].value)
    return json.dumps(payload, ensure_ascii=False)


def _patch_json(record) -> None:
    record["extra"]["serialized"] = _serialize(record)


if LOG_JSON:
    logger.configure(patcher=_patch_json)
    CONSOLE_FORMAT: Any = "{extra[serialized]}\n"
else:
    CONSOLE_FORMAT = _fmt_pretty

# ─────────────────────────────────────────────────────────────
# 📤 Sinks
# ─────────────────────────────────────────────────────────────
logger.add(
    sys.stdout,
    level=LOG_LEVEL,
    format=CONSOLE_FORMAT,
    enqueue=True,
    backtrace=APP_DEBUG,
    diagnose=APP_DEBUG,
)

if LOG_TO_FILE:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(LOG_DIR / LOG_FILE),
        rotation=LOG_ROTATION,
        level=LOG_LEVEL,
        format=CONSOLE_FORMAT,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )


# ─────────────────────────────────────────────────────────────
# 🔁 Intercept stdlib logging → Loguru
# ─────────────────────────────────────────────────────────────
class InterceptHandler(logging.Handler):
    """Route standard logging records into Loguru, keeping the origin logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Any = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(logger_name=record.name).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


for _name in INTERCEPTED:
    _std = logging.getLogger(_name)
    _std.handlers = [InterceptHandler()]
    _std.setLevel(LOG_LEVEL)
    _std.propagate = False


__all__ = ["logger", "InterceptHandler"]
