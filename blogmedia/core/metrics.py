# blogmedia/core/metrics.py
from __future__ import annotations

"""Prometheus counters for the storage subsystem.

Exposed on `/metrics` by `blogmedia.main`. Helpers keep label handling in one
place so services only call `inc_*` / `observe_*`.
"""

from prometheus_client import Counter, Histogram

credential_refresh_total = Counter(
    "storage_credential_refresh_total",
    "Credential resolutions by strategy and outcome",
    labelnames=("strategy", "result"),
)
presigns_total = Counter(
    "storage_presigns_total",
    "Number of presigned URL generations",
    labelnames=("result",),
)
presign_latency = Histogram(
    "storage_presign_seconds",
    "Latency for presigned URL generation",
    labelnames=("result",),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)
sync_objects_total = Counter(
    "media_sync_objects_total",
    "Objects examined by reconciliation passes",
    labelnames=("result",),
)
thumbnails_total = Counter(
    "media_thumbnails_total",
    "Thumbnail generation / deletion outcomes",
    labelnames=("kind", "result"),
)


def inc_credential_refresh(strategy: str, result: str) -> None:
    credential_refresh_total.labels(strategy=strategy, result=result).inc()


def inc_presign(result: str) -> None:
    presigns_total.labels(result=result).inc()


def observe_presign_seconds(result: str, seconds: float) -> None:
    presign_latency.labels(result=result).observe(seconds)


def inc_sync_object(result: str) -> None:
    sync_objects_total.labels(result=result).inc()


def inc_thumbnail(kind: str, result: str) -> None:
    thumbnails_total.labels(kind=kind, result=result).inc()


__all__ = [
    "inc_credential_refresh",
    "inc_presign",
    "observe_presign_seconds",
    "inc_sync_object",
    "inc_thumbnail",
]
