"""Versioned API (v1) aggregator.

Expose an aggregated FastAPI router via `blogmedia.api.v1.routers.router`:

    from blogmedia.api.v1.routers import router as api_v1_router
"""

# Note: avoid `routers = ...` here to prevent shadowing the `routers` package
# which breaks dotted-path resolution used by tests (monkeypatch, etc.).

__all__ = []
