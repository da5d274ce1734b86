"""Health check endpoints."""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

_START_TIME = time.monotonic()


@router.get("/api/health")
async def health() -> dict[str, str]:
    """Basic health check -- always returns quickly."""
    return {"status": "ok"}


@router.get("/api/health/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    """Detailed health check with tool server and session status."""
    from pocket import __version__

    checks: dict[str, Any] = {
        "status": "ok",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _START_TIME, 1),
        "components": {},
    }

    registry = getattr(request.app.state, "registry", None)
    if registry is not None:
        checks["components"]["tools"] = {
            "count": len(registry.tool_names()),
            "names": registry.tool_names(),
        }
        checks["components"]["servers"] = [
            {"name": conn.name, "tools": [t.name for t in conn.tools]}
            for conn in registry.connections
        ]
        # No connected server means no tool can be called
        if not len(registry):
            checks["status"] = "degraded"
    else:
        checks["status"] = "degraded"

    sessions = getattr(request.app.state, "sessions", None)
    checks["components"]["sessions"] = {
        "active": len(sessions) if sessions is not None else 0
    }

    return checks
