"""Liveness endpoint of the canary app itself."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Return ``status=ok`` with process uptime in seconds.

    This endpoint never touches the remote platform; the ``deploy-health``
    check probes it through the public subdomain.
    """
    started_at: float = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "status": "ok",
        "app": "tweety",
        "uptime": round(time.monotonic() - started_at, 3),
        "timestamp": datetime.now(UTC).isoformat(),
    }
