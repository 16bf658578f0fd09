"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from src.config import get_settings
from src.models.base import utc_now

router = APIRouter(tags=["system"])
logger = logging.getLogger("fitsync.health")


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports whether the sync coordinator is connected to the provider.
    """
    settings = get_settings()
    coordinator = getattr(request.app.state, "coordinator", None)
    status = coordinator.status() if coordinator is not None else None

    return {
        "status": "healthy" if status and status.connected else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "sync_state": status.state.value if status else "uninitialized",
        "last_sync_at": status.last_sync_at.isoformat() if status and status.last_sync_at else None,
        "timestamp": utc_now().isoformat(),
    }
