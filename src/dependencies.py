"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.fitsync.sync import SyncCoordinator


async def get_coordinator(request: Request) -> SyncCoordinator:
    """Return the coordinator built by the app lifespan.

    The lifespan sets ``app.state.coordinator`` before routes run.
    """
    coordinator: SyncCoordinator | None = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Sync coordinator not initialized")
    return coordinator


# Annotated shortcuts for route signatures
Coordinator = Annotated[SyncCoordinator, Depends(get_coordinator)]
