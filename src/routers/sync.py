"""Sync control endpoints: start, stop, manual sync, snapshot and status."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import Coordinator
from src.fitsync.sync import CoordinatorState
from src.models.sync import CycleResultRead, SnapshotRead, SyncStatusRead

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("fitsync.routers.sync")


# ---------- Lifecycle ----------

@router.post("/start", response_model=SyncStatusRead)
async def start_sync(coordinator: Coordinator) -> Any:
    if coordinator.state is CoordinatorState.STOPPED:
        raise HTTPException(status_code=409, detail="Sync coordinator is stopped")
    await coordinator.start()
    return SyncStatusRead.from_status(coordinator.status())


@router.post("/stop", response_model=SyncStatusRead)
async def stop_sync(coordinator: Coordinator) -> Any:
    await coordinator.stop()
    return SyncStatusRead.from_status(coordinator.status())


# ---------- Manual sync ----------

@router.post("/now", response_model=CycleResultRead)
async def sync_now(coordinator: Coordinator) -> Any:
    if coordinator.state is not CoordinatorState.SYNCED:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot sync in state '{coordinator.state.value}'",
        )
    result = await coordinator.sync_now()
    if result is None:
        raise HTTPException(status_code=409, detail="A sync is already in progress")
    return CycleResultRead.from_result(result)


# ---------- Read-only views ----------

@router.get("/snapshot", response_model=SnapshotRead)
async def get_snapshot(coordinator: Coordinator) -> Any:
    return SnapshotRead.from_snapshot(
        coordinator.snapshot(), coordinator.kinds, coordinator.config
    )


@router.get("/status", response_model=SyncStatusRead)
async def get_status(coordinator: Coordinator) -> Any:
    return SyncStatusRead.from_status(coordinator.status())
