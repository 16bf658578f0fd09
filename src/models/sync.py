"""Pydantic models for the sync API: status, snapshot and cycle results."""

from __future__ import annotations

from datetime import datetime

from src.fitsync.base import MetricKind
from src.fitsync.config_loader import SyncConfig
from src.fitsync.sync import CycleResult, MetricSnapshot, SyncStatus
from src.models.base import FitSyncBase


# ---------- Status ----------

class SyncStatusRead(FitSyncBase):
    state: str
    authorization: str
    connected: bool
    last_sync_at: datetime | None = None
    last_cycle_status: str | None = None
    last_errors: dict[str, str] = {}
    failure_reason: str | None = None
    failure_message: str | None = None

    @classmethod
    def from_status(cls, status: SyncStatus) -> "SyncStatusRead":
        return cls(
            state=status.state.value,
            authorization=status.authorization.value,
            connected=status.connected,
            last_sync_at=status.last_sync_at,
            last_cycle_status=status.last_cycle_status,
            last_errors={k.value: v for k, v in status.last_errors.items()},
            failure_reason=status.failure_reason,
            failure_message=status.failure_message,
        )


# ---------- Snapshot ----------

class MetricReadingRead(FitSyncBase):
    kind: str
    value: float | None = None
    unit: str = ""
    fetched_at: datetime | None = None


class SnapshotRead(FitSyncBase):
    metrics: list[MetricReadingRead]

    @classmethod
    def from_snapshot(
        cls, snapshot: MetricSnapshot, kinds: list[MetricKind], config: SyncConfig
    ) -> "SnapshotRead":
        metrics = []
        for kind in kinds:
            reading = snapshot.get(kind)
            metrics.append(
                MetricReadingRead(
                    kind=kind.value,
                    value=reading.value if reading else None,
                    unit=config.metric(kind).unit,
                    fetched_at=reading.fetched_at if reading else None,
                )
            )
        return cls(metrics=metrics)


# ---------- Cycle result ----------

class CycleResultRead(FitSyncBase):
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    values: dict[str, float | None] = {}
    errors: dict[str, str] = {}

    @classmethod
    def from_result(cls, result: CycleResult) -> "CycleResultRead":
        return cls(
            status=result.status,
            started_at=result.started_at,
            finished_at=result.finished_at,
            values={k.value: v for k, v in result.values.items()},
            errors={k.value: v for k, v in result.errors.items()},
        )
