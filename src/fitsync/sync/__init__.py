"""Sync infrastructure for fitsync.

Modules:
    coordinator — Permission/authorization startup and periodic metric polling
"""

from src.fitsync.sync.coordinator import (
    CoordinatorState,
    CycleResult,
    MetricReading,
    MetricSnapshot,
    SyncCoordinator,
    SyncStatus,
)

__all__ = [
    "CoordinatorState",
    "CycleResult",
    "MetricReading",
    "MetricSnapshot",
    "SyncCoordinator",
    "SyncStatus",
]
