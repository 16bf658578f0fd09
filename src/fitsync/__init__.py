"""fitsync — polling sync client for a remote fitness data provider.

This package requests the activity-recognition permission, authorizes
against the provider, and keeps an in-memory snapshot of today's step
count, heart rate and SpO2, refreshed on a fixed interval.

Subpackages:
    adapters/ — Provider implementations (Google Fit)
    sync/     — Sync coordinator (startup sequence, periodic fetch cycles)

Core modules:
    base          — FitnessProvider ABC, canonical models and errors
    config_loader — Load/validate/hot-reload sync_config.yaml
    permissions   — Permission gate
    auth          — Authorization session
    fetcher       — Per-metric fetch and reduction
"""

from src.fitsync.base import (
    AuthError,
    AuthorizationState,
    FetchError,
    FitnessProvider,
    FitSyncError,
    MetricKind,
    PermissionDenied,
    TimeWindow,
)
from src.fitsync.config_loader import SyncConfig, get_sync_config

__all__ = [
    "FitnessProvider",
    "MetricKind",
    "AuthorizationState",
    "TimeWindow",
    "FitSyncError",
    "PermissionDenied",
    "AuthError",
    "FetchError",
    "SyncConfig",
    "get_sync_config",
]
