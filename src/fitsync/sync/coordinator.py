"""Sync coordinator: permission → authorization → periodic metric polling.

Drives the startup sequence once, then refreshes every configured metric on
a fixed interval (15 minutes by default) and on manual trigger:

1. Request the activity-recognition permission
2. Authorize against the provider for every configured metric
3. Run one fetch cycle immediately
4. Arm a recurring timer that runs a fetch cycle on every tick

A fetch cycle fans out one fetch per metric and joins them; a failure in one
metric never touches the others.  ``last_sync_at`` moves only once every
fetch of the cycle has settled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from src.fitsync.auth import AuthSession
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
from src.fitsync.fetcher import MetricFetcher
from src.fitsync.permissions import PermissionGate

logger = logging.getLogger("fitsync.sync.coordinator")


def _local_now() -> datetime:
    """Timezone-aware local time; the day window follows the local calendar."""
    return datetime.now().astimezone()


class CoordinatorState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    AUTHORIZING = "authorizing"
    AUTHORIZED = "authorized"
    UNAUTHORIZED_FAILED = "unauthorized_failed"
    SYNCED = "synced"
    STOPPED = "stopped"


# ---------------------------------------------------------------------------
# Snapshot / status models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricReading:
    """Last successfully fetched value for one metric."""

    value: float
    fetched_at: datetime


@dataclass
class MetricSnapshot:
    """Latest value per metric kind.  A missing kind was never fetched."""

    readings: dict[MetricKind, MetricReading] = field(default_factory=dict)

    def get(self, kind: MetricKind) -> MetricReading | None:
        return self.readings.get(kind)

    def value(self, kind: MetricKind) -> float | None:
        reading = self.readings.get(kind)
        return reading.value if reading else None

    def copy(self) -> "MetricSnapshot":
        return MetricSnapshot(readings=dict(self.readings))


@dataclass
class SyncStatus:
    """Connection and freshness status for a status view.

    Attributes:
        state:             Coordinator state.
        authorization:     Provider authorization state.
        last_sync_at:      When the last fetch cycle settled (None = never).
        last_cycle_status: 'success', 'partial', 'error' or None.
        last_errors:       Per-metric error messages from the last cycle.
        failure_reason:    'permission_denied' or 'auth_error' after a failed start.
        failure_message:   Detail for ``failure_reason``.
    """

    state: CoordinatorState
    authorization: AuthorizationState
    last_sync_at: datetime | None = None
    last_cycle_status: str | None = None
    last_errors: dict[MetricKind, str] = field(default_factory=dict)
    failure_reason: str | None = None
    failure_message: str | None = None

    @property
    def connected(self) -> bool:
        return self.authorization is AuthorizationState.AUTHORIZED


@dataclass
class CycleResult:
    """Outcome of one fetch cycle.

    Attributes:
        started_at:  Cycle start; also the end of the fetched window.
        finished_at: When every fetch had settled.
        values:      Reduced value per successful kind (None = no new value).
        errors:      Error message per failed kind.

    A cycle with errors and no refreshed value is an "error" cycle.
    """

    started_at: datetime
    finished_at: datetime | None = None
    values: dict[MetricKind, float | None] = field(default_factory=dict)
    errors: dict[MetricKind, str] = field(default_factory=dict)

    @property
    def status(self) -> str:
        refreshed = [v for v in self.values.values() if v is not None]
        if self.errors and not refreshed:
            return "error"
        if self.errors:
            return "partial"
        return "success"


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class SyncCoordinator:
    """Own the snapshot and drive permission, authorization and polling.

    Usage::

        coordinator = SyncCoordinator(provider)
        await coordinator.start()
        coordinator.snapshot().value(MetricKind.STEPS)
        await coordinator.sync_now()
        await coordinator.stop()
    """

    def __init__(
        self,
        provider: FitnessProvider,
        config: SyncConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            provider:         Fitness provider to sync from.
            config:           Sync config; the global singleton by default.
            clock:            Returns "now"; local tz-aware time by default.
            interval_seconds: Override for the configured polling interval.
        """
        self._provider = provider
        self._config = config or get_sync_config()
        self._clock = clock or _local_now
        self._interval = (
            interval_seconds if interval_seconds is not None else self._config.interval_seconds
        )
        self._kinds = self._config.enabled_kinds

        self._gate = PermissionGate(provider, self._config.permission)
        self._auth = AuthSession(provider)
        self._fetcher = MetricFetcher(
            provider, {kind: self._config.metric(kind).bucket for kind in self._kinds}
        )

        self._state = CoordinatorState.IDLE
        self._snapshot = MetricSnapshot()
        self._last_sync_at: datetime | None = None
        self._last_cycle_status: str | None = None
        self._last_errors: dict[MetricKind, str] = {}
        self._failure: FitSyncError | None = None
        self._cycle_in_flight = False
        self._timer: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def kinds(self) -> list[MetricKind]:
        return list(self._kinds)

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_in_flight

    def snapshot(self) -> MetricSnapshot:
        """Return a copy of the current snapshot."""
        return self._snapshot.copy()

    def status(self) -> SyncStatus:
        failure_reason = None
        if isinstance(self._failure, PermissionDenied):
            failure_reason = "permission_denied"
        elif isinstance(self._failure, AuthError):
            failure_reason = "auth_error"
        return SyncStatus(
            state=self._state,
            authorization=self._auth.state,
            last_sync_at=self._last_sync_at,
            last_cycle_status=self._last_cycle_status,
            last_errors=dict(self._last_errors),
            failure_reason=failure_reason,
            failure_message=str(self._failure) if self._failure else None,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> CoordinatorState:
        """Run the startup sequence and arm the periodic timer.

        Permission and authorization failures leave the coordinator in
        UNAUTHORIZED_FAILED; they are reported through ``status()`` and never
        raised.  ``start()`` may be called again from that state.

        Returns:
            The state after startup.
        """
        if self._state not in (CoordinatorState.IDLE, CoordinatorState.UNAUTHORIZED_FAILED):
            logger.warning("start() ignored in state %s", self._state.value)
            return self._state

        self._failure = None
        self._set_state(CoordinatorState.INITIALIZING)

        granted = await self._gate.request_activity_permission()
        if self._state is CoordinatorState.STOPPED:
            return self._state
        if not granted:
            self._fail(PermissionDenied(f"{self._config.permission.name} permission not granted"))
            return self._state

        self._set_state(CoordinatorState.AUTHORIZING)
        try:
            await self._auth.authorize(set(self._kinds))
        except AuthError as exc:
            if self._state is not CoordinatorState.STOPPED:
                self._fail(exc)
            return self._state

        if self._state is CoordinatorState.STOPPED:
            # stop() ran during the handshake and found nothing to release
            await self._auth.disconnect()
            return self._state

        self._set_state(CoordinatorState.AUTHORIZED)
        await self._run_cycle()
        if self._state is CoordinatorState.STOPPED:
            return self._state

        self._set_state(CoordinatorState.SYNCED)
        self._timer = asyncio.create_task(self._tick_loop(), name="fitsync-sync-timer")
        logger.info("Periodic sync armed every %ss", self._interval)
        return self._state

    async def sync_now(self) -> CycleResult | None:
        """Run one fetch cycle immediately.

        Returns:
            The CycleResult, or None if not synced or a cycle is already in
            flight (the trigger is dropped, not queued).
        """
        if self._state is not CoordinatorState.SYNCED:
            logger.info("sync_now() ignored in state %s", self._state.value)
            return None
        return await self._run_cycle()

    async def stop(self) -> None:
        """Cancel the periodic timer and release the provider.  Idempotent.

        A timer cycle already in flight stays referenced by the coordinator
        until it settles; its results are discarded.
        """
        if self._state is CoordinatorState.STOPPED:
            return
        self._set_state(CoordinatorState.STOPPED)

        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            if timer is not asyncio.current_task():
                with contextlib.suppress(asyncio.CancelledError):
                    await timer

        await self._auth.disconnect()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, state: CoordinatorState) -> None:
        if state is not self._state:
            logger.info("Sync coordinator: %s → %s", self._state.value, state.value)
            self._state = state

    def _fail(self, error: FitSyncError) -> None:
        self._failure = error
        logger.warning("Sync startup failed: %s", error)
        self._set_state(CoordinatorState.UNAUTHORIZED_FAILED)

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._state is not CoordinatorState.SYNCED:
                continue
            self._cycle_task = asyncio.ensure_future(self._run_cycle())
            self._cycle_task.add_done_callback(self._on_cycle_done)
            try:
                # A cycle interrupted by stop() keeps running; its result is discarded
                await asyncio.shield(self._cycle_task)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic fetch cycle failed")

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        if self._cycle_task is task:
            self._cycle_task = None

    async def _run_cycle(self) -> CycleResult | None:
        if self._cycle_in_flight:
            logger.info("Fetch cycle already in flight; dropping trigger")
            return None
        if not self._auth.is_authorized:
            logger.warning("Fetch cycle skipped: not authorized")
            return None

        self._cycle_in_flight = True
        try:
            started_at = self._clock()
            window = TimeWindow.today(started_at)
            outcomes = await asyncio.gather(
                *(self._fetch_one(kind, window) for kind in self._kinds)
            )

            if self._state is CoordinatorState.STOPPED:
                logger.info("Coordinator stopped during fetch cycle; discarding results")
                return None

            result = CycleResult(started_at=started_at)
            for kind, outcome in zip(self._kinds, outcomes):
                if isinstance(outcome, FetchError):
                    result.errors[kind] = outcome.message
                    continue
                value, fetched_at = outcome
                result.values[kind] = value
                if value is not None:
                    self._snapshot.readings[kind] = MetricReading(value=value, fetched_at=fetched_at)

            result.finished_at = self._clock()
            self._last_sync_at = result.finished_at
            self._last_cycle_status = result.status
            self._last_errors = dict(result.errors)

            logger.info(
                "Fetch cycle complete: %d/%d metrics, status=%s",
                len(result.values), len(self._kinds), result.status,
            )
            return result
        finally:
            self._cycle_in_flight = False

    async def _fetch_one(
        self, kind: MetricKind, window: TimeWindow
    ) -> tuple[float | None, datetime] | FetchError:
        try:
            value = await self._fetcher.fetch(kind, window)
        except FetchError as exc:
            logger.warning("Error fetching %s: %s", kind.value, exc.message)
            return exc
        except Exception as exc:
            logger.warning("Unexpected error fetching %s: %s", kind.value, exc)
            return FetchError(kind, str(exc) or type(exc).__name__)
        return value, self._clock()
