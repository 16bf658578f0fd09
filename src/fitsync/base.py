"""Base classes and canonical data models for the fitsync client.

Every fitness provider must subclass FitnessProvider and return the
canonical SourceSamples / AuthResult models.  These types are the single
source of truth consumed by the permission gate, auth session, metric
fetcher and sync coordinator.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from enum import Enum

logger = logging.getLogger("fitsync")

# Milliseconds per bucketing unit
BUCKET_UNIT_MS: dict[str, int] = {"minute": 60_000, "hour": 3_600_000, "day": 86_400_000}


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MetricKind(str, Enum):
    """Health measurement types tracked by the client."""

    STEPS = "steps"
    HEART_RATE = "heart_rate"
    SPO2 = "spo2"


class AuthorizationState(str, Enum):
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED = "authorized"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class FitSyncError(Exception):
    """Base class for all fitsync errors."""


class PermissionDenied(FitSyncError):
    """The activity-recognition permission was not granted."""


class AuthError(FitSyncError):
    """The provider handshake was denied or failed in transport."""


class FetchError(FitSyncError):
    """A single metric could not be fetched from the provider.

    Attributes:
        kind:    The metric whose fetch failed.
        message: Human-readable failure reason.
    """

    def __init__(self, kind: MetricKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeWindow:
    """Closed time interval a fetch cycle covers.

    Attributes:
        start: Start of the window (start of the local calendar day).
        end:   End of the window (the moment the cycle began).
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"TimeWindow start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    @classmethod
    def today(cls, now: datetime) -> "TimeWindow":
        """Return [midnight of ``now``'s calendar day, now].

        Midnight carries the UTC offset in force at midnight, not at ``now``.
        A zoneinfo tzinfo resolves that itself.  A fixed offset matching the
        system zone (what ``datetime.now().astimezone()`` returns) is re-read
        from the system zone, so DST-change days start at real local midnight.
        """
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        if isinstance(now.tzinfo, timezone) and now.utcoffset() == now.astimezone().utcoffset():
            start = datetime.combine(now.date(), time.min).astimezone()
        return cls(start=start, end=now)


@dataclass(frozen=True)
class Bucketing:
    """Aggregation hint passed to the provider (e.g. 1 day buckets)."""

    interval: int = 1
    unit: str = "day"

    @property
    def duration_ms(self) -> int:
        return self.interval * BUCKET_UNIT_MS[self.unit]


@dataclass(frozen=True)
class Sample:
    """One provider data point.

    Attributes:
        timestamp: Start time of the point.
        value:     Numeric value in the metric's native unit.
        source_id: Provider data-source identifier, if known.
    """

    timestamp: datetime
    value: float
    source_id: str | None = None


@dataclass
class SourceSamples:
    """Ordered samples reported by a single provider data source."""

    source_id: str
    samples: list[Sample] = field(default_factory=list)


@dataclass
class AuthResult:
    """Outcome of the provider authorization handshake.

    Attributes:
        success:        True if the provider granted access.
        message:        Denial reason or provider message.
        granted_scopes: Provider scope strings that were granted.
    """

    success: bool
    message: str | None = None
    granted_scopes: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Abstract provider
# ---------------------------------------------------------------------------


class FitnessProvider(ABC):
    """Abstract base class for all remote fitness data providers.

    A provider is an opaque remote service: it owns permission prompts,
    authorization and sample storage.  The client only ever talks to it
    through this interface.

    Subclasses must implement:
        - authorize()
        - get_samples()
        - disconnect()

    Optional overrides:
        - request_permission()  (grants by default)
    """

    #: Unique slug used by the provider registry (e.g. 'google_fit').
    SOURCE_ID: str = "unknown"

    #: Human-readable name for logging and UI.
    DISPLAY_NAME: str = "Unknown Provider"

    async def request_permission(
        self, permission: str, rationale: dict[str, str] | None = None
    ) -> bool:
        """Ask the user for a platform permission.

        Providers without a device-level permission model grant by default.

        Args:
            permission: Permission name (e.g. 'activity_recognition').
            rationale:  Prompt text: title, message and button labels.

        Returns:
            True if the permission was granted.
        """
        return True

    @abstractmethod
    async def authorize(self, scopes: set[MetricKind]) -> AuthResult:
        """Perform the authorization handshake for read access to ``scopes``.

        Args:
            scopes: Metric kinds that need read access.

        Returns:
            AuthResult describing the provider's answer.
        """

    @abstractmethod
    async def get_samples(
        self,
        kind: MetricKind,
        window: TimeWindow,
        bucketing: Bucketing | None = None,
    ) -> list[SourceSamples]:
        """Fetch raw samples for one metric over ``window``.

        Sources are returned in provider priority order; samples within a
        source are in chronological order.

        Args:
            kind:      Metric to fetch.
            window:    Time interval to cover.
            bucketing: Optional aggregation hint.

        Returns:
            List of SourceSamples, possibly empty.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the provider session and any held connections."""
