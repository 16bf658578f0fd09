"""Google Fit REST API provider.

Authorization uses a stored OAuth2 refresh token; each handshake exchanges
it for a fresh access token carrying the requested read scopes.

Environment variables:
    GOOGLE_FIT_CLIENT_ID      — OAuth2 client ID
    GOOGLE_FIT_CLIENT_SECRET  — OAuth2 client secret
    GOOGLE_FIT_REFRESH_TOKEN  — Refresh token from the user's consent flow

API base: https://www.googleapis.com/fitness/v1

Endpoints used:
    /users/me/dataset:aggregate — Bucketed samples by data source or data type
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Awaitable, Callable

import httpx

from src.fitsync.base import (
    AuthResult,
    Bucketing,
    FitnessProvider,
    MetricKind,
    Sample,
    SourceSamples,
    TimeWindow,
)

logger = logging.getLogger("fitsync.adapters.google_fit")

_FIT_API_BASE = "https://www.googleapis.com/fitness/v1"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

_SCOPE_ACTIVITY_READ = "https://www.googleapis.com/auth/fitness.activity.read"
_SCOPE_BODY_READ = "https://www.googleapis.com/auth/fitness.body.read"
_SCOPE_HEART_RATE_READ = "https://www.googleapis.com/auth/fitness.heart_rate.read"
_SCOPE_OXYGEN_SATURATION_READ = "https://www.googleapis.com/auth/fitness.oxygen_saturation.read"

# Read scope needed per metric
METRIC_SCOPES: dict[MetricKind, str] = {
    MetricKind.STEPS: _SCOPE_ACTIVITY_READ,
    MetricKind.HEART_RATE: _SCOPE_HEART_RATE_READ,
    MetricKind.SPO2: _SCOPE_OXYGEN_SATURATION_READ,
}

# Always requested alongside the metric scopes
EXTRA_SCOPES: tuple[str, ...] = (_SCOPE_BODY_READ,)

# Aggregated data type per metric
DATA_TYPES: dict[MetricKind, str] = {
    MetricKind.STEPS: "com.google.step_count.delta",
    MetricKind.HEART_RATE: "com.google.heart_rate.bpm",
    MetricKind.SPO2: "com.google.oxygen_saturation",
}

# Step data sources, highest priority first
STEP_SOURCES: tuple[str, ...] = (
    "derived:com.google.step_count.delta:com.google.android.gms:estimated_steps",
    "derived:com.google.step_count.delta:com.google.android.gms:merge_step_deltas",
    "derived:com.google.step_count.delta:com.google.android.gms:merged",
)

PermissionPrompt = Callable[[str, dict], Awaitable[bool]]


def _to_millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _from_nanos(value: str | int) -> datetime:
    return datetime.fromtimestamp(int(value) / 1e9, tz=timezone.utc)


class GoogleFitProvider(FitnessProvider):
    """Google Fit REST API provider.

    Steps are read per data source so the first source with samples can
    win; heart rate and SpO2 are aggregated by data type into buckets.
    """

    SOURCE_ID = "google_fit"
    DISPLAY_NAME = "Google Fit"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        permission_prompt: PermissionPrompt | None = None,
        step_sources: tuple[str, ...] | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the Google Fit provider.

        Args:
            client_id:         OAuth2 client ID (GOOGLE_FIT_CLIENT_ID env var).
            client_secret:     OAuth2 client secret (GOOGLE_FIT_CLIENT_SECRET env var).
            refresh_token:     OAuth2 refresh token (GOOGLE_FIT_REFRESH_TOKEN env var).
            http_client:       Optional pre-configured httpx client (for testing).
            permission_prompt: Async callable(permission, rationale) → bool that
                               shows the platform permission dialog.
            step_sources:      Step data-source IDs in priority order.
            timeout:           HTTP timeout in seconds for an owned client.
        """
        self._client_id = client_id or os.environ.get("GOOGLE_FIT_CLIENT_ID", "")
        self._client_secret = client_secret or os.environ.get("GOOGLE_FIT_CLIENT_SECRET", "")
        self._refresh_token = refresh_token or os.environ.get("GOOGLE_FIT_REFRESH_TOKEN", "")
        self._http_client = http_client
        self._owns_client = http_client is None
        self._permission_prompt = permission_prompt
        self._step_sources = step_sources or STEP_SOURCES
        self._timeout = timeout
        self._access_token: str | None = None

    # ------------------------------------------------------------------
    # FitnessProvider interface
    # ------------------------------------------------------------------

    async def request_permission(
        self, permission: str, rationale: dict[str, str] | None = None
    ) -> bool:
        """Delegate to the injected prompt; the REST API itself has none."""
        if self._permission_prompt is None:
            logger.debug("Google Fit: no permission prompt configured, granting %s", permission)
            return True
        return await self._permission_prompt(permission, rationale or {})

    async def authorize(self, scopes: set[MetricKind]) -> AuthResult:
        """Exchange the refresh token for an access token with ``scopes``.

        OAuth denials (4xx) come back as ``success=False``; transport errors
        and 5xx responses propagate.
        """
        if not self._refresh_token:
            return AuthResult(success=False, message="no refresh token configured")

        requested = [METRIC_SCOPES[k] for k in sorted(scopes, key=lambda k: k.value)]
        requested.extend(s for s in EXTRA_SCOPES if s not in requested)
        logger.info("Google Fit: requesting %d scopes", len(requested))

        response = await self._client().post(
            _GOOGLE_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": self._refresh_token,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": " ".join(requested),
            },
        )
        if 400 <= response.status_code < 500:
            return AuthResult(success=False, message=self._oauth_error(response))
        response.raise_for_status()
        data = response.json()

        granted = str(data.get("scope", "")).split()
        missing = [s for s in requested if granted and s not in granted]
        if missing:
            return AuthResult(
                success=False,
                message=f"scopes not granted: {', '.join(missing)}",
                granted_scopes=granted,
            )

        self._access_token = data["access_token"]
        return AuthResult(success=True, granted_scopes=granted or requested)

    async def get_samples(
        self,
        kind: MetricKind,
        window: TimeWindow,
        bucketing: Bucketing | None = None,
    ) -> list[SourceSamples]:
        """Fetch aggregated samples for one metric.

        Steps: one SourceSamples per queried step source, in priority
        order, ending at the first with samples.  Heart rate / SpO2: one
        SourceSamples for the data type.
        """
        if self._access_token is None:
            raise RuntimeError("Google Fit: not authorized")

        if kind is MetricKind.STEPS:
            return await self._get_step_sources(window, bucketing)

        body = self._aggregate_body(
            {"dataTypeName": DATA_TYPES[kind]}, window, bucketing or Bucketing()
        )
        data = await self._post(f"{_FIT_API_BASE}/users/me/dataset:aggregate", body)
        return [SourceSamples(source_id=DATA_TYPES[kind], samples=self._parse_points(data))]

    async def disconnect(self) -> None:
        """Drop the access token and close the HTTP client if owned."""
        self._access_token = None
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_step_sources(
        self, window: TimeWindow, bucketing: Bucketing | None
    ) -> list[SourceSamples]:
        """Query step sources in priority order, stopping at the first with samples.

        A source answering with an HTTP error is skipped.  The first such
        error is raised only when no source yields samples.
        """
        results: list[SourceSamples] = []
        first_error: httpx.HTTPStatusError | None = None
        for source_id in self._step_sources:
            body = self._aggregate_body({"dataSourceId": source_id}, window, bucketing)
            try:
                data = await self._post(f"{_FIT_API_BASE}/users/me/dataset:aggregate", body)
            except httpx.HTTPStatusError as exc:
                logger.warning("Google Fit: step source %s failed: %s", source_id, exc)
                first_error = first_error or exc
                continue
            samples = self._parse_points(data)
            results.append(SourceSamples(source_id=source_id, samples=samples))
            if samples:
                break
        else:
            if first_error is not None:
                raise first_error
        return results

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._http_client

    @staticmethod
    def _aggregate_body(
        aggregate_by: dict, window: TimeWindow, bucketing: Bucketing | None
    ) -> dict:
        start_ms = _to_millis(window.start)
        end_ms = _to_millis(window.end)
        duration_ms = bucketing.duration_ms if bucketing else max(end_ms - start_ms, 1)
        return {
            "aggregateBy": [aggregate_by],
            "bucketByTime": {"durationMillis": duration_ms},
            "startTimeMillis": start_ms,
            "endTimeMillis": end_ms,
        }

    async def _post(self, url: str, body: dict) -> dict:
        """Authenticated POST; raises httpx.HTTPStatusError on failure."""
        response = await self._client().post(
            url,
            json=body,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _parse_points(data: dict) -> list[Sample]:
        """Flatten bucket → dataset → point into chronological Samples.

        Each point's first value is used: the step delta, or the bucket
        average for heart rate / SpO2 summaries.
        """
        samples: list[Sample] = []
        for bucket in data.get("bucket", []):
            for dataset in bucket.get("dataset", []):
                source_id = dataset.get("dataSourceId")
                for point in dataset.get("point", []):
                    values = point.get("value") or []
                    if not values:
                        continue
                    first = values[0]
                    value = first.get("fpVal", first.get("intVal"))
                    if value is None:
                        continue
                    samples.append(
                        Sample(
                            timestamp=_from_nanos(point["startTimeNanos"]),
                            value=float(value),
                            source_id=point.get("originDataSourceId") or source_id,
                        )
                    )
        samples.sort(key=lambda s: s.timestamp)
        return samples

    @staticmethod
    def _oauth_error(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        error = data.get("error", f"HTTP {response.status_code}")
        description = data.get("error_description")
        return f"{error}: {description}" if description else str(error)
