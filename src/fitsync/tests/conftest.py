"""Shared fixtures and mock provider responses for fitsync tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.fitsync.base import (
    AuthResult,
    Bucketing,
    MetricKind,
    Sample,
    SourceSamples,
    TimeWindow,
)
from src.fitsync.config_loader import SyncConfig, load_sync_config

# Canonical test instant: mid-afternoon, so the day window is non-trivial
TEST_NOW = datetime(2026, 2, 23, 14, 30, 0, tzinfo=timezone.utc)
TEST_WINDOW = TimeWindow.today(TEST_NOW)


def make_source(source_id: str, *values: float) -> SourceSamples:
    """Build a SourceSamples with one sample per value, a minute apart."""
    start = TEST_WINDOW.start
    return SourceSamples(
        source_id=source_id,
        samples=[
            Sample(timestamp=start + timedelta(minutes=i), value=v, source_id=source_id)
            for i, v in enumerate(values)
        ],
    )


# Default provider data per metric
DEFAULT_SAMPLES: dict[MetricKind, list[SourceSamples]] = {
    MetricKind.STEPS: [make_source("estimated_steps", 1200, 3400, 5641)],
    MetricKind.HEART_RATE: [make_source("heart_rate", 61, 72, 68)],
    MetricKind.SPO2: [make_source("spo2", 97.0, 98.5)],
}


class StepClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime = TEST_NOW) -> None:
        self.current = start
        self.calls = 0

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        self.calls += 1
        return value


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the real bundled sync config for tests."""
    return load_sync_config()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------


@pytest.fixture
def samples_by_kind() -> dict[MetricKind, object]:
    """Per-kind provider answers; set a value to an Exception to make it fail."""
    return dict(DEFAULT_SAMPLES)


@pytest.fixture
def mock_provider(samples_by_kind: dict[MetricKind, object]) -> MagicMock:
    """Mock FitnessProvider that grants, authorizes and serves DEFAULT_SAMPLES."""

    def _get_samples(
        kind: MetricKind, window: TimeWindow, bucketing: Bucketing | None = None
    ) -> list[SourceSamples]:
        answer = samples_by_kind.get(kind, [])
        if isinstance(answer, Exception):
            raise answer
        return answer

    provider = MagicMock()
    provider.SOURCE_ID = "test"
    provider.DISPLAY_NAME = "Test Provider"
    provider.request_permission = AsyncMock(return_value=True)
    provider.authorize = AsyncMock(return_value=AuthResult(success=True))
    provider.get_samples = AsyncMock(side_effect=_get_samples)
    provider.disconnect = AsyncMock(return_value=None)
    return provider


# ---------------------------------------------------------------------------
# Mock HTTP clients
# ---------------------------------------------------------------------------


def make_response(status_code: int = 200, payload: dict | None = None) -> MagicMock:
    """Mock httpx.Response with ``json()`` and ``raise_for_status()``."""
    response = MagicMock()
    response.status_code = status_code
    response.json = MagicMock(return_value=payload or {})
    if status_code >= 400:
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError(
                f"HTTP {status_code}", request=MagicMock(), response=response
            )
        )
    else:
        response.raise_for_status = MagicMock()
    return response


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient for testing providers without real API calls."""
    client = MagicMock()
    client.post = AsyncMock(return_value=make_response())
    client.aclose = AsyncMock()
    return client
