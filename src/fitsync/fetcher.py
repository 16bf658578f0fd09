"""Per-metric sample fetching and reduction.

Each fetch asks the provider for one metric's samples over a time window
and reduces them to a single display value:

    steps       — sum of the first data source with any samples
    heart_rate  — most recent sample
    spo2        — most recent sample

A reduction that finds nothing returns None, meaning "no new value"; the
caller keeps whatever it had before.
"""

from __future__ import annotations

import logging
import math

from src.fitsync.base import (
    Bucketing,
    FetchError,
    FitnessProvider,
    MetricKind,
    SourceSamples,
    TimeWindow,
)

logger = logging.getLogger("fitsync.fetcher")


# ---------------------------------------------------------------------------
# Reducers (pure)
# ---------------------------------------------------------------------------


def reduce_steps(sources: list[SourceSamples]) -> float | None:
    """Sum the samples of the first source that reports any.

    Later sources are ignored even if they have samples; the first
    non-empty source is treated as authoritative.
    """
    for source in sources:
        if source.samples:
            return sum(s.value for s in source.samples)
    return None


def reduce_latest(sources: list[SourceSamples]) -> float | None:
    """Return the last sample of the chronologically ordered sequence."""
    latest = None
    for source in sources:
        if source.samples:
            latest = source.samples[-1].value
    return latest


_REDUCERS = {
    MetricKind.STEPS: reduce_steps,
    MetricKind.HEART_RATE: reduce_latest,
    MetricKind.SPO2: reduce_latest,
}


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class MetricFetcher:
    """Fetch and reduce a single metric from the provider.

    Stateless apart from the provider handle and per-kind bucketing; no
    caching and no retries.
    """

    def __init__(
        self,
        provider: FitnessProvider,
        bucketing: dict[MetricKind, Bucketing | None] | None = None,
    ) -> None:
        self._provider = provider
        self._bucketing = bucketing or {}

    async def fetch(self, kind: MetricKind, window: TimeWindow) -> float | None:
        """Fetch ``kind`` over ``window`` and reduce it to one value.

        Args:
            kind:   Metric to fetch.
            window: Time interval to cover.

        Returns:
            The reduced value, or None if the provider had no samples.

        Raises:
            FetchError: On any provider failure or malformed response.
        """
        try:
            sources = await self._provider.get_samples(
                kind, window, self._bucketing.get(kind)
            )
        except Exception as exc:
            raise FetchError(kind, str(exc) or type(exc).__name__) from exc

        try:
            value = _REDUCERS[kind](list(sources or []))
        except (AttributeError, TypeError, ValueError) as exc:
            raise FetchError(kind, f"malformed provider response: {exc}") from exc

        if value is None:
            logger.debug("No %s samples between %s and %s", kind.value, window.start, window.end)
            return None

        try:
            value = float(value)
        except (TypeError, ValueError) as exc:
            raise FetchError(kind, f"non-numeric value {value!r}") from exc
        if math.isnan(value):
            raise FetchError(kind, "provider returned NaN")
        return value
