"""Shared pieces of the metric aggregators."""

from engagement.models.enums import MetricKey
from engagement.models.metrics import AggregationOutcome

from ..fallbacks import FallbackTable

NO_DATA = "no_data"
ZERO_COUNTS = "zero_counts"
PROPORTIONAL_ESTIMATE = "proportional_estimate"


def use_default(fallbacks: FallbackTable, key: MetricKey, reason: str) -> AggregationOutcome:
    """Degraded outcome carrying the configured default for *key*."""
    return AggregationOutcome.degraded(fallbacks.default_for(key), reason)
