"""
Backend error policy and aggregator tracing.

Aggregators handle sparse data themselves and return degraded outcomes; a
failing event store surfaces as :class:`StorageError`. This module decides,
per metric, whether such a failure is absorbed by the metric's default
(``fallback``) or fails the dashboard (``propagate``), and it is the only
place that logs aggregator entry, exit and fallback events.
"""

import time
from typing import Awaitable, Callable, Mapping, Optional, Union

from engagement.models.enums import ErrorPolicy, MetricKey
from engagement.models.metrics import AggregationOutcome
from engagement.storage.base import EventStore, StorageError
from engagement.utils.logging import get_logger, metric_context

from .fallbacks import FallbackTable

logger = get_logger(__name__)

Aggregator = Callable[[EventStore, FallbackTable], Awaitable[AggregationOutcome]]

_PROPAGATING = {
    MetricKey.TOTAL_TRANSACTIONS,
    MetricKey.BOGO_COMPLETION,
    MetricKey.SEVEN_DAY_AVG_SPEND,
}

DEFAULT_ERROR_POLICIES: dict[MetricKey, ErrorPolicy] = {
    key: ErrorPolicy.PROPAGATE if key in _PROPAGATING else ErrorPolicy.FALLBACK
    for key in MetricKey
}
"""Summary scalars fail loudly; charts and KPIs fall back to their defaults."""


def resolve_error_policies(
    overrides: Optional[Mapping[str, Union[str, ErrorPolicy]]] = None,
) -> dict[MetricKey, ErrorPolicy]:
    """
    Default policies with configured overrides applied.

    Unknown metric keys are logged and ignored.

    Raises:
        ValueError: If an override names an unknown policy
    """
    policies = dict(DEFAULT_ERROR_POLICIES)
    for key, policy in (overrides or {}).items():
        try:
            metric = MetricKey(key)
        except ValueError:
            logger.warning("unknown_metric_in_error_policies", metric=key)
            continue
        policies[metric] = ErrorPolicy(policy)
    return policies


async def run_aggregator(
    key: MetricKey,
    fn: Aggregator,
    store: EventStore,
    fallbacks: FallbackTable,
    policy: ErrorPolicy,
) -> AggregationOutcome:
    """
    Run one aggregator under its error policy.

    Args:
        key: Metric being computed
        fn: Aggregator coroutine function
        store: Event store to read from
        fallbacks: Fallback table injected into the aggregator
        policy: What to do when the store fails

    Returns:
        The aggregator's outcome, or a degraded/failed outcome for a store failure

    Raises:
        Exception: Anything other than StorageError escapes unchanged
    """
    with metric_context(key.value):
        logger.debug("aggregator_started", policy=policy.value)
        started = time.perf_counter()

        try:
            outcome = await fn(store, fallbacks)
        except StorageError as e:
            reason = f"backend_error: {e}"
            logger.warning("aggregator_backend_error", policy=policy.value, error=str(e))
            if policy == ErrorPolicy.FALLBACK:
                outcome = AggregationOutcome.degraded(fallbacks.default_for(key), reason)
            else:
                outcome = AggregationOutcome.failed(reason)
        except Exception as e:
            logger.error("aggregator_crashed", error=str(e), exc_info=True)
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if outcome.is_degraded:
            logger.warning("aggregator_fallback_triggered", reason=outcome.reason)
        logger.info(
            "aggregator_completed", status=outcome.status.value, duration_ms=duration_ms
        )
    return outcome
