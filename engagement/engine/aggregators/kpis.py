"""
KPI aggregators: headline offer performance.

Each aggregator reads what it needs through :mod:`engagement.engine.reads`,
joins in Python, and returns an :class:`AggregationOutcome`. Store failures
are not caught here; the policy layer decides what they mean.
"""

import asyncio
from collections import Counter

from engagement.models.enums import EventKind, MetricKey, Table
from engagement.models.metrics import AggregationOutcome, ChartData, Metric
from engagement.models.query import Filter
from engagement.storage.base import EventStore

from ..calculations import completion_rate, format_percent
from ..fallbacks import FallbackTable, overall_rate_metric
from ..payload import extract_offer_id
from ..presentation import METRIC_LABELS, PALETTE_STYLE
from ..reads import count_events, fetch_count, fetch_events, fetch_offer_ids, fetch_offer_types
from .common import NO_DATA, ZERO_COUNTS, use_default


async def overall_completion_rate(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """
    Completed offers as a percentage of received offers.

    When either count is zero the reference pair from the fallback table is
    used instead, so the headline never shows an empty ratio.
    """
    received, completed = await asyncio.gather(
        count_events(store, EventKind.OFFER_RECEIVED),
        count_events(store, EventKind.OFFER_COMPLETED),
    )
    if received == 0 or completed == 0:
        return AggregationOutcome.degraded(
            overall_rate_metric(fallbacks.reference_received, fallbacks.reference_completed),
            ZERO_COUNTS,
        )

    return AggregationOutcome.ok(overall_rate_metric(received, completed))


async def completion_rate_by_offer_type(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """Completion rate per offer type, one bar per type in name order."""
    offer_types, received_ids, completed_ids = await asyncio.gather(
        fetch_offer_types(store),
        fetch_offer_ids(store, EventKind.OFFER_RECEIVED),
        fetch_offer_ids(store, EventKind.OFFER_COMPLETED),
    )
    if not offer_types:
        return use_default(fallbacks, MetricKey.COMPLETION_RATE_BY_OFFER_TYPE, NO_DATA)

    received = Counter(offer_types[i] for i in received_ids if i in offer_types)
    completed = Counter(offer_types[i] for i in completed_ids if i in offer_types)
    types = sorted(set(offer_types.values()))

    chart = ChartData.single(
        types,
        METRIC_LABELS[MetricKey.COMPLETION_RATE_BY_OFFER_TYPE],
        [completion_rate(received[t], completed[t]) for t in types],
        **PALETTE_STYLE,
    )
    return AggregationOutcome.ok(chart)


async def users_with_completion(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """Share of known customers with at least one completed offer."""
    total_customers, completed_rows = await asyncio.gather(
        fetch_count(store, Table.CUSTOMERS, [Filter.not_null("customer_id")]),
        fetch_events(
            store,
            EventKind.OFFER_COMPLETED,
            ["customer_id"],
            [Filter.not_null("customer_id")],
        ),
    )
    if total_customers == 0:
        return use_default(fallbacks, MetricKey.USERS_WITH_COMPLETION, NO_DATA)

    completers = {row["customer_id"] for row in completed_rows}
    rate = completion_rate(total_customers, len(completers))
    return AggregationOutcome.ok(
        Metric(label=METRIC_LABELS[MetricKey.USERS_WITH_COMPLETION], value=format_percent(rate))
    )


def _event_hours(rows: list[dict]) -> dict[tuple[str, str], list[int]]:
    """Sorted event hours per (customer, offer id)."""
    times: dict[tuple[str, str], list[int]] = {}
    for row in rows:
        customer_id = row.get("customer_id")
        offer_id = extract_offer_id(row.get("value"))
        if customer_id is None or offer_id is None:
            continue
        times.setdefault((customer_id, offer_id), []).append(int(row["time"]))
    for hours in times.values():
        hours.sort()
    return times


async def avg_days_to_complete(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """
    Mean days between receiving an offer and completing it.

    Pairs events by customer and offer id: the first receipt is matched with
    the first completion strictly after it.
    """
    columns = ["customer_id", "value", "time"]
    received_rows, completed_rows = await asyncio.gather(
        fetch_events(store, EventKind.OFFER_RECEIVED, columns),
        fetch_events(store, EventKind.OFFER_COMPLETED, columns),
    )
    received = _event_hours(received_rows)
    completed = _event_hours(completed_rows)

    durations: list[float] = []
    for pair, received_hours in received.items():
        start = received_hours[0]
        later = [hour for hour in completed.get(pair, []) if hour > start]
        if later:
            durations.append((later[0] - start) / 24)

    if not durations:
        return use_default(fallbacks, MetricKey.AVG_DAYS_TO_COMPLETE, NO_DATA)

    avg_days = round(sum(durations) / len(durations), 1)
    return AggregationOutcome.ok(
        Metric(label=METRIC_LABELS[MetricKey.AVG_DAYS_TO_COMPLETE], value=avg_days)
    )
