"""
Summary aggregators: headline scalars under the charts.

These run under the ``propagate`` error policy by default, so a store
failure here fails the dashboard instead of showing a stale number.
"""

import asyncio
from collections import defaultdict

from engagement.models.enums import EventKind, MetricKey, OfferType, Table
from engagement.models.metrics import AggregationOutcome, Metric
from engagement.models.query import Filter
from engagement.storage.base import EventStore

from ..calculations import (
    completion_rate,
    day_for_hour,
    format_count,
    format_currency,
    format_percent,
)
from ..fallbacks import FallbackTable
from ..payload import extract_amount
from ..presentation import METRIC_LABELS
from ..reads import count_events, fetch_events, fetch_offer_ids, fetch_rows
from .common import NO_DATA, use_default

ROLLING_SPEND_DAYS = 7


async def total_transactions(store: EventStore, fallbacks: FallbackTable) -> AggregationOutcome:
    """Number of transaction events, with thousands separators."""
    total = await count_events(store, EventKind.TRANSACTION)
    return AggregationOutcome.ok(
        Metric(label=METRIC_LABELS[MetricKey.TOTAL_TRANSACTIONS], value=format_count(total))
    )


async def bogo_completion(store: EventStore, fallbacks: FallbackTable) -> AggregationOutcome:
    """Completion rate restricted to buy-one-get-one offers."""
    rows, received_ids, completed_ids = await asyncio.gather(
        fetch_rows(
            store, Table.OFFERS, ["offer_id"], [Filter.eq("offer_type", OfferType.BOGO.value)]
        ),
        fetch_offer_ids(store, EventKind.OFFER_RECEIVED),
        fetch_offer_ids(store, EventKind.OFFER_COMPLETED),
    )
    bogo_ids = {row["offer_id"] for row in rows}
    if not bogo_ids:
        return use_default(fallbacks, MetricKey.BOGO_COMPLETION, NO_DATA)

    received = sum(1 for offer_id in received_ids if offer_id in bogo_ids)
    completed = sum(1 for offer_id in completed_ids if offer_id in bogo_ids)

    rate = completion_rate(received, completed)
    return AggregationOutcome.ok(
        Metric(label=METRIC_LABELS[MetricKey.BOGO_COMPLETION], value=format_percent(rate))
    )


async def seven_day_avg_spend(
    store: EventStore,
    fallbacks: FallbackTable,
    days: int = ROLLING_SPEND_DAYS,
) -> AggregationOutcome:
    """
    Mean daily spend over the most recent *days* days that have spend.
    """
    rows = await fetch_events(store, EventKind.TRANSACTION, ["time", "value"])

    daily_spend: dict[int, float] = defaultdict(float)
    for row in rows:
        amount = extract_amount(row.get("value"))
        if amount is not None:
            daily_spend[day_for_hour(int(row["time"]))] += amount

    if not daily_spend:
        return use_default(fallbacks, MetricKey.SEVEN_DAY_AVG_SPEND, NO_DATA)

    recent = sorted(daily_spend, reverse=True)[:days]
    average = round(sum(daily_spend[day] for day in recent) / len(recent), 2)
    return AggregationOutcome.ok(
        Metric(label=METRIC_LABELS[MetricKey.SEVEN_DAY_AVG_SPEND], value=format_currency(average))
    )
