"""
Trend aggregators: transaction and completion series over the window.
"""

import asyncio
from collections import Counter, defaultdict

from engagement.models.enums import EventKind, MetricKey
from engagement.models.metrics import AggregationOutcome, ChartData, ChartDataset
from engagement.models.query import between
from engagement.storage.base import EventStore

from ..calculations import (
    WEEK_BUCKETS,
    WEEK_LABELS,
    cap_most_recent,
    day_for_hour,
    mean,
    week_for_hour,
)
from ..fallbacks import FallbackTable
from ..payload import extract_offer_id
from ..presentation import BAR_STYLE, METRIC_LABELS, PALETTE, SPEND_STYLE
from ..reads import amounts_of, fetch_events, fetch_offer_types
from .common import NO_DATA, use_default

DAILY_SERIES_MAX_DAYS = 30


async def daily_transactions(
    store: EventStore,
    fallbacks: FallbackTable,
    max_days: int = DAILY_SERIES_MAX_DAYS,
) -> AggregationOutcome:
    """
    Transaction count per day, ascending, limited to the most recent *max_days* days.
    """
    rows = await fetch_events(store, EventKind.TRANSACTION, ["time"])
    if not rows:
        return use_default(fallbacks, MetricKey.DAILY_TRANSACTIONS, NO_DATA)

    per_day = Counter(day_for_hour(int(row["time"])) for row in rows)
    series = cap_most_recent(per_day, max_days)

    chart = ChartData.single(
        [f"Day {day}" for day, _ in series],
        METRIC_LABELS[MetricKey.DAILY_TRANSACTIONS],
        [count for _, count in series],
        **BAR_STYLE,
    )
    return AggregationOutcome.ok(chart)


async def _weekly_amounts(store: EventStore) -> list[list[float]]:
    """Extracted transaction amounts per reporting week, one read per week."""
    week_rows = await asyncio.gather(
        *[
            fetch_events(store, EventKind.TRANSACTION, ["value"], between("time", start, end))
            for start, end in WEEK_BUCKETS
        ]
    )
    return [amounts_of(rows) for rows in week_rows]


async def weekly_avg_transactions(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """Mean transaction amount per reporting week; weeks without amounts show 0."""
    weeks = await _weekly_amounts(store)
    chart = ChartData.single(
        list(WEEK_LABELS),
        METRIC_LABELS[MetricKey.WEEKLY_AVG_TRANSACTIONS],
        [round(mean(amounts), 2) for amounts in weeks],
        **BAR_STYLE,
    )
    return AggregationOutcome.ok(chart)


async def weekly_total_transactions(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """Summed transaction amount per reporting week."""
    weeks = await _weekly_amounts(store)
    chart = ChartData.single(
        list(WEEK_LABELS),
        METRIC_LABELS[MetricKey.WEEKLY_TOTAL_TRANSACTIONS],
        [round(sum(amounts), 2) for amounts in weeks],
        **SPEND_STYLE,
    )
    return AggregationOutcome.ok(chart)


async def offer_type_distribution(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """
    Completed offers per offer type per week period.

    One dataset per offer type; periods without a matched completion are
    left out.
    """
    offer_types, completed_rows = await asyncio.gather(
        fetch_offer_types(store),
        fetch_events(store, EventKind.OFFER_COMPLETED, ["value", "time"]),
    )
    if not offer_types or not completed_rows:
        return use_default(fallbacks, MetricKey.OFFER_TYPE_DISTRIBUTION, NO_DATA)

    per_period: dict[int, Counter] = defaultdict(Counter)
    for row in completed_rows:
        offer_type = offer_types.get(extract_offer_id(row.get("value")))
        if offer_type is not None:
            per_period[week_for_hour(int(row["time"]))][offer_type] += 1

    if not per_period:
        return use_default(fallbacks, MetricKey.OFFER_TYPE_DISTRIBUTION, NO_DATA)

    periods = sorted(per_period)
    types = sorted(set(offer_types.values()))
    datasets = [
        ChartDataset(
            label=offer_type,
            data=[per_period[period][offer_type] for period in periods],
            background_color=PALETTE[index % len(PALETTE)],
        )
        for index, offer_type in enumerate(types)
    ]
    chart = ChartData(labels=[f"Period {period}" for period in periods], datasets=datasets)
    return AggregationOutcome.ok(chart)
