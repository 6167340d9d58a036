"""
Demographic aggregators: income brackets, gender and delivery channels.

Income and channel charts degrade in two steps. When customers or offers
exist but none of them can be matched to offer events, the live totals are
redistributed proportionally to bracket (or channel) size and the result is
flagged ``proportional_estimate``. When even that yields nothing, the
configured default chart is served.
"""

import asyncio
from collections import Counter
from typing import Any

from engagement.models.enums import EventKind, MetricKey, Table
from engagement.models.metrics import AggregationOutcome, ChartData
from engagement.models.query import Filter
from engagement.storage.base import EventStore

from ..calculations import (
    INCOME_BRACKETS,
    completion_rate,
    income_bracket,
    mean,
    parse_income,
    round_half_up,
)
from ..fallbacks import FallbackTable
from ..payload import extract_offer_id, parse_channels
from ..presentation import METRIC_LABELS, PALETTE_STYLE, PRIMARY
from ..reads import amounts_of, fetch_events, fetch_rows
from .common import NO_DATA, PROPORTIONAL_ESTIMATE, use_default

OFFER_EVENT_KINDS = (EventKind.OFFER_RECEIVED.value, EventKind.OFFER_COMPLETED.value)


async def _customer_brackets(store: EventStore) -> dict[str, int]:
    """Customer id to income bracket index, for customers with a numeric income."""
    rows = await fetch_rows(
        store,
        Table.CUSTOMERS,
        ["customer_id", "income"],
        [Filter.not_null("income"), Filter.neq("income", "")],
    )
    brackets: dict[str, int] = {}
    for row in rows:
        income = parse_income(row.get("income"))
        if income is not None and row.get("customer_id"):
            brackets[row["customer_id"]] = income_bracket(income)
    return brackets


def _offer_event_counts(rows: list[dict[str, Any]]) -> dict[str, Counter]:
    """Received/completed event counts per customer."""
    counts: dict[str, Counter] = {}
    for row in rows:
        customer_id = row.get("customer_id")
        if customer_id:
            counts.setdefault(customer_id, Counter())[row["event"]] += 1
    return counts


def _income_chart(key: MetricKey, data: list[float]) -> ChartData:
    return ChartData.single(
        list(INCOME_BRACKETS), METRIC_LABELS[key], data, background_color=PRIMARY
    )


async def income_vs_completion_rate(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """
    Offer completion rate per income bracket.

    The chart always lists the four brackets in fixed order.
    """
    key = MetricKey.INCOME_VS_COMPLETION_RATE
    brackets, event_rows = await asyncio.gather(
        _customer_brackets(store),
        fetch_rows(
            store,
            Table.EVENTS,
            ["event", "customer_id"],
            [Filter.isin("event", OFFER_EVENT_KINDS)],
        ),
    )
    if not brackets or not event_rows:
        return use_default(fallbacks, key, NO_DATA)

    per_customer = _offer_event_counts(event_rows)
    received = [0] * len(INCOME_BRACKETS)
    completed = [0] * len(INCOME_BRACKETS)
    for customer_id, index in brackets.items():
        counts = per_customer.get(customer_id)
        if counts:
            received[index] += counts[EventKind.OFFER_RECEIVED.value]
            completed[index] += counts[EventKind.OFFER_COMPLETED.value]

    reason = None
    if not any(received):
        total_received = sum(c[EventKind.OFFER_RECEIVED.value] for c in per_customer.values())
        total_completed = sum(c[EventKind.OFFER_COMPLETED.value] for c in per_customer.values())
        sizes = Counter(brackets.values())
        for index in range(len(INCOME_BRACKETS)):
            share = sizes[index] / len(brackets)
            factor = fallbacks.bracket_base_factor + fallbacks.bracket_uplift[index]
            received[index] = round_half_up(total_received * share)
            completed[index] = round_half_up(total_completed * share * factor)
        reason = PROPORTIONAL_ESTIMATE

    rates = [completion_rate(r, c) for r, c in zip(received, completed)]
    if not any(rates):
        return use_default(fallbacks, key, NO_DATA)

    chart = _income_chart(key, rates)
    if reason:
        return AggregationOutcome.degraded(chart, reason)
    return AggregationOutcome.ok(chart)


async def income_vs_spending(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """Mean transaction amount per income bracket."""
    key = MetricKey.INCOME_VS_SPENDING
    brackets, transactions = await asyncio.gather(
        _customer_brackets(store),
        fetch_events(store, EventKind.TRANSACTION, ["customer_id", "value"]),
    )
    if not brackets:
        return use_default(fallbacks, key, NO_DATA)

    per_bracket: list[list[dict[str, Any]]] = [[] for _ in INCOME_BRACKETS]
    for row in transactions:
        index = brackets.get(row.get("customer_id"))
        if index is not None:
            per_bracket[index].append(row)

    averages = [round(mean(amounts_of(rows)), 2) for rows in per_bracket]
    if not any(averages):
        return use_default(fallbacks, key, NO_DATA)

    return AggregationOutcome.ok(_income_chart(key, averages))


async def gender_breakdown(store: EventStore, fallbacks: FallbackTable) -> AggregationOutcome:
    """Distinct completing customers per gender; blank genders count as ``Unknown``."""
    key = MetricKey.GENDER_BREAKDOWN
    completed_rows = await fetch_events(
        store, EventKind.OFFER_COMPLETED, ["customer_id"], [Filter.not_null("customer_id")]
    )
    customer_ids = sorted({row["customer_id"] for row in completed_rows})
    if not customer_ids:
        return use_default(fallbacks, key, NO_DATA)

    customers = await fetch_rows(
        store, Table.CUSTOMERS, ["gender"], [Filter.isin("customer_id", customer_ids)]
    )
    if not customers:
        return use_default(fallbacks, key, NO_DATA)

    genders = Counter((row.get("gender") or "").strip() or "Unknown" for row in customers)
    ranked = sorted(genders.items(), key=lambda item: (-item[1], item[0]))

    chart = ChartData.single(
        [gender for gender, _ in ranked],
        METRIC_LABELS[key],
        [count for _, count in ranked],
        **PALETTE_STYLE,
    )
    return AggregationOutcome.ok(chart)


async def channel_effectiveness(
    store: EventStore, fallbacks: FallbackTable
) -> AggregationOutcome:
    """
    Completion ratio of the offers advertised on each channel.

    A channel's received (completed) count is the number of its offers seen
    in at least one received (completed) event. Channels are sorted by
    ratio, highest first; channels with no received offers are left out.
    """
    key = MetricKey.CHANNEL_EFFECTIVENESS
    offers = await fetch_rows(store, Table.OFFERS, ["offer_id", "channels"])
    if not offers:
        return use_default(fallbacks, key, NO_DATA)

    channel_counts: Counter = Counter()
    offers_by_channel: dict[str, set[str]] = {}
    for offer in offers:
        for channel in parse_channels(offer.get("channels")):
            channel_counts[channel] += 1
            offers_by_channel.setdefault(channel, set()).add(offer["offer_id"])
    if not offers_by_channel:
        return use_default(fallbacks, key, NO_DATA)

    event_rows = await fetch_rows(
        store, Table.EVENTS, ["event", "value"], [Filter.isin("event", OFFER_EVENT_KINDS)]
    )
    if not event_rows:
        return use_default(fallbacks, key, NO_DATA)

    received_ids: set[str] = set()
    completed_ids: set[str] = set()
    for row in event_rows:
        offer_id = extract_offer_id(row.get("value"))
        if offer_id is None:
            continue
        if row["event"] == EventKind.OFFER_RECEIVED.value:
            received_ids.add(offer_id)
        else:
            completed_ids.add(offer_id)

    stats = {
        channel: (len(ids & received_ids), len(ids & completed_ids))
        for channel, ids in offers_by_channel.items()
    }

    reason = None
    if not any(received for received, _ in stats.values()):
        total_offers = sum(channel_counts.values())
        stats = {}
        for channel, count in channel_counts.items():
            share = count / total_offers
            stats[channel] = (
                round_half_up(len(received_ids) * share),
                round_half_up(len(completed_ids) * share * fallbacks.channel_factor),
            )
        reason = PROPORTIONAL_ESTIMATE

    ranked = sorted(
        (
            (channel, completion_rate(received, completed))
            for channel, (received, completed) in stats.items()
            if received > 0
        ),
        key=lambda item: (-item[1], item[0]),
    )
    if not ranked:
        return use_default(fallbacks, key, NO_DATA)

    chart = ChartData.single(
        [channel for channel, _ in ranked],
        METRIC_LABELS[key],
        [rate for _, rate in ranked],
        **PALETTE_STYLE,
    )
    if reason:
        return AggregationOutcome.degraded(chart, reason)
    return AggregationOutcome.ok(chart)
