"""
Async read helpers over the blocking event store.

Store reads are synchronous; each helper runs one read in the default thread
pool so aggregators can issue independent reads with ``asyncio.gather``.
"""

import asyncio
from typing import Any, Callable, Optional, Sequence

import structlog

from engagement.models.enums import EventKind, Table
from engagement.models.query import Filter, OrderBy
from engagement.storage.base import EventStore

from .payload import (
    AMOUNT_FORMATS,
    OFFER_ID_FORMATS,
    PayloadFormat,
    extract_many,
    to_amount,
    to_offer_id,
)

logger = structlog.get_logger(__name__)


async def fetch_count(
    store: EventStore, table: Table, filters: Optional[list[Filter]] = None
) -> int:
    return await asyncio.to_thread(store.count, table, filters)


async def fetch_rows(
    store: EventStore,
    table: Table,
    columns: Sequence[str],
    filters: Optional[list[Filter]] = None,
    order: Optional[OrderBy] = None,
    limit: Optional[int] = None,
) -> list[dict[str, Any]]:
    return await asyncio.to_thread(store.select, table, list(columns), filters, order, limit)


async def count_events(store: EventStore, kind: EventKind) -> int:
    return await fetch_count(store, Table.EVENTS, [Filter.eq("event", kind.value)])


async def fetch_events(
    store: EventStore,
    kind: EventKind,
    columns: Sequence[str],
    extra: Optional[list[Filter]] = None,
    order: Optional[OrderBy] = None,
) -> list[dict[str, Any]]:
    """Rows of one event kind, optionally narrowed by *extra* filters."""
    filters = [Filter.eq("event", kind.value), *(extra or [])]
    return await fetch_rows(store, Table.EVENTS, columns, filters, order)


async def fetch_offer_types(store: EventStore) -> dict[str, str]:
    """Offer id to offer type for every known offer."""
    rows = await fetch_rows(store, Table.OFFERS, ["offer_id", "offer_type"])
    return {row["offer_id"]: row["offer_type"] for row in rows if row.get("offer_id")}


async def fetch_offer_ids(store: EventStore, kind: EventKind) -> list[str]:
    """Offer ids extracted from every event of *kind*; unparseable payloads are skipped."""
    rows = await fetch_events(store, kind, ["value"])
    return _extract_values(rows, "offer_id", OFFER_ID_FORMATS, to_offer_id)


def amounts_of(rows: list[dict[str, Any]]) -> list[float]:
    """Extracted amounts of transaction rows; unparseable payloads are skipped."""
    return _extract_values(rows, "amount", AMOUNT_FORMATS, to_amount)


def _extract_values(
    rows: list[dict[str, Any]],
    field: str,
    formats: Sequence[PayloadFormat],
    coerce: Callable[[Any], Optional[Any]],
) -> list[Any]:
    values, tally = extract_many((row.get("value") for row in rows), formats, coerce)
    if rows:
        logger.debug("payloads_extracted", field=field, formats=dict(tally))
    return values
