"""
Pytest configuration and shared fixtures for the engagement metrics test suite.

Provides model factories, an in-memory event store, environment isolation,
and reusable fixtures across all test types (unit, integration, golden,
property-based).
"""

import asyncio
import os
import tempfile
import uuid as _uuid
from typing import Any, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing app
# Use temp path (must not exist - DuckDB creates the file).
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"engagement_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["LOG_FORMAT"] = "console"


from engagement.engine.calculations import WEEK_BUCKETS
from engagement.engine.fallbacks import FallbackTable, build_default_fallbacks
from engagement.models.enums import EventKind, FilterOp, OfferType, Table
from engagement.models.events import Customer, Event, Offer
from engagement.models.metrics import NO_DATA_LABEL, ChartData
from engagement.models.query import Filter, OrderBy
from engagement.storage.base import EventStore, StorageError, validate_columns


# ---------------------------------------------------------------------------
# Model factories, reusable across all test suites
# ---------------------------------------------------------------------------


def make_offer(
    offer_id: str = "offer_bogo_1",
    offer_type: OfferType = OfferType.BOGO,
    channels: str = "['web', 'email', 'mobile']",
) -> Offer:
    """Factory function for creating test Offer objects."""
    return Offer(offer_id=offer_id, offer_type=offer_type, channels=channels)


def make_customer(
    customer_id: str = "cust_1",
    income: Optional[str] = "72000",
    gender: Optional[str] = "F",
) -> Customer:
    """Factory function for creating test Customer objects."""
    return Customer(customer_id=customer_id, income=income, gender=gender)


def received(offer_id: str, customer_id: str = "cust_1", time: int = 0) -> Event:
    """Offer received event in the dict-literal payload shape."""
    return Event(
        customer_id=customer_id,
        event=EventKind.OFFER_RECEIVED,
        value=f"{{'offer id': '{offer_id}'}}",
        time=time,
    )


def viewed(offer_id: str, customer_id: str = "cust_1", time: int = 0) -> Event:
    return Event(
        customer_id=customer_id,
        event=EventKind.OFFER_VIEWED,
        value=f"{{'offer id': '{offer_id}'}}",
        time=time,
    )


def completed(offer_id: str, customer_id: str = "cust_1", time: int = 24, reward: int = 5) -> Event:
    """Offer completed event in the dict-literal payload shape."""
    return Event(
        customer_id=customer_id,
        event=EventKind.OFFER_COMPLETED,
        value=f"{{'offer_id': '{offer_id}', 'reward': {reward}}}",
        time=time,
    )


def transaction(payload: Any, customer_id: str = "cust_1", time: int = 0) -> Event:
    """
    Transaction event; a number becomes ``{'amount': n}``, a string is used verbatim.
    """
    value = payload if isinstance(payload, str) else f"{{'amount': {payload}}}"
    return Event(customer_id=customer_id, event=EventKind.TRANSACTION, value=value, time=time)


def is_no_data(chart: ChartData) -> bool:
    """True for the single-point "No Data" sentinel chart."""
    return (
        chart.labels == [NO_DATA_LABEL]
        and len(chart.datasets) == 1
        and chart.datasets[0].data == [0]
    )


def week_bucket_of(hour: int) -> Optional[int]:
    """Index of the reporting week containing *hour*, or None outside the window."""
    containing = [i for i, (start, end) in enumerate(WEEK_BUCKETS) if start <= hour <= end]
    assert len(containing) <= 1, f"hour {hour} falls in overlapping buckets"
    return containing[0] if containing else None


def run(coro):
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Mock store, reusable in-memory EventStore for pure unit tests
# ---------------------------------------------------------------------------


def _matches(row: dict[str, Any], f: Filter) -> bool:
    actual = row.get(f.field)
    if f.op == FilterOp.IS_NULL:
        return actual is None
    if f.op == FilterOp.NOT_NULL:
        return actual is not None
    if actual is None:
        return False
    if f.op == FilterOp.EQ:
        return actual == f.value
    if f.op == FilterOp.NEQ:
        return actual != f.value
    if f.op == FilterOp.ILIKE:
        return str(f.value).lower() in str(actual).lower()
    if f.op == FilterOp.GTE:
        return actual >= f.value
    if f.op == FilterOp.LTE:
        return actual <= f.value
    if f.op == FilterOp.IN:
        return actual in f.value
    raise StorageError(f"Unsupported filter operator: {f.op}")


class MockStore(EventStore):
    """
    In-memory EventStore for unit tests.

    Applies filters with SQL null semantics (a null never matches a
    comparison). ``fail_tables`` makes every read of those tables raise
    StorageError, to exercise the error policies.
    """

    def __init__(self):
        self._rows: dict[Table, list[dict[str, Any]]] = {t: [] for t in Table}
        self.fail_tables: set[Table] = set()
        self.calls: list[tuple[str, Table]] = []

    # --- Loaders ---
    def add_events(self, events: Sequence[Event]) -> "MockStore":
        for e in events:
            self._rows[Table.EVENTS].append(
                {"customer_id": e.customer_id, "event": e.event.value, "value": e.value, "time": e.time}
            )
        return self

    def add_offers(self, offers: Sequence[Offer]) -> "MockStore":
        for o in offers:
            self._rows[Table.OFFERS].append(
                {"offer_id": o.offer_id, "offer_type": o.offer_type.value, "channels": o.channels}
            )
        return self

    def add_customers(self, customers: Sequence[Customer]) -> "MockStore":
        for c in customers:
            self._rows[Table.CUSTOMERS].append(
                {"customer_id": c.customer_id, "income": c.income, "gender": c.gender}
            )
        return self

    def fail(self, *tables: Table) -> "MockStore":
        self.fail_tables.update(tables or tuple(Table))
        return self

    # --- Read interface ---
    def _filtered(self, table: Table, filters: Optional[list[Filter]]) -> list[dict[str, Any]]:
        table = Table(table)
        self.calls.append(("read", table))
        if table in self.fail_tables:
            raise StorageError(f"Simulated backend failure on {table.value}")
        filters = filters or []
        validate_columns(table, [f.field for f in filters])
        return [row for row in self._rows[table] if all(_matches(row, f) for f in filters)]

    def count(self, table: Table, filters: Optional[list[Filter]] = None) -> int:
        return len(self._filtered(table, filters))

    def select(
        self,
        table: Table,
        columns: Sequence[str],
        filters: Optional[list[Filter]] = None,
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        rows = self._filtered(table, filters)
        validate_columns(Table(table), columns)
        if order is not None:
            rows = sorted(rows, key=lambda r: r[order.column], reverse=order.descending)
        if limit is not None:
            rows = rows[:limit]
        return [{c: row[c] for c in columns} for row in rows]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_store() -> MockStore:
    """Empty in-memory event store."""
    return MockStore()


@pytest.fixture
def fallbacks() -> FallbackTable:
    """Built-in fallback table."""
    return build_default_fallbacks()


@pytest.fixture
def sample_offers() -> list[Offer]:
    return [
        make_offer("offer_bogo_1", OfferType.BOGO, "['web', 'email', 'mobile']"),
        make_offer("offer_bogo_2", OfferType.BOGO, "['email', 'social']"),
        make_offer("offer_disc_1", OfferType.DISCOUNT, "['web', 'email']"),
        make_offer("offer_info_1", OfferType.INFORMATIONAL, "['email', 'mobile']"),
    ]


@pytest.fixture
def sample_customers() -> list[Customer]:
    return [
        make_customer("cust_1", "40000", "F"),
        make_customer("cust_2", "60000", "M"),
        make_customer("cust_3", "90000", ""),
        make_customer("cust_4", "150000", "F"),
        make_customer("cust_5", None, None),
    ]


@pytest.fixture
def sample_events() -> list[Event]:
    return [
        received("offer_bogo_1", "cust_1", 0),
        viewed("offer_bogo_1", "cust_1", 6),
        completed("offer_bogo_1", "cust_1", 48),
        received("offer_bogo_2", "cust_2", 168),
        received("offer_disc_1", "cust_3", 170),
        completed("offer_disc_1", "cust_3", 194),
        received("offer_info_1", "cust_4", 340),
        transaction(12.5, "cust_1", 10),
        transaction("amount=20", "cust_2", 200),
        transaction('{"amount": 7.25}', "cust_3", 400),
        transaction("amount: n/a", "cust_4", 600),
    ]


@pytest.fixture
def populated_store(mock_store, sample_offers, sample_customers, sample_events) -> MockStore:
    """Mock store populated with the sample dataset."""
    return mock_store.add_offers(sample_offers).add_customers(sample_customers).add_events(sample_events)


@pytest.fixture
def duckdb_store():
    """Private in-memory DuckDB event store."""
    from engagement.storage.duckdb_storage import DuckDBEventStore

    store = DuckDBEventStore(db_path=":memory:")
    yield store
    store.close()


@pytest.fixture
def client():
    """FastAPI test client for integration tests."""
    from engagement.main import app
    with TestClient(app) as c:
        yield c
