"""
Abstract read interface over the engagement event store.

The metric engine never writes and never needs joins from the backend: every
aggregator issues narrow ``count`` and ``select`` reads against one of three
logical tables and does its grouping in Python. Keeping the contract this
small lets the DuckDB backend, a hosted Postgres table, or an in-memory test
double stand behind the same aggregators.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from engagement.models.enums import Table
from engagement.models.query import Filter, OrderBy

TABLE_COLUMNS: dict[Table, tuple[str, ...]] = {
    Table.EVENTS: ("customer_id", "event", "value", "time"),
    Table.OFFERS: ("offer_id", "offer_type", "channels"),
    Table.CUSTOMERS: ("customer_id", "income", "gender"),
}
"""Columns readable from each logical table."""


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


def validate_columns(table: Table, columns: Sequence[str]) -> None:
    """
    Reject column names that do not belong to *table*.

    Raises:
        StorageError: If any column is unknown
    """
    known = TABLE_COLUMNS[table]
    unknown = [c for c in columns if c not in known]
    if unknown:
        raise StorageError(f"Unknown column(s) for table '{table.value}': {unknown}")


class EventStore(ABC):
    """
    Read-only access to the ``events``, ``offers`` and ``customers`` tables.

    Implementations must:
    - apply every filter conjunctively
    - support all :class:`~engagement.models.enums.FilterOp` operators
    - raise :class:`StorageError` for backend failures and invalid columns
    - be safe to call from several worker threads at once
    """

    @abstractmethod
    def count(self, table: Table, filters: Optional[list[Filter]] = None) -> int:
        """
        Count rows matching *filters* without materializing them.

        Args:
            table: Logical table to count
            filters: Conditions that must all hold

        Returns:
            Exact number of matching rows

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def select(
        self,
        table: Table,
        columns: Sequence[str],
        filters: Optional[list[Filter]] = None,
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Materialize rows matching *filters*, restricted to *columns*.

        Args:
            table: Logical table to read
            columns: Columns to return; each row is a dict keyed by these names
            filters: Conditions that must all hold
            order: Optional sort specification
            limit: Optional maximum number of rows

        Returns:
            Matching rows in backend order unless *order* is given

        Raises:
            StorageError: If the read fails
        """
        pass
