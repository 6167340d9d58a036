"""
DuckDB implementation of the engagement event store.

Holds the ``events``, ``offers`` and ``customers`` tables in a local DuckDB
file (or in memory) and translates the store's filter primitives into
parameterized SQL. Besides the read interface used by the metric engine it
exposes bulk loaders used by the dataset scripts and the test suite.

Key features:
- One root connection, one cursor per worker thread
- Automatic schema creation on first use
- Identifier whitelisting; every operand is passed as a bound parameter
- Backend failures re-raised as StorageError with structured logging
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import duckdb
import structlog

from engagement.models.enums import FilterOp, Table
from engagement.models.events import Customer, Event, Offer
from engagement.models.query import Filter, OrderBy, describe_filters

from .base import TABLE_COLUMNS, EventStore, StorageError, validate_columns

logger = structlog.get_logger(__name__)

_COMPARISON_SQL = {
    FilterOp.EQ: "=",
    FilterOp.NEQ: "<>",
    FilterOp.GTE: ">=",
    FilterOp.LTE: "<=",
}


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_where(table: Table, filters: Optional[list[Filter]]) -> tuple[str, list[Any]]:
    """
    Translate *filters* into a WHERE clause and its parameter list.

    Returns:
        ``(clause, params)``; the clause is empty when there are no filters

    Raises:
        StorageError: If a filter references an unknown column
    """
    if not filters:
        return "", []

    validate_columns(table, [f.field for f in filters])

    clauses: list[str] = []
    params: list[Any] = []
    for f in filters:
        column = _quote(f.field)
        if f.op in _COMPARISON_SQL:
            clauses.append(f"{column} {_COMPARISON_SQL[f.op]} ?")
            params.append(f.value)
        elif f.op == FilterOp.ILIKE:
            clauses.append(f"{column} ILIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(str(f.value))}%")
        elif f.op == FilterOp.IN:
            if not f.value:
                clauses.append("FALSE")
                continue
            placeholders = ", ".join("?" for _ in f.value)
            clauses.append(f"{column} IN ({placeholders})")
            params.extend(f.value)
        elif f.op == FilterOp.IS_NULL:
            clauses.append(f"{column} IS NULL")
        elif f.op == FilterOp.NOT_NULL:
            clauses.append(f"{column} IS NOT NULL")
        else:
            raise StorageError(f"Unsupported filter operator: {f.op}")

    return " WHERE " + " AND ".join(clauses), params


class DuckDBEventStore(EventStore):
    """
    DuckDB-backed event store.

    Attributes:
        db_path: Path to the DuckDB database file, or ``:memory:``
        _root: Root connection owning the database
        _local: Thread-local storage for per-thread cursors
        _lock: Guards schema initialization
    """

    def __init__(self, db_path: str = "./data/engagement.duckdb", threads: Optional[int] = None):
        """
        Open (or create) the database and ensure the schema exists.

        Args:
            db_path: Database file path; ``:memory:`` for a private in-memory database
            threads: DuckDB worker thread count, or the DuckDB default when None
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        config = {"threads": threads} if threads else {}
        try:
            self._root = duckdb.connect(db_path, config=config)
        except Exception as e:
            logger.error("duckdb_connection_failed", db_path=db_path, error=str(e))
            raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_event_store_initialized", db_path=db_path)
        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get this thread's cursor on the root connection.

        Yields:
            DuckDB cursor usable like a connection
        """
        if not hasattr(self._local, "connection"):
            self._local.connection = self._root.cursor()
            logger.debug("duckdb_cursor_created", thread_id=threading.get_ident())

        try:
            yield self._local.connection
        except Exception:
            try:
                self._local.connection.rollback()
            except duckdb.Error:
                # No transaction was open.
                pass
            raise

    def _initialize_schema(self) -> None:
        """
        Create the three tables and their indexes. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS events (
                            customer_id VARCHAR,
                            event VARCHAR NOT NULL,
                            value VARCHAR,
                            "time" INTEGER NOT NULL
                        )
                    """)
                    conn.execute("CREATE INDEX IF NOT EXISTS idx_events_event ON events(event)")
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_events_customer ON events(customer_id)"
                    )
                    conn.execute('CREATE INDEX IF NOT EXISTS idx_events_time ON events("time")')

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS offers (
                            offer_id VARCHAR PRIMARY KEY,
                            offer_type VARCHAR NOT NULL,
                            channels VARCHAR
                        )
                    """)

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS customers (
                            customer_id VARCHAR PRIMARY KEY,
                            income VARCHAR,
                            gender VARCHAR
                        )
                    """)

                self._initialized = True
                logger.info("duckdb_schema_initialized", tables=[t.value for t in Table])

            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    # =========================================================================
    # Read interface
    # =========================================================================

    def count(self, table: Table, filters: Optional[list[Filter]] = None) -> int:
        """Count rows matching *filters*."""
        table = Table(table)
        where, params = build_where(table, filters)
        query = f"SELECT COUNT(*) FROM {table.value}{where}"

        try:
            with self._get_connection() as conn:
                result = conn.execute(query, params).fetchone()
        except duckdb.Error as e:
            logger.error(
                "count_failed",
                table=table.value,
                filters=describe_filters(filters),
                error=str(e),
            )
            raise StorageError(f"Failed to count {table.value}: {e}") from e

        total = int(result[0]) if result else 0
        logger.debug("rows_counted", table=table.value, count=total)
        return total

    def select(
        self,
        table: Table,
        columns: Sequence[str],
        filters: Optional[list[Filter]] = None,
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Read rows matching *filters*, restricted to *columns*."""
        table = Table(table)
        columns = list(columns)
        if not columns:
            raise StorageError("select requires at least one column")
        validate_columns(table, columns)
        where, params = build_where(table, filters)

        query = f"SELECT {', '.join(_quote(c) for c in columns)} FROM {table.value}{where}"
        if order is not None:
            validate_columns(table, [order.column])
            direction = "DESC" if order.descending else "ASC"
            query += f" ORDER BY {_quote(order.column)} {direction}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except duckdb.Error as e:
            logger.error(
                "select_failed",
                table=table.value,
                columns=columns,
                filters=describe_filters(filters),
                error=str(e),
            )
            raise StorageError(f"Failed to read {table.value}: {e}") from e

        logger.debug("rows_selected", table=table.value, count=len(rows))
        return [dict(zip(columns, row)) for row in rows]

    # =========================================================================
    # Loaders
    # =========================================================================

    def write_events(self, events: Iterable[Event]) -> int:
        """Append events. Returns the number of rows written."""
        rows = [(e.customer_id, e.event.value, e.value, e.time) for e in events]
        return self._insert(
            'INSERT INTO events (customer_id, event, value, "time") VALUES (?, ?, ?, ?)',
            rows,
            Table.EVENTS,
        )

    def write_offers(self, offers: Iterable[Offer]) -> int:
        """Insert or replace offers by ``offer_id``."""
        rows = [(o.offer_id, o.offer_type.value, o.channels) for o in offers]
        return self._insert(
            "INSERT OR REPLACE INTO offers (offer_id, offer_type, channels) VALUES (?, ?, ?)",
            rows,
            Table.OFFERS,
        )

    def write_customers(self, customers: Iterable[Customer]) -> int:
        """Insert or replace customers by ``customer_id``."""
        rows = [(c.customer_id, c.income, c.gender) for c in customers]
        return self._insert(
            "INSERT OR REPLACE INTO customers (customer_id, income, gender) VALUES (?, ?, ?)",
            rows,
            Table.CUSTOMERS,
        )

    def _insert(self, statement: str, rows: list[tuple], table: Table) -> int:
        if not rows:
            return 0
        try:
            with self._get_connection() as conn:
                conn.executemany(statement, rows)
        except duckdb.Error as e:
            logger.error("write_failed", table=table.value, rows=len(rows), error=str(e))
            raise StorageError(f"Failed to write {table.value}: {e}") from e

        logger.info("rows_written", table=table.value, count=len(rows))
        return len(rows)

    def clear_for_testing(self) -> None:
        """Delete every row from all tables. Used by the test suite and the seeder."""
        with self._get_connection() as conn:
            for table in TABLE_COLUMNS:
                conn.execute(f"DELETE FROM {table.value}")
        logger.info("tables_cleared", tables=[t.value for t in TABLE_COLUMNS])

    def close(self) -> None:
        """Close the root connection."""
        self._root.close()
        logger.info("duckdb_event_store_closed", db_path=self.db_path)
