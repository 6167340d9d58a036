"""
Pydantic v2 data models for the engagement metrics engine.

Model Organization:
    - enums: Event kinds, offer types, tables, metric keys, policies
    - events: Event log and reference entity rows
    - query: Filters and ordering for the event store read interface
    - metrics: Metric, ChartData and AggregationOutcome result types
    - dashboard: The assembled dashboard payload

Usage:
    >>> from engagement.models import AggregationOutcome, Metric
    >>> AggregationOutcome.ok(Metric(label="Overall Completion Rate", value="50%"))
"""

from .dashboard import (
    DashboardMetrics,
    DemographicSection,
    KpiSection,
    SummarySection,
    TrendSection,
)
from .enums import (
    DashboardSection,
    ErrorPolicy,
    EventKind,
    FilterOp,
    MetricKey,
    OfferType,
    OutcomeStatus,
    Table,
)
from .events import OBSERVATION_HOURS, Customer, Event, Offer
from .metrics import (
    NO_DATA_LABEL,
    AggregationOutcome,
    ChartData,
    ChartDataset,
    Metric,
    MetricValue,
)
from .query import Filter, OrderBy, between

__all__ = [
    # Enums
    "DashboardSection",
    "ErrorPolicy",
    "EventKind",
    "FilterOp",
    "MetricKey",
    "OfferType",
    "OutcomeStatus",
    "Table",
    # Entities
    "OBSERVATION_HOURS",
    "Customer",
    "Event",
    "Offer",
    # Query
    "Filter",
    "OrderBy",
    "between",
    # Results
    "NO_DATA_LABEL",
    "AggregationOutcome",
    "ChartData",
    "ChartDataset",
    "Metric",
    "MetricValue",
    # Dashboard
    "DashboardMetrics",
    "DemographicSection",
    "KpiSection",
    "SummarySection",
    "TrendSection",
]
