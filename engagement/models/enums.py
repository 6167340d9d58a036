"""
Enumeration types for the engagement metrics engine.

All enums inherit from str so they serialize to their plain values in JSON
responses and compare equal to the raw strings stored in the event log.
"""

from enum import Enum


class EventKind(str, Enum):
    """
    Kinds of facts recorded in the event log.

    The values match the raw ``event`` column text exactly, including the
    embedded spaces.
    """

    OFFER_RECEIVED = "offer received"
    OFFER_VIEWED = "offer viewed"
    OFFER_COMPLETED = "offer completed"
    TRANSACTION = "transaction"


class OfferType(str, Enum):
    """Promotional campaign types."""

    BOGO = "bogo"
    DISCOUNT = "discount"
    INFORMATIONAL = "informational"


class Table(str, Enum):
    """Logical tables exposed by the event store."""

    EVENTS = "events"
    OFFERS = "offers"
    CUSTOMERS = "customers"


class FilterOp(str, Enum):
    """Filter operators supported by the event store read interface."""

    EQ = "eq"
    NEQ = "neq"
    ILIKE = "ilike"
    GTE = "gte"
    LTE = "lte"
    IN = "in"
    IS_NULL = "is_null"
    NOT_NULL = "not_null"


class MetricKey(str, Enum):
    """Closed set of metrics computed by the engine."""

    # KPIs
    OVERALL_COMPLETION_RATE = "overall_completion_rate"
    COMPLETION_RATE_BY_OFFER_TYPE = "completion_rate_by_offer_type"
    USERS_WITH_COMPLETION = "users_with_completion"
    AVG_DAYS_TO_COMPLETE = "avg_days_to_complete"

    # Trends
    DAILY_TRANSACTIONS = "daily_transactions"
    WEEKLY_AVG_TRANSACTIONS = "weekly_avg_transactions"
    WEEKLY_TOTAL_TRANSACTIONS = "weekly_total_transactions"
    OFFER_TYPE_DISTRIBUTION = "offer_type_distribution"

    # Demographics
    INCOME_VS_COMPLETION_RATE = "income_vs_completion_rate"
    INCOME_VS_SPENDING = "income_vs_spending"
    GENDER_BREAKDOWN = "gender_breakdown"
    CHANNEL_EFFECTIVENESS = "channel_effectiveness"

    # Summaries
    TOTAL_TRANSACTIONS = "total_transactions"
    BOGO_COMPLETION = "bogo_completion"
    SEVEN_DAY_AVG_SPEND = "seven_day_avg_spend"


class DashboardSection(str, Enum):
    """Top-level groups of the assembled dashboard."""

    KPIS = "kpis"
    TRENDS = "trends"
    DEMOGRAPHICS = "demographics"
    SUMMARIES = "summaries"


class OutcomeStatus(str, Enum):
    """Result classification of a single aggregator run."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


class ErrorPolicy(str, Enum):
    """
    What an aggregator does when the event store itself fails.

    FALLBACK substitutes the metric's configured default and marks the
    outcome degraded; PROPAGATE marks the outcome failed, which fails the
    whole dashboard.
    """

    FALLBACK = "fallback"
    PROPAGATE = "propagate"
