"""
Metric aggregators.

Every aggregator is a coroutine function ``(store, fallbacks) -> AggregationOutcome``.
:data:`REGISTRY` maps each metric key to its aggregator and to the dashboard
section it is shown in; the dashboard field name is the metric key value.
"""

from typing import NamedTuple

from engagement.models.enums import DashboardSection, MetricKey

from ..policy import Aggregator
from . import demographics, kpis, summaries, trends


class AggregatorEntry(NamedTuple):
    section: DashboardSection
    fn: Aggregator


REGISTRY: dict[MetricKey, AggregatorEntry] = {
    MetricKey.OVERALL_COMPLETION_RATE: AggregatorEntry(
        DashboardSection.KPIS, kpis.overall_completion_rate
    ),
    MetricKey.COMPLETION_RATE_BY_OFFER_TYPE: AggregatorEntry(
        DashboardSection.KPIS, kpis.completion_rate_by_offer_type
    ),
    MetricKey.USERS_WITH_COMPLETION: AggregatorEntry(
        DashboardSection.KPIS, kpis.users_with_completion
    ),
    MetricKey.AVG_DAYS_TO_COMPLETE: AggregatorEntry(
        DashboardSection.KPIS, kpis.avg_days_to_complete
    ),
    MetricKey.DAILY_TRANSACTIONS: AggregatorEntry(
        DashboardSection.TRENDS, trends.daily_transactions
    ),
    MetricKey.WEEKLY_AVG_TRANSACTIONS: AggregatorEntry(
        DashboardSection.TRENDS, trends.weekly_avg_transactions
    ),
    MetricKey.WEEKLY_TOTAL_TRANSACTIONS: AggregatorEntry(
        DashboardSection.TRENDS, trends.weekly_total_transactions
    ),
    MetricKey.OFFER_TYPE_DISTRIBUTION: AggregatorEntry(
        DashboardSection.TRENDS, trends.offer_type_distribution
    ),
    MetricKey.INCOME_VS_COMPLETION_RATE: AggregatorEntry(
        DashboardSection.DEMOGRAPHICS, demographics.income_vs_completion_rate
    ),
    MetricKey.INCOME_VS_SPENDING: AggregatorEntry(
        DashboardSection.DEMOGRAPHICS, demographics.income_vs_spending
    ),
    MetricKey.GENDER_BREAKDOWN: AggregatorEntry(
        DashboardSection.DEMOGRAPHICS, demographics.gender_breakdown
    ),
    MetricKey.CHANNEL_EFFECTIVENESS: AggregatorEntry(
        DashboardSection.DEMOGRAPHICS, demographics.channel_effectiveness
    ),
    MetricKey.TOTAL_TRANSACTIONS: AggregatorEntry(
        DashboardSection.SUMMARIES, summaries.total_transactions
    ),
    MetricKey.BOGO_COMPLETION: AggregatorEntry(
        DashboardSection.SUMMARIES, summaries.bogo_completion
    ),
    MetricKey.SEVEN_DAY_AVG_SPEND: AggregatorEntry(
        DashboardSection.SUMMARIES, summaries.seven_day_avg_spend
    ),
}

__all__ = ["REGISTRY", "AggregatorEntry", "demographics", "kpis", "summaries", "trends"]
