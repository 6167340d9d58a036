"""
Assembled dashboard response.

The assembler fills one field per metric; the section models fix the shape
the UI collaborator consumes so a missing metric is a validation error rather
than an empty panel.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .metrics import ChartData, Metric


class KpiSection(BaseModel):
    """Headline offer performance indicators."""

    overall_completion_rate: Metric
    completion_rate_by_offer_type: ChartData
    users_with_completion: Metric
    avg_days_to_complete: Metric


class TrendSection(BaseModel):
    """Time series over the observation window."""

    daily_transactions: ChartData
    weekly_avg_transactions: ChartData
    weekly_total_transactions: ChartData
    offer_type_distribution: ChartData


class DemographicSection(BaseModel):
    """Customer segment and channel breakdowns."""

    income_vs_completion_rate: ChartData
    income_vs_spending: ChartData
    gender_breakdown: ChartData
    channel_effectiveness: ChartData


class SummarySection(BaseModel):
    """Summary scalars."""

    total_transactions: Metric
    bogo_completion: Metric
    seven_day_avg_spend: Metric


class DashboardMetrics(BaseModel):
    """
    Complete dashboard payload.

    Attributes:
        kpis: Headline indicators
        trends: Time series
        demographics: Segment breakdowns
        summaries: Summary scalars
        degraded: Metric key to reason, for every metric served from a fallback
        generated_at: When the payload was assembled
    """

    kpis: KpiSection
    trends: TrendSection
    demographics: DemographicSection
    summaries: SummarySection
    degraded: dict[str, str] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
