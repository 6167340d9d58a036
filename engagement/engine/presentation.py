"""
Display labels and chart style hints.

The engine does not render anything; these values are passed through on
every :class:`~engagement.models.metrics.ChartDataset` so the dashboard
front end can draw the charts without knowing which metric it is showing.
"""

from engagement.models.enums import MetricKey

PRIMARY = "#4E59C0"
ACCENT = "#6976EB"
PALETTE = ["#4E59C0", "#6976EB", "#8F97ED", "#ACBFFF"]
SPEND_FILL = "#33A852"
SPEND_BORDER = "#2D8A45"
NO_DATA_COLOR = "#E0E0E0"

METRIC_LABELS: dict[MetricKey, str] = {
    MetricKey.OVERALL_COMPLETION_RATE: "Overall Completion Rate",
    MetricKey.COMPLETION_RATE_BY_OFFER_TYPE: "Completion Rate (%)",
    MetricKey.USERS_WITH_COMPLETION: "Users with ≥1 Completion",
    MetricKey.AVG_DAYS_TO_COMPLETE: "Avg Days to Complete",
    MetricKey.DAILY_TRANSACTIONS: "Daily Transactions",
    MetricKey.WEEKLY_AVG_TRANSACTIONS: "Avg. Transaction Amount ($)",
    MetricKey.WEEKLY_TOTAL_TRANSACTIONS: "Total Transaction Amount ($)",
    MetricKey.OFFER_TYPE_DISTRIBUTION: "Completions by Offer Type",
    MetricKey.INCOME_VS_COMPLETION_RATE: "Completion Rate (%)",
    MetricKey.INCOME_VS_SPENDING: "Avg. Transaction Amount ($)",
    MetricKey.GENDER_BREAKDOWN: "Completions by Gender",
    MetricKey.CHANNEL_EFFECTIVENESS: "Channel Effectiveness (%)",
    MetricKey.TOTAL_TRANSACTIONS: "Total Transactions",
    MetricKey.BOGO_COMPLETION: "BOGO Completion",
    MetricKey.SEVEN_DAY_AVG_SPEND: "7-Day Avg Spend",
}

BAR_STYLE = {"background_color": PRIMARY, "border_color": ACCENT, "border_width": 1}
SPEND_STYLE = {"background_color": SPEND_FILL, "border_color": SPEND_BORDER, "border_width": 1}
PALETTE_STYLE = {"background_color": PALETTE}
NO_DATA_STYLE = {"background_color": [NO_DATA_COLOR]}
