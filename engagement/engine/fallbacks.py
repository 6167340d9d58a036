"""
Fallback table: every default value the engine may substitute.

Defaults live in one table keyed by metric instead of inside each
aggregator. Aggregators receive the table as an argument and read
substitutes and reference constants from it; the policy layer reads the
same table when a backend failure is converted into a degraded outcome.

The built-in table can be partially overridden by a JSON file named by the
``FALLBACKS_PATH`` setting::

    {
        "reference_received": 30000,
        "defaults": {
            "overall_completion_rate": {"label": "Overall Completion Rate", "value": "48%"}
        }
    }
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Union

import structlog
from pydantic import BaseModel, Field, model_validator

from engagement.config import get_settings
from engagement.models.enums import MetricKey
from engagement.models.metrics import ChartData, Metric, MetricValue

from .calculations import INCOME_BRACKETS, WEEK_LABELS, completion_rate, format_percent
from .presentation import (
    BAR_STYLE,
    METRIC_LABELS,
    NO_DATA_STYLE,
    PALETTE_STYLE,
    PRIMARY,
    SPEND_STYLE,
)

logger = structlog.get_logger(__name__)

REFERENCE_RECEIVED = 24719
REFERENCE_COMPLETED = 12881


class FallbackTable(BaseModel):
    """
    Default values and reference constants for every metric.

    Attributes:
        defaults: Substitute value per metric
        reference_received: Received count used when the live counts are empty
        reference_completed: Completed count used when the live counts are empty
        bracket_base_factor: Base completion factor for proportional income estimates
        bracket_uplift: Per-bracket additive uplift, in bracket order
        channel_factor: Completion factor for proportional channel estimates
    """

    defaults: dict[MetricKey, Union[Metric, ChartData]]
    reference_received: int = Field(default=REFERENCE_RECEIVED, gt=0)
    reference_completed: int = Field(default=REFERENCE_COMPLETED, ge=0)
    bracket_base_factor: float = Field(default=0.8, ge=0)
    bracket_uplift: list[float] = Field(default_factory=lambda: [0.0, 0.1, 0.2, 0.3])
    channel_factor: float = Field(default=1.0, ge=0)

    @model_validator(mode="after")
    def check_complete(self) -> "FallbackTable":
        missing = [key.value for key in MetricKey if key not in self.defaults]
        if missing:
            raise ValueError(f"Fallback table has no default for: {missing}")
        if len(self.bracket_uplift) != len(INCOME_BRACKETS):
            raise ValueError(
                f"bracket_uplift needs {len(INCOME_BRACKETS)} entries, got {len(self.bracket_uplift)}"
            )
        return self

    def default_for(self, key: MetricKey) -> MetricValue:
        """Independent copy of the default value for *key*."""
        return self.defaults[MetricKey(key)].model_copy(deep=True)


def overall_rate_metric(received: int, completed: int) -> Metric:
    """Overall completion rate metric for a received/completed count pair."""
    return Metric(
        label=METRIC_LABELS[MetricKey.OVERALL_COMPLETION_RATE],
        value=format_percent(completion_rate(received, completed)),
    )


def build_default_fallbacks() -> FallbackTable:
    """Built-in fallback table."""
    label = METRIC_LABELS

    defaults: dict[MetricKey, Union[Metric, ChartData]] = {
        # KPIs
        MetricKey.OVERALL_COMPLETION_RATE: overall_rate_metric(
            REFERENCE_RECEIVED, REFERENCE_COMPLETED
        ),
        MetricKey.COMPLETION_RATE_BY_OFFER_TYPE: ChartData.no_data(
            label[MetricKey.COMPLETION_RATE_BY_OFFER_TYPE], **NO_DATA_STYLE
        ),
        MetricKey.USERS_WITH_COMPLETION: Metric(
            label=label[MetricKey.USERS_WITH_COMPLETION], value="0%"
        ),
        MetricKey.AVG_DAYS_TO_COMPLETE: Metric(
            label=label[MetricKey.AVG_DAYS_TO_COMPLETE], value=0
        ),
        # Trends
        MetricKey.DAILY_TRANSACTIONS: ChartData.no_data(
            label[MetricKey.DAILY_TRANSACTIONS], **BAR_STYLE
        ),
        MetricKey.WEEKLY_AVG_TRANSACTIONS: ChartData.single(
            list(WEEK_LABELS),
            label[MetricKey.WEEKLY_AVG_TRANSACTIONS],
            [24.50, 22.75, 28.30, 26.15],
            **BAR_STYLE,
        ),
        MetricKey.WEEKLY_TOTAL_TRANSACTIONS: ChartData.single(
            list(WEEK_LABELS),
            label[MetricKey.WEEKLY_TOTAL_TRANSACTIONS],
            [2450.50, 3297.25, 2773.30, 3456.15],
            **SPEND_STYLE,
        ),
        MetricKey.OFFER_TYPE_DISTRIBUTION: ChartData.no_data(
            label[MetricKey.OFFER_TYPE_DISTRIBUTION], **NO_DATA_STYLE
        ),
        # Demographics
        MetricKey.INCOME_VS_COMPLETION_RATE: ChartData.single(
            list(INCOME_BRACKETS),
            label[MetricKey.INCOME_VS_COMPLETION_RATE],
            [42.8, 51.3, 58.7, 63.5],
            background_color=PRIMARY,
        ),
        MetricKey.INCOME_VS_SPENDING: ChartData.single(
            list(INCOME_BRACKETS),
            label[MetricKey.INCOME_VS_SPENDING],
            [23.50, 28.75, 32.40, 47.15],
            background_color=PRIMARY,
        ),
        MetricKey.GENDER_BREAKDOWN: ChartData.no_data(
            label[MetricKey.GENDER_BREAKDOWN], **NO_DATA_STYLE
        ),
        MetricKey.CHANNEL_EFFECTIVENESS: ChartData.single(
            ["email", "mobile", "social", "web"],
            label[MetricKey.CHANNEL_EFFECTIVENESS],
            [68.5, 62.3, 54.7, 49.2],
            **PALETTE_STYLE,
        ),
        # Summaries
        MetricKey.TOTAL_TRANSACTIONS: Metric(
            label=label[MetricKey.TOTAL_TRANSACTIONS], value="0"
        ),
        MetricKey.BOGO_COMPLETION: Metric(label=label[MetricKey.BOGO_COMPLETION], value="0%"),
        MetricKey.SEVEN_DAY_AVG_SPEND: Metric(
            label=label[MetricKey.SEVEN_DAY_AVG_SPEND], value="$0"
        ),
    }
    return FallbackTable(defaults=defaults)


def load_fallbacks(path: Union[str, Path]) -> FallbackTable:
    """
    Built-in table with the overrides from a JSON file applied on top.

    Top-level constants replace the built-in ones; ``defaults`` entries are
    merged per metric key.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON or the merged table is invalid
    """
    overrides = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(overrides, dict):
        raise ValueError(f"Fallback overrides in {path} must be a JSON object")

    default_overrides = overrides.pop("defaults", {}) or {}
    merged = build_default_fallbacks().model_dump(mode="json")
    merged["defaults"].update(default_overrides)
    merged.update(overrides)

    table = FallbackTable.model_validate(merged)
    if MetricKey.OVERALL_COMPLETION_RATE.value not in default_overrides:
        # The backend-error substitute must match the zero-count path.
        table.defaults[MetricKey.OVERALL_COMPLETION_RATE] = overall_rate_metric(
            table.reference_received, table.reference_completed
        )
    logger.info("fallback_overrides_loaded", path=str(path), keys=sorted(overrides))
    return table


@lru_cache
def get_fallback_table() -> FallbackTable:
    """
    Get cached fallback table (singleton).

    Uses the override file from settings when one is configured.
    """
    settings = get_settings()
    if settings.fallbacks_path:
        return load_fallbacks(settings.fallbacks_path)
    return build_default_fallbacks()
