"""
Metric result models.

Every aggregator normalizes its result into either a :class:`Metric` (one
named scalar) or a :class:`ChartData` (labeled series, shared by bar, line,
pie and stacked-bar renderings), and wraps it in an
:class:`AggregationOutcome` that records whether the value was computed from
data, substituted from the fallback table, or could not be produced at all.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

from .enums import OutcomeStatus

NO_DATA_LABEL = "No Data"


class Metric(BaseModel):
    """
    Single named scalar for display.

    ``value`` is numeric for plain quantities (days, counts) and a formatted
    string for percentages and currency (``"52.1%"``, ``"$12.40"``).
    """

    label: str
    value: Union[int, float, str]


class ChartDataset(BaseModel):
    """
    One series of a chart.

    Style hints are passed through untouched to the rendering layer.
    """

    label: str
    data: list[float]
    background_color: Optional[Union[str, list[str]]] = None
    border_color: Optional[Union[str, list[str]]] = None
    border_width: Optional[int] = None
    y_axis_id: Optional[str] = None


class ChartData(BaseModel):
    """
    Labeled series in the universal chart shape.

    Invariants:
        - at least one dataset
        - every dataset has exactly one data point per label
    """

    labels: list[str]
    datasets: list[ChartDataset] = Field(min_length=1)

    @model_validator(mode="after")
    def check_alignment(self) -> "ChartData":
        for dataset in self.datasets:
            if len(dataset.data) != len(self.labels):
                raise ValueError(
                    f"Dataset '{dataset.label}' has {len(dataset.data)} points "
                    f"for {len(self.labels)} labels"
                )
        return self

    @classmethod
    def single(
        cls,
        labels: list[str],
        label: str,
        data: list[float],
        **style: object,
    ) -> "ChartData":
        """Chart with one dataset."""
        return cls(labels=labels, datasets=[ChartDataset(label=label, data=data, **style)])

    @classmethod
    def no_data(cls, label: str, **style: object) -> "ChartData":
        """Sentinel chart shown when there is nothing to plot."""
        return cls.single([NO_DATA_LABEL], label, [0], **style)


MetricValue = Union[Metric, ChartData]


class AggregationOutcome(BaseModel):
    """
    Result of one aggregator run.

    Attributes:
        status: ok, degraded or failed
        value: Computed or substituted value; None only when failed
        reason: Why the value is degraded or missing (e.g. ``no_data``,
            ``zero_counts``, ``backend_error``, ``proportional_estimate``)
    """

    status: OutcomeStatus
    value: Optional[MetricValue] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "AggregationOutcome":
        if self.status == OutcomeStatus.FAILED:
            if self.value is not None:
                raise ValueError("Failed outcomes carry no value")
            if not self.reason:
                raise ValueError("Failed outcomes require a reason")
        else:
            if self.value is None:
                raise ValueError(f"{self.status.value} outcomes require a value")
            if self.status == OutcomeStatus.DEGRADED and not self.reason:
                raise ValueError("Degraded outcomes require a reason")
        return self

    @classmethod
    def ok(cls, value: MetricValue) -> "AggregationOutcome":
        return cls(status=OutcomeStatus.OK, value=value)

    @classmethod
    def degraded(cls, value: MetricValue, reason: str) -> "AggregationOutcome":
        return cls(status=OutcomeStatus.DEGRADED, value=value, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "AggregationOutcome":
        return cls(status=OutcomeStatus.FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    @property
    def is_degraded(self) -> bool:
        return self.status == OutcomeStatus.DEGRADED

    @property
    def is_failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED
