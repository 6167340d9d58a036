"""
Dashboard assembler.

Runs all metric aggregators concurrently, each under its configured error
policy, and assembles the results into one :class:`DashboardMetrics`. The
dashboard is all-or-nothing: one failed metric fails the whole load.
Degraded metrics are served and listed in ``degraded`` so the UI can badge
them.
"""

import asyncio
from datetime import datetime, timezone
from functools import partial
from typing import Any, Mapping, Optional

import structlog

from engagement.config import Settings
from engagement.models.dashboard import (
    DashboardMetrics,
    DemographicSection,
    KpiSection,
    SummarySection,
    TrendSection,
)
from engagement.models.enums import DashboardSection, ErrorPolicy, MetricKey
from engagement.models.metrics import AggregationOutcome
from engagement.storage.base import EventStore

from .aggregators import REGISTRY
from .fallbacks import FallbackTable, build_default_fallbacks, get_fallback_table
from .policy import DEFAULT_ERROR_POLICIES, resolve_error_policies, run_aggregator

logger = structlog.get_logger(__name__)

_SECTION_MODELS = {
    DashboardSection.KPIS: KpiSection,
    DashboardSection.TRENDS: TrendSection,
    DashboardSection.DEMOGRAPHICS: DemographicSection,
    DashboardSection.SUMMARIES: SummarySection,
}


class DashboardLoadError(Exception):
    """
    The dashboard could not be assembled.

    Attributes:
        failures: Metric key to failure reason for every metric that failed
    """

    def __init__(self, failures: Mapping[str, str]):
        self.failures = dict(failures)
        super().__init__(f"Dashboard metrics failed: {sorted(self.failures)}")


class DashboardAssembler:
    """
    Computes dashboard metrics from an event store.

    Holds no state between calls; every call re-reads the store.
    """

    def __init__(
        self,
        store: EventStore,
        fallbacks: Optional[FallbackTable] = None,
        policies: Optional[Mapping[MetricKey, ErrorPolicy]] = None,
        fail_on_degraded: bool = False,
        options: Optional[Mapping[MetricKey, Mapping[str, Any]]] = None,
    ):
        """
        Args:
            store: Event store to read from
            fallbacks: Fallback table; the built-in defaults when None
            policies: Error policy per metric; missing keys use the defaults
            fail_on_degraded: Treat degraded metrics as failures
            options: Extra keyword arguments per aggregator (window sizes)
        """
        self.store = store
        self.fallbacks = fallbacks or build_default_fallbacks()
        self.policies = {**DEFAULT_ERROR_POLICIES, **(policies or {})}
        self.fail_on_degraded = fail_on_degraded
        self.options = {key: dict(kwargs) for key, kwargs in (options or {}).items()}

    @classmethod
    def from_settings(cls, store: EventStore, settings: Settings) -> "DashboardAssembler":
        """Assembler configured from application settings."""
        return cls(
            store=store,
            fallbacks=get_fallback_table(),
            policies=resolve_error_policies(settings.metric_error_policies),
            fail_on_degraded=settings.fail_on_degraded,
            options={
                MetricKey.DAILY_TRANSACTIONS: {"max_days": settings.daily_series_max_days},
                MetricKey.SEVEN_DAY_AVG_SPEND: {"days": settings.rolling_spend_days},
            },
        )

    async def get_metric(self, key: MetricKey) -> AggregationOutcome:
        """Compute one metric under its error policy."""
        key = MetricKey(key)
        fn = REGISTRY[key].fn
        if key in self.options:
            fn = partial(fn, **self.options[key])
        return await run_aggregator(key, fn, self.store, self.fallbacks, self.policies[key])

    async def get_all_metrics(self) -> DashboardMetrics:
        """
        Compute every metric concurrently and assemble the dashboard.

        Raises:
            DashboardLoadError: If any metric failed (or, with
                ``fail_on_degraded``, fell back to a default)
        """
        keys = list(REGISTRY)
        logger.info("dashboard_assembly_started", metrics=len(keys))

        outcomes = await asyncio.gather(
            *[self.get_metric(key) for key in keys], return_exceptions=True
        )

        results: dict[MetricKey, AggregationOutcome] = {}
        failures: dict[str, str] = {}
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, Exception):
                failures[key.value] = f"unexpected_error: {outcome!r}"
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[key] = outcome
                if outcome.is_failed:
                    failures[key.value] = outcome.reason

        degraded = {key.value: o.reason for key, o in results.items() if o.is_degraded}
        if self.fail_on_degraded:
            failures.update(degraded)

        if failures:
            logger.error("dashboard_assembly_failed", failures=failures)
            raise DashboardLoadError(failures)

        sections: dict[DashboardSection, dict[str, Any]] = {s: {} for s in DashboardSection}
        for key, outcome in results.items():
            sections[REGISTRY[key].section][key.value] = outcome.value

        dashboard = DashboardMetrics(
            **{
                section.value: _SECTION_MODELS[section](**fields)
                for section, fields in sections.items()
            },
            degraded=degraded,
            generated_at=datetime.now(timezone.utc),
        )
        logger.info("dashboard_assembly_completed", degraded=sorted(degraded))
        return dashboard
