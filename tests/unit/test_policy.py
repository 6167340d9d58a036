"""
Unit tests for the fallback table and the backend error policy.
"""

import json

import pytest
import structlog
from pydantic import ValidationError

from engagement.engine.aggregators import kpis
from engagement.engine.fallbacks import FallbackTable, build_default_fallbacks, load_fallbacks
from engagement.engine.policy import (
    DEFAULT_ERROR_POLICIES,
    resolve_error_policies,
    run_aggregator,
)
from engagement.models.enums import ErrorPolicy, MetricKey, OutcomeStatus, Table
from engagement.models.metrics import AggregationOutcome, ChartData, Metric
from tests.conftest import is_no_data, run


# =============================================================================
# Fallback table
# =============================================================================


class TestFallbackTable:
    def test_every_metric_has_a_default(self, fallbacks):
        assert set(fallbacks.defaults) == set(MetricKey)

    def test_reference_constants(self, fallbacks):
        assert fallbacks.reference_received == 24719
        assert fallbacks.reference_completed == 12881
        assert fallbacks.bracket_uplift == [0.0, 0.1, 0.2, 0.3]
        assert fallbacks.channel_factor == 1.0

    def test_known_defaults(self, fallbacks):
        assert fallbacks.default_for(MetricKey.OVERALL_COMPLETION_RATE).value == "52.1%"
        income = fallbacks.default_for(MetricKey.INCOME_VS_COMPLETION_RATE)
        assert income.labels == ["Under $50K", "$50K-$75K", "$75K-$100K", "Over $100K"]
        assert income.datasets[0].data == [42.8, 51.3, 58.7, 63.5]
        channels = fallbacks.default_for(MetricKey.CHANNEL_EFFECTIVENESS)
        assert channels.labels == ["email", "mobile", "social", "web"]
        assert is_no_data(fallbacks.default_for(MetricKey.DAILY_TRANSACTIONS))

    def test_default_for_returns_independent_copy(self, fallbacks):
        first = fallbacks.default_for(MetricKey.WEEKLY_AVG_TRANSACTIONS)
        first.datasets[0].data[0] = -1
        second = fallbacks.default_for(MetricKey.WEEKLY_AVG_TRANSACTIONS)
        assert second.datasets[0].data[0] == 24.50

    def test_incomplete_table_rejected(self, fallbacks):
        defaults = dict(fallbacks.defaults)
        defaults.pop(MetricKey.BOGO_COMPLETION)
        with pytest.raises(ValidationError):
            FallbackTable(defaults=defaults)

    def test_uplift_length_checked(self, fallbacks):
        with pytest.raises(ValidationError):
            FallbackTable(defaults=fallbacks.defaults, bracket_uplift=[0.1])

    def test_json_overrides_merge(self, tmp_path):
        path = tmp_path / "fallbacks.json"
        path.write_text(
            json.dumps(
                {
                    "reference_received": 200,
                    "reference_completed": 50,
                    "defaults": {
                        "seven_day_avg_spend": {"label": "7-Day Avg Spend", "value": "$9.99"}
                    },
                }
            )
        )
        table = load_fallbacks(path)
        assert table.reference_received == 200
        assert table.default_for(MetricKey.SEVEN_DAY_AVG_SPEND).value == "$9.99"
        # Untouched entries keep their built-in values
        assert table.default_for(MetricKey.USERS_WITH_COMPLETION).value == "0%"
        assert isinstance(table.default_for(MetricKey.WEEKLY_TOTAL_TRANSACTIONS), ChartData)

    def test_reference_override_rebuilds_overall_default(self, tmp_path):
        path = tmp_path / "fallbacks.json"
        path.write_text(json.dumps({"reference_received": 30000}))
        table = load_fallbacks(path)

        assert table.default_for(MetricKey.OVERALL_COMPLETION_RATE).value == "42.9%"

    def test_explicit_overall_default_kept(self, tmp_path):
        path = tmp_path / "fallbacks.json"
        path.write_text(
            json.dumps(
                {
                    "reference_received": 30000,
                    "defaults": {
                        "overall_completion_rate": {
                            "label": "Overall Completion Rate",
                            "value": "48%",
                        }
                    },
                }
            )
        )
        table = load_fallbacks(path)

        assert table.default_for(MetricKey.OVERALL_COMPLETION_RATE).value == "48%"

    def test_json_override_must_be_object(self, tmp_path):
        path = tmp_path / "fallbacks.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_fallbacks(path)


# =============================================================================
# Error policies
# =============================================================================


class TestErrorPolicies:
    def test_summary_scalars_propagate_by_default(self):
        assert DEFAULT_ERROR_POLICIES[MetricKey.TOTAL_TRANSACTIONS] == ErrorPolicy.PROPAGATE
        assert DEFAULT_ERROR_POLICIES[MetricKey.BOGO_COMPLETION] == ErrorPolicy.PROPAGATE
        assert DEFAULT_ERROR_POLICIES[MetricKey.SEVEN_DAY_AVG_SPEND] == ErrorPolicy.PROPAGATE

    def test_charts_fall_back_by_default(self):
        assert DEFAULT_ERROR_POLICIES[MetricKey.CHANNEL_EFFECTIVENESS] == ErrorPolicy.FALLBACK
        assert DEFAULT_ERROR_POLICIES[MetricKey.OVERALL_COMPLETION_RATE] == ErrorPolicy.FALLBACK

    def test_overrides_applied(self):
        policies = resolve_error_policies(
            {"total_transactions": "fallback", "channel_effectiveness": ErrorPolicy.PROPAGATE}
        )
        assert policies[MetricKey.TOTAL_TRANSACTIONS] == ErrorPolicy.FALLBACK
        assert policies[MetricKey.CHANNEL_EFFECTIVENESS] == ErrorPolicy.PROPAGATE
        assert policies[MetricKey.GENDER_BREAKDOWN] == ErrorPolicy.FALLBACK

    def test_unknown_metric_ignored(self):
        assert resolve_error_policies({"not_a_metric": "fallback"}) == DEFAULT_ERROR_POLICIES

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            resolve_error_policies({"total_transactions": "retry"})


# =============================================================================
# run_aggregator
# =============================================================================


async def _ok_aggregator(store, fallbacks):
    return AggregationOutcome.ok(Metric(label="Total Transactions", value="3"))


async def _reading_aggregator(store, fallbacks):
    store.count(Table.EVENTS)
    return AggregationOutcome.ok(Metric(label="Total Transactions", value="0"))


async def _broken_aggregator(store, fallbacks):
    raise KeyError("programming error")


class TestRunAggregator:
    def test_ok_passes_through(self, mock_store, fallbacks):
        outcome = run(
            run_aggregator(
                MetricKey.TOTAL_TRANSACTIONS, _ok_aggregator, mock_store, fallbacks, ErrorPolicy.PROPAGATE
            )
        )
        assert outcome.is_ok
        assert outcome.value.value == "3"

    def test_storage_error_with_fallback_policy(self, mock_store, fallbacks):
        mock_store.fail(Table.EVENTS)
        outcome = run(
            run_aggregator(
                MetricKey.TOTAL_TRANSACTIONS,
                _reading_aggregator,
                mock_store,
                fallbacks,
                ErrorPolicy.FALLBACK,
            )
        )
        assert outcome.status == OutcomeStatus.DEGRADED
        assert outcome.reason.startswith("backend_error")
        assert outcome.value == fallbacks.default_for(MetricKey.TOTAL_TRANSACTIONS)

    def test_storage_error_with_propagate_policy(self, mock_store, fallbacks):
        mock_store.fail(Table.EVENTS)
        outcome = run(
            run_aggregator(
                MetricKey.TOTAL_TRANSACTIONS,
                _reading_aggregator,
                mock_store,
                fallbacks,
                ErrorPolicy.PROPAGATE,
            )
        )
        assert outcome.is_failed
        assert outcome.value is None
        assert "Simulated backend failure" in outcome.reason

    def test_other_exceptions_escape(self, mock_store, fallbacks):
        with pytest.raises(KeyError):
            run(
                run_aggregator(
                    MetricKey.TOTAL_TRANSACTIONS,
                    _broken_aggregator,
                    mock_store,
                    fallbacks,
                    ErrorPolicy.FALLBACK,
                )
            )

    def test_metric_bound_in_log_context(self, mock_store, fallbacks):
        seen = {}

        async def _context_aggregator(store, fallbacks):
            seen.update(structlog.contextvars.get_contextvars())
            return AggregationOutcome.ok(Metric(label="Total Transactions", value="0"))

        run(
            run_aggregator(
                MetricKey.TOTAL_TRANSACTIONS,
                _context_aggregator,
                mock_store,
                fallbacks,
                ErrorPolicy.PROPAGATE,
            )
        )

        assert seen["metric"] == "total_transactions"
        assert "metric" not in structlog.contextvars.get_contextvars()

    def test_overall_rate_paths_agree_after_reference_override(self, tmp_path, mock_store):
        path = tmp_path / "fallbacks.json"
        path.write_text(json.dumps({"reference_received": 30000}))
        table = load_fallbacks(path)
        fn = kpis.overall_completion_rate

        zero_counts = run(
            run_aggregator(MetricKey.OVERALL_COMPLETION_RATE, fn, mock_store, table, ErrorPolicy.FALLBACK)
        )
        mock_store.fail(Table.EVENTS)
        backend_error = run(
            run_aggregator(MetricKey.OVERALL_COMPLETION_RATE, fn, mock_store, table, ErrorPolicy.FALLBACK)
        )

        assert zero_counts.reason == "zero_counts"
        assert backend_error.reason.startswith("backend_error")
        assert zero_counts.value.value == backend_error.value.value == "42.9%"
