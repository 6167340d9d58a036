"""
Golden scenario tests for the engagement metrics engine.

Each scenario loads a small fixed dataset, runs the real aggregators and
checks the exact values the dashboard would display. They run against the
DuckDB store so the SQL filters, payload extraction and aggregation are
exercised together.
"""

import pytest

from engagement.engine.assembler import DashboardAssembler
from engagement.engine.calculations import INCOME_BRACKETS, WEEK_LABELS
from engagement.models.enums import MetricKey, OfferType
from tests.conftest import completed, make_customer, make_offer, received, run, transaction


@pytest.fixture
def assembler(duckdb_store, fallbacks):
    return DashboardAssembler(duckdb_store, fallbacks)


# ============================================================================
# Scenario A: Half of the received offers completed
# ============================================================================


def test_golden_overall_completion_half(duckdb_store, assembler):
    duckdb_store.write_offers([make_offer("o1", OfferType.DISCOUNT)])
    events = [received("o1", f"c{i}", i) for i in range(100)]
    events += [completed("o1", f"c{i}", 200 + i) for i in range(50)]
    duckdb_store.write_events(events)

    outcome = run(assembler.get_metric(MetricKey.OVERALL_COMPLETION_RATE))

    assert outcome.is_ok
    assert outcome.value.value == "50%"


# ============================================================================
# Scenario B: Nothing received yet
# ============================================================================


def test_golden_empty_log_uses_reference_rate(assembler):
    outcome = run(assembler.get_metric(MetricKey.OVERALL_COMPLETION_RATE))

    assert outcome.is_degraded
    assert outcome.reason == "zero_counts"
    assert outcome.value.value == "52.1%"


# ============================================================================
# Scenario C: Mixed transaction payload spellings in week one
# ============================================================================


def test_golden_weekly_spend_mixed_payloads(duckdb_store, assembler):
    duckdb_store.write_events(
        [
            transaction("amount': 10", "c1", 5),
            transaction("amount=20", "c2", 100),
            transaction("amount: unknown", "c3", 120),
        ]
    )

    avg = run(assembler.get_metric(MetricKey.WEEKLY_AVG_TRANSACTIONS))
    total = run(assembler.get_metric(MetricKey.WEEKLY_TOTAL_TRANSACTIONS))

    assert avg.value.labels == list(WEEK_LABELS)
    assert avg.value.datasets[0].data == [15.0, 0.0, 0.0, 0.0]
    assert total.value.datasets[0].data == [30.0, 0.0, 0.0, 0.0]


# ============================================================================
# Scenario D: One completing customer per income bracket
# ============================================================================


def test_golden_income_brackets_all_complete(duckdb_store, assembler):
    incomes = {"c1": "40000", "c2": "60000", "c3": "90000", "c4": "150000"}
    duckdb_store.write_customers([make_customer(cid, income) for cid, income in incomes.items()])
    duckdb_store.write_offers([make_offer("o1")])
    events = []
    for cid in incomes:
        events += [received("o1", cid, 0), completed("o1", cid, 30)]
    duckdb_store.write_events(events)

    outcome = run(assembler.get_metric(MetricKey.INCOME_VS_COMPLETION_RATE))

    assert outcome.is_ok
    assert outcome.value.labels == list(INCOME_BRACKETS)
    assert outcome.value.datasets[0].data == [100.0, 100.0, 100.0, 100.0]


# ============================================================================
# Scenario E: Customers known but never seen in the offer events
# ============================================================================


def test_golden_income_brackets_proportional_estimate(duckdb_store, assembler):
    duckdb_store.write_customers(
        [
            make_customer("c1", "40000"),
            make_customer("c2", "60000"),
            make_customer("c3", "90000"),
            make_customer("c4", "150000"),
        ]
    )
    events = [received("o1", f"other_{i}", 0) for i in range(20)]
    events += [completed("o1", f"other_{i}", 48) for i in range(10)]
    duckdb_store.write_events(events)

    outcome = run(assembler.get_metric(MetricKey.INCOME_VS_COMPLETION_RATE))

    # 5 received per bracket; completions 10 * 0.25 * (0.8 + uplift), rounded half up
    assert outcome.is_degraded
    assert outcome.reason == "proportional_estimate"
    assert outcome.value.datasets[0].data == [40.0, 40.0, 60.0, 60.0]


# ============================================================================
# Scenario F: Full dashboard over a realistic slice
# ============================================================================


def test_golden_full_dashboard(duckdb_store, assembler, sample_offers, sample_customers, sample_events):
    duckdb_store.write_offers(sample_offers)
    duckdb_store.write_customers(sample_customers)
    duckdb_store.write_events(sample_events)

    dashboard = run(assembler.get_all_metrics())

    assert dashboard.degraded == {}
    assert dashboard.kpis.overall_completion_rate.value == "50%"
    assert dashboard.kpis.users_with_completion.value == "40%"
    assert dashboard.kpis.avg_days_to_complete.value == 1.5
    assert dashboard.demographics.gender_breakdown.labels == ["F", "Unknown"]
    assert dashboard.demographics.channel_effectiveness.labels == ["web", "email", "mobile", "social"]
    assert dashboard.demographics.channel_effectiveness.datasets[0].data == [100.0, 50.0, 50.0, 0.0]
    assert dashboard.summaries.bogo_completion.value == "50%"
    assert dashboard.summaries.seven_day_avg_spend.value == "$13.25"
