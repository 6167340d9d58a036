"""
Integration tests for the engagement metrics API.

The event store dependency is overridden with a private in-memory DuckDB
store loaded with the sample dataset, so every request runs the real
aggregators against real SQL.

Endpoints tested:
- System: health
- Dashboard: full payload, degraded listing, 503 on failure
- Metrics: catalog, single metric, unknown metric
"""

import pytest
from fastapi.testclient import TestClient

from engagement.main import app
from engagement.models.enums import MetricKey, Table
from engagement.routers.dashboard import LOAD_FAILED_MESSAGE
from engagement.storage import get_event_store
from engagement.storage.duckdb_storage import DuckDBEventStore
from tests.conftest import MockStore


@pytest.fixture
def api_store(sample_offers, sample_customers, sample_events):
    store = DuckDBEventStore(db_path=":memory:")
    store.write_offers(sample_offers)
    store.write_customers(sample_customers)
    store.write_events(sample_events)
    app.dependency_overrides[get_event_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_event_store, None)
    store.close()


@pytest.fixture
def empty_store():
    store = MockStore()
    app.dependency_overrides[get_event_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_event_store, None)


# ============================================================================
# System Endpoints
# ============================================================================


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "version" in response.json()


def test_request_id_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_generated(client: TestClient):
    response = client.get("/health")
    assert response.headers.get("X-Request-ID")


# ============================================================================
# Dashboard Endpoint
# ============================================================================


def test_dashboard_success(client: TestClient, api_store):
    """GET /api/v1/dashboard returns every section computed from the store."""
    response = client.get("/api/v1/dashboard")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True

    data = body["data"]
    assert set(data) >= {"kpis", "trends", "demographics", "summaries", "degraded", "generated_at"}
    assert data["kpis"]["overall_completion_rate"] == {"label": "Overall Completion Rate", "value": "50%"}
    assert data["kpis"]["avg_days_to_complete"]["value"] == 1.5
    assert data["trends"]["weekly_total_transactions"]["labels"] == ["Week 1", "Week 2", "Week 3", "Week 4"]
    assert data["trends"]["weekly_total_transactions"]["datasets"][0]["data"] == [12.5, 20.0, 7.25, 0.0]
    assert data["demographics"]["income_vs_completion_rate"]["datasets"][0]["data"] == [100.0, 0.0, 100.0, 0.0]
    assert data["summaries"]["total_transactions"]["value"] == "4"
    assert data["summaries"]["seven_day_avg_spend"]["value"] == "$13.25"
    assert data["degraded"] == {}


def test_dashboard_empty_store_serves_defaults(client: TestClient, empty_store):
    response = client.get("/api/v1/dashboard")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["kpis"]["overall_completion_rate"]["value"] == "52.1%"
    assert data["degraded"][MetricKey.OVERALL_COMPLETION_RATE.value] == "zero_counts"
    assert data["demographics"]["gender_breakdown"]["labels"] == ["No Data"]


def test_dashboard_store_failure_returns_503(client: TestClient, empty_store):
    empty_store.fail(Table.EVENTS)

    response = client.get("/api/v1/dashboard")

    assert response.status_code == 503
    assert response.json() == {"success": False, "error": LOAD_FAILED_MESSAGE}


# ============================================================================
# Metrics Endpoints
# ============================================================================


def test_metrics_catalog(client: TestClient, api_store):
    response = client.get("/api/v1/metrics")

    assert response.status_code == 200
    entries = {entry["key"]: entry for entry in response.json()["data"]}
    assert set(entries) == {key.value for key in MetricKey}
    assert entries["total_transactions"]["error_policy"] == "propagate"
    assert entries["gender_breakdown"] == {
        "key": "gender_breakdown",
        "section": "demographics",
        "error_policy": "fallback",
    }


def test_single_metric(client: TestClient, api_store):
    response = client.get("/api/v1/metrics/bogo_completion")

    assert response.status_code == 200
    outcome = response.json()["data"]
    assert outcome["status"] == "ok"
    assert outcome["value"]["value"] == "50%"


def test_single_metric_degraded(client: TestClient, empty_store):
    response = client.get("/api/v1/metrics/channel_effectiveness")

    outcome = response.json()["data"]
    assert outcome["status"] == "degraded"
    assert outcome["reason"] == "no_data"
    assert outcome["value"]["labels"] == ["email", "mobile", "social", "web"]


def test_single_metric_failed(client: TestClient, empty_store):
    empty_store.fail(Table.EVENTS)

    response = client.get("/api/v1/metrics/total_transactions")

    assert response.status_code == 200
    outcome = response.json()["data"]
    assert outcome["status"] == "failed"
    assert outcome["value"] is None
    assert outcome["reason"].startswith("backend_error")


def test_unknown_metric(client: TestClient, api_store):
    response = client.get("/api/v1/metrics/not_a_metric")

    assert response.status_code == 404
    assert "not_a_metric" in response.json()["detail"]
