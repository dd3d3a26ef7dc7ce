"""
Health, readiness and metrics endpoints.
"""
import pytest

from ngoinfo.core.database import get_engine, usage_logs
from ngoinfo.core.metrics import METRICS, http_requests_total, normalize_path


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_ok(client):
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_reports_missing_tables(client):
    usage_logs.drop(get_engine())

    response = client.get("/readyz")

    assert response.status_code == 503
    assert "usage_logs" in response.json()["detail"]


def test_health_summary(client):
    body = client.get("/api/health").json()

    assert body["ok"] is True
    assert body["env"] == "test"
    assert body["billing_enabled"] is True
    assert "USE_MSW" in body["flags"]
    assert "TELEMETRY_ENABLED" in body["flags"]
    assert body["computed_at"]


def test_health_summary_does_not_leak_secrets(client):
    text = client.get("/api/health").text
    assert "sk_test_ngoinfo" not in text
    assert "whsec_test_ngoinfo" not in text


def test_request_id_is_generated(client):
    response = client.get("/healthz")
    assert response.headers.get("x-request-id")


def test_request_id_is_echoed(client):
    response = client.get("/healthz", headers={"x-request-id": "req-123"})
    assert response.headers["x-request-id"] == "req-123"


def test_metrics_counts_requests(client):
    client.get("/api/plans")
    client.get("/api/plans")

    assert http_requests_total.value({"method": "GET", "path": "/api/plans", "status": "200"}) == 2.0

    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "# TYPE http_requests_total counter" in response.text
    assert 'path="/api/plans"' in response.text


def test_metrics_reset():
    http_requests_total.inc(labels={"method": "GET", "path": "/x", "status": "200"})
    METRICS.reset()
    assert http_requests_total.value({"method": "GET", "path": "/x", "status": "200"}) == 0.0


@pytest.mark.parametrize("path,expected", [
    ("/api/opportunities/opp-123", "/api/opportunities/:id"),
    ("/api/proposals/export/prop_a1b2c3", "/api/proposals/export/:id"),
    ("/api/profile/steps/2/validate", "/api/profile/steps/:id/validate"),
    ("/api/plans/", "/api/plans"),
    ("/", "/"),
])
def test_normalize_path(path, expected):
    assert normalize_path(path) == expected
