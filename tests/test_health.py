from app.whtransfers.core.deps import get_ecommerce_client, get_erp_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_health_echoes_trace_header(client):
    response = client.get("/health", headers={"X-Trace-ID": "trace-123"})
    assert response.json()["trace_id"] == "trace-123"
    assert response.headers["X-Trace-ID"] == "trace-123"


def test_malformed_trace_header_is_replaced(client):
    response = client.get("/health", headers={"X-Trace-ID": "x" * 65})
    trace_id = response.headers["X-Trace-ID"]
    assert trace_id != "x" * 65
    assert len(trace_id) == 36
    assert response.json()["trace_id"] == trace_id


def test_ready_checks_database(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_integrations_health_reports_both_systems(client):
    payload = client.get("/integrations/health").json()
    assert payload["erp"] == {"status": "ok", "server_version": "17.0"}
    assert payload["ecommerce"] == {"status": "ok", "shop": "Test Shop"}


def test_integrations_health_not_configured(client):
    client.app.dependency_overrides[get_erp_client] = lambda: None
    client.app.dependency_overrides[get_ecommerce_client] = lambda: None

    payload = client.get("/integrations/health").json()

    assert payload["erp"]["status"] == "not_configured"
    assert payload["ecommerce"]["status"] == "not_configured"


def test_integrations_health_reports_unreachable_erp(client, fake_odoo):
    fake_odoo.unreachable = True
    payload = client.get("/integrations/health").json()
    assert payload["erp"]["status"] == "error"
    assert payload["ecommerce"]["status"] == "ok"


def test_metrics_endpoint_exposes_saga_counters(client):
    client.get("/health")
    response = client.get("/ops/metrics")
    assert response.status_code == 200
    body = response.text
    assert "http_requests_total" in body
    assert "transfer_replay_total" in body
    assert response.headers["Cache-Control"] == "no-store"
