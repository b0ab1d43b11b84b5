import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.whtransfers.core.config import settings
from app.whtransfers.core.context import bind_trace_id, unbind_trace_id
from app.whtransfers.core.logging import log_json
from app.whtransfers.middleware.observability import build_request_log_payload


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/transfers",
        "headers": [(b"x-user-id", b"ana")],
        "route": SimpleNamespace(path="/transfers"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.error_code = "INSUFFICIENT_STOCK"
    response = Response(status_code=409)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        db_time_ms=4.5678,
    )

    assert payload["event"] == "http_request"
    assert payload["trace_id"] == "trace-1"
    assert payload["owner"] == "ana"
    assert payload["route"] == "/transfers"
    assert payload["status_code"] == 409
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57
    assert payload["error_code"] == "INSUFFICIENT_STOCK"


def test_payload_without_response_reports_500():
    request = Request({"type": "http", "method": "GET", "path": "/health", "headers": []})

    payload = build_request_log_payload(request=request, response=None, latency_ms=1, db_time_ms=None)

    assert payload["status_code"] == 500
    assert payload["route"] == "/health"
    assert payload["db_time_ms"] is None


def test_transfer_log_entries_are_emitted_as_json(client, stocked, caplog):
    with caplog.at_level(logging.INFO, logger="app.whtransfers.services.transfer_log"):
        client.post(
            "/transfers",
            json={"origin_id": "WH/Existencias", "dest_id": "TIENDA/Existencias", "lines": [{"code": "X", "qty": 1}]},
            headers={"X-Trace-ID": "trace-log"},
        )

    events = [json.loads(record.getMessage()) for record in caplog.records if record.name.endswith("transfer_log")]
    created = next(event for event in events if event["event"] == "transfer_created")
    assert created["source"] == "api"
    assert created["trace_id"] == "trace-log"


def test_log_json_tags_service_and_current_trace_id(caplog):
    logger = logging.getLogger("app.whtransfers.tests")
    token = bind_trace_id("trace-ctx")
    try:
        with caplog.at_level(logging.INFO, logger=logger.name):
            log_json(logger, {"event": "stock_checked"})
            log_json(logger, {"event": "explicit", "trace_id": "given"}, level=logging.WARNING)
    finally:
        unbind_trace_id(token)

    first, second = (json.loads(record.getMessage()) for record in caplog.records)
    assert first == {"service": settings.APP_NAME, "event": "stock_checked", "trace_id": "trace-ctx"}
    assert second["trace_id"] == "given"
    assert caplog.records[1].levelno == logging.WARNING
