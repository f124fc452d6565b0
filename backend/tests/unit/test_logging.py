import json
import logging

import structlog

from datamarket import __version__
from datamarket.telemetry.logging import _add_service, _redact, json_formatter


def _record(name, level, msg, *args, **extra):
    record = logging.LogRecord(name, level, __file__, 1, msg, args, None)
    record.__dict__.update(extra)
    return record


def test_redact_drops_credentials_and_client_details():
    event = {"event": "login", "password": "hunter2", "authorization": "Bearer x", "client_ip": "1.2.3.4", "status": 200}
    assert _redact(None, "info", event) == {"event": "login", "status": 200}


def test_add_service_keeps_explicit_values():
    assert _add_service(None, "info", {"event": "x"}) == {"event": "x", "service": "datamarket", "version": __version__}
    assert _add_service(None, "info", {"service": "worker"})["service"] == "worker"


def test_plain_module_logs_render_as_json_with_request_context():
    structlog.contextvars.bind_contextvars(trace_id="trace-123")
    try:
        line = json_formatter().format(
            _record("datamarket.routers.auth", logging.WARNING, "login failed for %s", "alice", token="secret", attempt=3)
        )
    finally:
        structlog.contextvars.clear_contextvars()

    out = json.loads(line)
    assert out["event"] == "login failed for alice"
    assert out["level"] == "warning"
    assert out["logger"] == "datamarket.routers.auth"
    assert out["trace_id"] == "trace-123"
    assert out["service"] == "datamarket"
    assert out["attempt"] == 3
    assert "token" not in out
    assert "ts" in out
