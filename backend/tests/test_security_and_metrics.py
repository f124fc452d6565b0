from conftest import API


def test_security_headers_present(client):
    r = client.get("/health")
    hdrs = r.headers
    assert hdrs.get("X-Content-Type-Options") == "nosniff"
    assert hdrs.get("X-Frame-Options") == "DENY"
    assert hdrs.get("Referrer-Policy") == "no-referrer"
    assert "Content-Security-Policy" in hdrs
    assert hdrs.get("Cache-Control") == "no-store"
    assert len(hdrs.get("X-Trace-Id", "")) == 32
    assert "Strict-Transport-Security" not in hdrs


def test_hsts_behind_tls_proxy(client):
    r = client.get("/live", headers={"X-Forwarded-Proto": "https"})
    assert r.headers.get("Strict-Transport-Security", "").startswith("max-age=")


def test_cors_preflight(client):
    r = client.options(
        f"{API}/datasets",
        headers={"Origin": "http://localhost", "Access-Control-Request-Method": "GET"},
    )
    assert r.headers.get("access-control-allow-origin") == "http://localhost"


def test_prometheus_metrics_endpoint_and_increment(client, register, upload_dataset):
    client.get("/health")
    seller, buyer = register(), register()
    ds = upload_dataset(seller["headers"])
    client.post(
        f"{API}/transactions",
        json={"datasetId": ds["id"], "amount": 0.5, "blockchainTxHash": "0x" + "22" * 32},
        headers=buyer["headers"],
    )

    m = client.get("/metrics")
    assert m.status_code == 200
    assert m.headers["content-type"].startswith("text/plain")
    body = m.text
    assert "# TYPE api_requests_total counter" in body
    assert 'endpoint="/health"' in body
    assert "api_request_duration_seconds" in body
    assert 'purchases_created_total{status="completed"}' in body
    assert "users_total 2.0" in body
    assert "active_datasets_total 1.0" in body
    assert 'transactions_total{status="completed"} 1.0' in body
