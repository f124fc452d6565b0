from conftest import API


def test_health_reports_each_dependency(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["checks"]["db"] == "ok"
    assert body["checks"]["uploads"] == "ok"
    assert body["checks"]["chain"] == "disabled"
    # Redis is unreachable in tests
    assert "error" in body["checks"]["redis"]
    assert body["status"] == "degraded"


def test_live_and_ready(client):
    assert client.get("/live").json() == {"status": "alive"}
    r = client.get("/ready")
    assert r.status_code == 200
    assert r.json() == {"status": "ready", "required": ["db"]}


def test_api_info_and_unknown_route(client):
    info = client.get(API).json()
    assert info["success"] is True
    assert info["data"]["endpoints"]["transactions"] == f"{API}/transactions"

    r = client.get(f"{API}/nowhere")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": f"Route GET {API}/nowhere not found"}


def test_chain_routes_without_rpc(client):
    r = client.get(f"{API}/chain/info")
    assert r.status_code == 503
    assert r.json()["message"] == "Chain access is not configured"
