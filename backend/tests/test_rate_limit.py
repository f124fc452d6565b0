import importlib
import inspect

import pytest

from conftest import API
# The package re-exports the rate_limit() function, which shadows the submodule name.
rl = importlib.import_module("datamarket.middleware.rate_limit")


@pytest.fixture
def counters(monkeypatch):
    """In-memory stand-in for the Redis window counters."""
    store: dict[str, int] = {}

    def _hit(key: str, window_seconds: int) -> tuple[int, int]:
        store[key] = store.get(key, 0) + 1
        return store[key], window_seconds

    monkeypatch.setattr(rl, "_hit", _hit)
    return store


def test_login_rate_limit_per_endpoint(client, counters):
    statuses = [client.post(f"{API}/auth/login", json={}).status_code for _ in range(10)]
    assert statuses == [400] * 10
    r = client.post(f"{API}/auth/login", json={})
    assert r.status_code == 429
    assert r.headers.get("Retry-After") == "3600"
    assert r.json()["message"] == "Too many login attempts, please try again later."


def test_register_rate_limit_per_endpoint(client, counters):
    for _ in range(5):
        assert client.post(f"{API}/auth/register", json={}).status_code == 400
    r = client.post(f"{API}/auth/register", json={})
    assert r.status_code == 429
    assert r.headers.get("Retry-After") is not None


def test_global_limit_skips_authenticated_and_health(client, counters, register):
    got_429 = False
    for _ in range(120):
        r = client.get(f"{API}/datasets")
        if r.status_code == 429:
            assert r.headers.get("Retry-After") == "60"
            assert r.json()["success"] is False
            got_429 = True
            break
    assert got_429, "expected 429 for the per-IP limit on anonymous requests"

    assert client.get("/health").status_code == 200
    acc = register()
    assert client.get(f"{API}/datasets", headers=acc["headers"]).status_code == 200


def test_limiter_fails_open_without_redis(client):
    # the configured Redis is unreachable in tests
    for _ in range(3):
        assert client.post(f"{API}/auth/login", json={}).status_code == 400


def test_undecodable_token_does_not_bypass_global_limit(client, counters):
    forged = {"Authorization": "Bearer not-a-jwt"}
    statuses = [client.get(f"{API}/datasets", headers=forged).status_code for _ in range(120)]
    assert 429 in statuses
    assert any(key.startswith("rl:ip:") for key in counters)


def test_endpoint_limiter_is_sync_dependency():
    dep = rl.rate_limit("search", limit=3, window_seconds=60)
    assert not inspect.iscoroutinefunction(dep)
