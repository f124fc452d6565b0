from datamarket.config import Settings


def test_cors_parsing(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://a.com, http://b.com")
    s = Settings()
    assert s.cors_origins == ["http://a.com", "http://b.com"]


def test_cors_json_and_wildcard(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", '["http://x.io", "http://x.io"]')
    assert Settings().cors_origins == ["http://x.io"]
    monkeypatch.setenv("CORS_ORIGINS", "*")
    assert Settings().cors_origins == ["*"]


def test_cors_falls_back_to_single_origin(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "")
    monkeypatch.setenv("CORS_ORIGIN", "http://only.one")
    assert Settings().cors_origins == ["http://only.one"]


def test_redis_url_preferred_over_dsn(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://a:6379/1")
    monkeypatch.setenv("REDIS_DSN", "redis://b:6379/2")
    assert Settings().redis_dsn == "redis://a:6379/1"


def test_defaults_for_paths_and_readiness(monkeypatch):
    monkeypatch.delenv("UNVERIFIED_ALLOWED_PATHS", raising=False)
    monkeypatch.delenv("READINESS_REQUIRED", raising=False)
    s = Settings()
    assert s.unverified_allowed_paths == [f"{s.api_prefix}/auth/me"]
    assert s.readiness_required == ["db"]
    assert s.is_sqlite


def test_debug_dump_masks_secrets(monkeypatch):
    monkeypatch.setenv("CHAIN_RPC_URL", "https://rpc.example.org/key-abcdef")
    dump = Settings().debug_dump()
    assert "key-abcdef" not in str(dump["chain_rpc_url"])
    assert "jwt_secret" not in dump
