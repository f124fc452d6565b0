# backend/tests/conftest.py
import os
import secrets
import tempfile
from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

# Minimal env so Settings() builds when datamarket.main is imported
os.environ["POSTGRES_DSN"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="datamarket-uploads-")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test_secret"
# nothing listens here: cache and rate limits fail open
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"
os.environ.setdefault("CORS_ORIGINS", "http://localhost")

from datamarket.db.base import Base  # noqa: E402
from datamarket.deps import SessionLocal, engine  # noqa: E402
from datamarket.main import app  # noqa: E402

API = "/api/v1"


@pytest.fixture(autouse=True)
def _schema() -> Iterator[None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def client() -> TestClient:
    return TestClient(app)


def _wallet() -> str:
    return "0x" + secrets.token_hex(20)


@pytest.fixture
def register(client: TestClient) -> Callable[..., dict]:
    """Factory: register a fresh user and return {"user", "token", "headers", "password"}."""

    def _create(**overrides) -> dict:
        suffix = secrets.token_hex(4)
        payload = {
            "email": f"user_{suffix}@example.com",
            "username": f"user_{suffix}",
            "walletAddress": _wallet(),
            "password": "correct-horse-battery",
        }
        payload.update(overrides)
        r = client.post(f"{API}/auth/register", json=payload)
        assert r.status_code == 201, r.text
        data = r.json()["data"]
        return {
            "user": data["user"],
            "token": data["token"],
            "headers": {"Authorization": f"Bearer {data['token']}"},
            "password": payload["password"],
        }

    return _create


@pytest.fixture
def make_admin(register, db) -> Callable[[], dict]:
    """Registered user promoted to admin directly in the database."""
    import uuid

    from datamarket.models import User

    def _create() -> dict:
        account = register()
        user = db.get(User, uuid.UUID(account["user"]["id"]))
        user.role = "admin"
        db.commit()
        return account

    return _create


@pytest.fixture
def upload_dataset(client: TestClient) -> Callable[..., dict]:
    """Factory: create a listing through the multipart endpoint and return its JSON."""

    def _create(headers: dict, **fields) -> dict:
        form = {
            "title": "Hospital admissions 2023",
            "description": "Anonymised hospital admissions with diagnosis codes.",
            "category": "Healthcare",
            "price": "0.5",
            "tags": "health,hospital",
        }
        form.update({k: str(v) for k, v in fields.items()})
        files = {"datasetFile": ("admissions.csv", b"id,code\n1,A01\n2,B02\n", "text/csv")}
        r = client.post(f"{API}/datasets", data=form, files=files, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()["data"]

    return _create
