from conftest import API


def test_register_returns_user_and_token(client, register):
    acc = register(email="Mixed.Case@Example.com", walletAddress="0x" + "AB" * 20)
    user = acc["user"]
    assert user["email"] == "mixed.case@example.com"
    assert user["walletAddress"] == "0x" + "ab" * 20
    assert user["role"] == "user"
    assert user["isVerified"] is True
    assert "passwordHash" not in user and "password" not in user
    assert acc["token"].count(".") == 2


def test_register_validation_lists_every_field(client):
    r = client.post(
        f"{API}/auth/register",
        json={"email": "nope", "username": "a!", "walletAddress": "0x12", "password": "short"},
    )
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {e.split(":", 1)[0] for e in body["errors"]}
    assert {"email", "username", "walletAddress", "password"} <= fields


def test_register_duplicates(client, register):
    acc = register()
    u = acc["user"]
    r = client.post(
        f"{API}/auth/register",
        json={
            "email": u["email"].upper(),
            "username": "someone_else",
            "walletAddress": "0x" + "12" * 20,
            "password": "correct-horse-battery",
        },
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Email already exists"

    r = client.post(
        f"{API}/auth/register",
        json={
            "email": "fresh@example.com",
            "username": "another_one",
            "walletAddress": u["walletAddress"],
            "password": "correct-horse-battery",
        },
    )
    assert r.json()["message"] == "Wallet address already exists"

    r = client.post(
        f"{API}/auth/register",
        json={
            "email": "other@example.com",
            "username": u["username"],
            "walletAddress": "0x" + "34" * 20,
            "password": "correct-horse-battery",
        },
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Username already exists"


def test_login_by_email_username_and_wallet(client, register):
    acc = register()
    u = acc["user"]
    for body in (
        {"identifier": u["email"].upper()},
        {"identifier": u["username"]},
        {"walletAddress": u["walletAddress"]},
    ):
        r = client.post(f"{API}/auth/login", json={**body, "password": acc["password"]})
        assert r.status_code == 200, r.text
        assert r.json()["data"]["user"]["id"] == u["id"]


def test_login_failures_are_indistinguishable(client, register):
    acc = register()
    bad_pw = client.post(f"{API}/auth/login", json={"identifier": acc["user"]["username"], "password": "wrong-password"})
    unknown = client.post(f"{API}/auth/login", json={"identifier": "ghost", "password": "wrong-password"})
    assert bad_pw.status_code == unknown.status_code == 401
    assert bad_pw.json()["message"] == unknown.json()["message"] == "Invalid credentials"


def test_login_requires_an_identity(client):
    r = client.post(f"{API}/auth/login", json={"password": "whatever"})
    assert r.status_code == 400
    assert "Please provide email, username, or wallet address" in " ".join(r.json()["errors"])


def test_me_refresh_and_logout(client, register):
    acc = register()
    me = client.get(f"{API}/auth/me", headers=acc["headers"])
    assert me.status_code == 200
    profile = me.json()["data"]
    assert profile["totalSales"] == 0
    assert profile["totalEarnings"] == 0
    assert profile["lastLoginAt"] is None

    r = client.post(f"{API}/auth/refresh", headers=acc["headers"])
    assert r.status_code == 200
    assert r.json()["data"]["token"]

    r = client.post(f"{API}/auth/logout", headers=acc["headers"])
    assert r.json() == {"success": True, "message": "Logout successful", "data": None}


def test_token_errors(client):
    r = client.get(f"{API}/auth/me")
    assert r.status_code == 401
    assert r.json()["message"] == "Access token is required"

    r = client.get(f"{API}/auth/me", headers={"Authorization": "Token abc"})
    assert r.json()["message"] == "Invalid token format. Use: Bearer <token>"

    r = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid or expired token"


def test_token_of_deleted_user(client, register):
    acc = register()
    assert client.delete(f"{API}/users/account", headers=acc["headers"]).status_code == 200
    r = client.get(f"{API}/auth/me", headers=acc["headers"])
    assert r.status_code == 401
    assert r.json()["message"] == "User not found"


def test_unverified_user_is_limited(client, register, db):
    import uuid

    from datamarket.models import User

    acc = register()
    user = db.get(User, uuid.UUID(acc["user"]["id"]))
    user.is_verified = False
    db.commit()

    assert client.get(f"{API}/auth/me", headers=acc["headers"]).status_code == 200
    r = client.get(f"{API}/users/stats", headers=acc["headers"])
    assert r.status_code == 403
    assert r.json()["message"] == "Please verify your email address"
