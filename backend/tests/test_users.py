from conftest import API


def test_public_profile_and_unknown_user(client, register):
    acc = register(bio="I sell weather data")
    r = client.get(f"{API}/users/{acc['user']['id']}")
    assert r.status_code == 200
    assert r.json()["data"]["bio"] == "I sell weather data"
    assert client.get(f"{API}/users/00000000-0000-0000-0000-000000000000").status_code == 404


def test_update_profile(client, register):
    acc, other = register(), register()
    r = client.put(f"{API}/users/profile", json={"bio": "new bio", "username": "renamed_user"}, headers=acc["headers"])
    assert r.status_code == 200
    assert r.json()["data"]["username"] == "renamed_user"
    assert r.json()["data"]["bio"] == "new bio"

    r = client.put(f"{API}/users/profile", json={"username": other["user"]["username"]}, headers=acc["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "Username already exists"

    r = client.put(f"{API}/users/profile", json={}, headers=acc["headers"])
    assert r.json()["message"] == "No valid updates provided"


def test_stats(client, register, upload_dataset):
    seller, buyer = register(), register()
    ds = upload_dataset(seller["headers"])
    client.get(f"{API}/datasets/{ds['id']}", headers=buyer["headers"])
    client.post(
        f"{API}/transactions",
        json={"datasetId": ds["id"], "amount": 0.5, "blockchainTxHash": "0x" + "11" * 32},
        headers=buyer["headers"],
    )

    stats = client.get(f"{API}/users/stats", headers=seller["headers"]).json()["data"]
    assert stats["datasets"] == {"totalListings": 1, "totalDownloads": 1, "totalViews": 1, "averageRating": 0.0}
    assert stats["transactions"]["totalSales"] == 1
    assert stats["transactions"]["totalEarned"] == 0.5

    stats = client.get(f"{API}/users/stats", headers=buyer["headers"]).json()["data"]
    assert stats["transactions"]["totalPurchases"] == 1
    assert stats["transactions"]["totalSpent"] == 0.5


def test_admin_user_listing(client, register, make_admin):
    plain = register()
    admin = make_admin()
    assert client.get(f"{API}/users", headers=plain["headers"]).status_code == 403

    r = client.get(f"{API}/users", params={"sort": "username", "order": "asc"}, headers=admin["headers"])
    assert r.status_code == 200
    body = r.json()["data"]
    assert body["pagination"]["total"] == 2
    names = [u["username"] for u in body["data"]]
    assert names == sorted(names)


def test_delete_account_removes_listings(client, register, upload_dataset):
    seller = register()
    ds = upload_dataset(seller["headers"])
    r = client.delete(f"{API}/users/account", headers=seller["headers"])
    assert r.json() == {"success": True, "message": "Account deleted successfully", "data": None}
    assert client.get(f"{API}/datasets/{ds['id']}").status_code == 404


def test_update_profile_null_identity_fields_are_ignored(client, register):
    acc = register()
    email = acc["user"]["email"]
    for body in ({"email": None}, {"username": None}, {"email": None, "username": None}):
        r = client.put(f"{API}/users/profile", json=body, headers=acc["headers"])
        assert r.status_code == 400
        assert r.json()["message"] == "No valid updates provided"

    r = client.put(f"{API}/users/profile", json={"email": None, "bio": "kept"}, headers=acc["headers"])
    assert r.status_code == 200
    assert r.json()["data"]["bio"] == "kept"
    assert client.get(f"{API}/auth/me", headers=acc["headers"]).json()["data"]["email"] == email
