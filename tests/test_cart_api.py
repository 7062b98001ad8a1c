from fastapi.testclient import TestClient

from cart_service.main import create_app

CART_URL = "/api/v1/cart"
SESSION = {"X-Session-ID": "sess-1"}
USER = {"Authorization": "Bearer user-1"}


def _add(client, product_id="p1", quantity=1, headers=SESSION):
    return client.post(f"{CART_URL}/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)


def test_health(test_client):
    res = test_client.get("/health")

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "healthy"
    assert body["checks"] == {"database": "ok", "redis": "ok", "product_service": "ok"}


def test_health_reports_product_service_down_but_stays_up(test_client, product_client):
    product_client.unavailable = True

    res = test_client.get("/health")

    assert res.status_code == 200
    assert res.json()["checks"]["product_service"] == "unavailable"


def test_health_reports_redis_down_but_stays_up(db, broken_cache, product_client):
    app = create_app(cart_cache=broken_cache, product_client=product_client)
    with TestClient(app) as client:
        res = client.get("/health")

    assert res.status_code == 200
    assert res.json()["checks"]["redis"] == "unavailable"


def test_get_without_identity(test_client):
    res = test_client.get(CART_URL)

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert res.json()["error"] == "VALIDATION_ERROR"


def test_get_empty_cart(test_client):
    res = test_client.get(CART_URL, headers=SESSION)

    assert res.status_code == 200
    assert res.json()["success"] is True
    assert res.json()["data"] is None


def test_add_item_and_read_back(test_client):
    res = _add(test_client, "p1", 2)

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["session_id"] == "sess-1"
    assert data["user_id"] is None
    assert data["total_items"] == 2
    assert data["items"][0]["product_id"] == "p1"

    res = test_client.get(CART_URL, headers=SESSION)
    assert res.json()["data"]["id"] == data["id"]


def test_add_sums_quantities(test_client):
    _add(test_client, "p1", 2)
    _add(test_client, "p2", 1)
    res = _add(test_client, "p1", 3)

    data = res.json()["data"]
    assert data["total_items"] == 6
    assert data["unique_item_count"] == 2
    assert float(data["total_amount"]) == 7000


def test_add_item_for_user(test_client):
    res = _add(test_client, "p1", 1, headers=USER)

    assert res.status_code == 201
    assert res.json()["data"]["user_id"] == "user-1"


def test_add_item_rejects_bad_payload(test_client):
    res = test_client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 0}, headers=SESSION)

    assert res.status_code == 422


def test_add_unknown_product(test_client):
    res = _add(test_client, "ghost")

    assert res.status_code == 404
    assert res.json()["error"] == "PRODUCT_NOT_FOUND"


def test_add_more_than_stock(test_client):
    res = _add(test_client, "last-one", 5)

    assert res.status_code == 409
    assert res.json()["error"] == "INSUFFICIENT_STOCK"


def test_add_with_product_service_down(test_client, product_client):
    product_client.unavailable = True

    res = _add(test_client, "p1")

    assert res.status_code == 502
    assert res.json()["error"] == "EXTERNAL_SERVICE_ERROR"


def test_update_item(test_client):
    _add(test_client, "p1", 1)

    res = test_client.put(f"{CART_URL}/items/p1", json={"quantity": 5}, headers=SESSION)

    assert res.status_code == 200
    assert res.json()["data"]["total_items"] == 5


def test_update_missing_item(test_client):
    _add(test_client, "p1", 1)

    res = test_client.put(f"{CART_URL}/items/p9", json={"quantity": 5}, headers=SESSION)

    assert res.status_code == 409
    assert res.json()["error"] == "DOMAIN_RULE_VIOLATION"


def test_update_without_cart(test_client):
    res = test_client.put(f"{CART_URL}/items/p1", json={"quantity": 5}, headers=SESSION)

    assert res.status_code == 404
    assert res.json()["error"] == "CART_NOT_FOUND"


def test_remove_item(test_client):
    _add(test_client, "p1", 1)
    _add(test_client, "p2", 1)

    res = test_client.delete(f"{CART_URL}/items/p1", headers=SESSION)

    assert res.status_code == 200
    assert [i["product_id"] for i in res.json()["data"]["items"]] == ["p2"]


def test_remove_last_item_empties_cart(test_client):
    _add(test_client, "p1", 1)

    res = test_client.delete(f"{CART_URL}/items/p1", headers=SESSION)

    assert res.status_code == 200
    assert res.json()["data"] is None
    assert test_client.get(CART_URL, headers=SESSION).json()["data"] is None


def test_clear_cart(test_client):
    _add(test_client, "p1", 3)

    res = test_client.delete(CART_URL, headers=SESSION)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["is_empty"] is True
    assert data["items"] == []


def test_delete_cart(test_client):
    cart_id = _add(test_client, "p1", 1).json()["data"]["id"]

    res = test_client.delete(f"{CART_URL}/delete", headers=SESSION)

    assert res.status_code == 200
    assert res.json()["data"] == {"deleted_cart_id": cart_id}

    res = test_client.delete(f"{CART_URL}/delete", headers=SESSION)
    assert res.status_code == 200
    assert res.json()["data"] == {"deleted_cart_id": None}


def test_transfer_requires_token(test_client):
    res = test_client.post(f"{CART_URL}/transfer", headers=SESSION)

    assert res.status_code == 401
    assert res.json()["error"] == "MISSING_TOKEN"


def test_transfer_requires_session(test_client):
    res = test_client.post(f"{CART_URL}/transfer", headers=USER)

    assert res.status_code == 400


def test_transfer_merges_carts(test_client):
    _add(test_client, "p1", 2, headers=USER)
    _add(test_client, "p1", 3)
    _add(test_client, "p3", 2)

    res = test_client.post(f"{CART_URL}/transfer", headers={**USER, **SESSION})

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["user_id"] == "user-1"
    assert data["total_items"] == 7
    assert test_client.get(CART_URL, headers=SESSION).json()["data"] is None


def test_cleanup_session_from_header(test_client):
    cart_id = _add(test_client, "p1", 1).json()["data"]["id"]

    res = test_client.post(f"{CART_URL}/cleanup-session", headers=SESSION)

    assert res.status_code == 200
    assert res.json()["data"] == {"deleted_cart_id": cart_id}


def test_cleanup_session_from_body(test_client):
    cart_id = _add(test_client, "p1", 1).json()["data"]["id"]

    res = test_client.post(f"{CART_URL}/cleanup-session", json={"session_id": "sess-1"})

    assert res.json()["data"] == {"deleted_cart_id": cart_id}


def test_cleanup_session_without_id(test_client):
    res = test_client.post(f"{CART_URL}/cleanup-session")

    assert res.status_code == 400


def test_session_status(test_client):
    _add(test_client, "p1", 1)

    res = test_client.get(f"{CART_URL}/session/status", headers=SESSION)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["session_id"] == "sess-1"
    assert data["active"] is True
    assert data["remaining_ttl"] == 1800


def test_session_status_requires_header(test_client):
    assert test_client.get(f"{CART_URL}/session/status").status_code == 400
