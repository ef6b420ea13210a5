from datetime import timedelta
from decimal import Decimal

from tests.conftest import make_token


async def _place_order(client, headers, seed, lines=()):
    response = await client.post(
        "/api/orders",
        json={
            "type": "PICKUP",
            "payment_method": "CASH",
            "lines": [{"food_id": seed[name], "quantity": qty} for name, qty in lines],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


# =============================================================================
# AUTHENTICATION
# =============================================================================

async def test_root_and_health(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "healthy"


async def test_missing_token_is_401(client):
    response = await client.get("/api/orders")
    assert response.status_code == 401


async def test_expired_token_is_401(client, seed):
    token = make_token(seed["admin"], expires_in=timedelta(minutes=-5))
    response = await client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


async def test_unknown_user_is_401(client):
    token = make_token(9999)
    response = await client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# =============================================================================
# ORDERS
# =============================================================================

async def test_order_with_lines_and_cancellation(client, auth, seed):
    order = await _place_order(client, auth("alice"), seed, [("curry", 2), ("noodles", 3)])
    assert Decimal(order["sum_price"]) == Decimal("68.25")
    assert len(order["order_lists"]) == 2

    line_id = order["order_lists"][1]["id"]
    response = await client.put(
        f"/api/order_lists/{line_id}", json={"status": "CANCELLED"}, headers=auth("alice")
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CANCELLED"

    response = await client.get(f"/api/orders/{order['id']}", headers=auth("alice"))
    assert Decimal(response.json()["data"]["sum_price"]) == Decimal("21.00")


async def test_add_order_list(client, auth, seed):
    order = await _place_order(client, auth("alice"), seed)

    response = await client.post(
        "/api/order_lists",
        json={"order_id": order["id"], "food_id": seed["curry"], "quantity": 2},
        headers=auth("alice"),
    )

    assert response.status_code == 201
    line = response.json()["data"]
    assert line["food_id"] == seed["curry"]
    assert Decimal(line["price"]) == Decimal("10.50")

    response = await client.get(f"/api/order_lists/{line['id']}", headers=auth("bob"))
    assert response.status_code == 403


async def test_list_by_user_is_403_not_500(client, auth, seed):
    await _place_order(client, auth("bob"), seed)

    response = await client.get(f"/api/users/{seed['bob']}/orders", headers=auth("alice"))
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"

    response = await client.get(f"/api/users/{seed['bob']}/orders", headers=auth("admin"))
    assert response.status_code == 200
    assert response.json()["total"] == 1

    response = await client.get(f"/api/users/{seed['alice']}/orders", headers=auth("alice"))
    assert response.status_code == 200
    assert response.json()["data"] == []


async def test_list_orders_for_unknown_user_is_404(client, auth):
    response = await client.get("/api/users/9999/orders", headers=auth("staff"))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


async def test_status_flow_over_http(client, auth, seed):
    order = await _place_order(client, auth("alice"), seed)
    url = f"/api/orders/{order['id']}"

    response = await client.put(url, json={"status": "IN_PROGRESS"}, headers=auth("alice"))
    assert response.status_code == 403

    response = await client.put(url, json={"status": "IN_PROGRESS"}, headers=auth("staff"))
    assert response.status_code == 200
    assert response.json()["data"]["accept"] is not None

    response = await client.put(url, json={"status": "COMPLETED"}, headers=auth("staff"))
    assert response.status_code == 200

    response = await client.put(url, json={"status": "CANCELLED"}, headers=auth("admin"))
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_transition"


async def test_client_cannot_send_accept(client, auth, seed):
    order = await _place_order(client, auth("alice"), seed)

    response = await client.put(
        f"/api/orders/{order['id']}",
        json={"status": "IN_PROGRESS", "accept": "2025-01-01T00:00:00"},
        headers=auth("staff"),
    )

    assert response.status_code == 422
    response = await client.get(f"/api/orders/{order['id']}", headers=auth("staff"))
    assert response.json()["data"]["status"] == "PENDING"
    assert response.json()["data"]["accept"] is None


async def test_client_cannot_send_sum_price(client, auth):
    response = await client.post(
        "/api/orders",
        json={"type": "PICKUP", "payment_method": "CASH", "sum_price": "0.01"},
        headers=auth("alice"),
    )
    assert response.status_code == 422


async def test_non_positive_quantity_is_422(client, auth, seed):
    order = await _place_order(client, auth("alice"), seed)
    response = await client.post(
        "/api/order_lists",
        json={"order_id": order["id"], "food_id": seed["curry"], "quantity": 0},
        headers=auth("alice"),
    )
    assert response.status_code == 422


async def test_missing_order_is_404(client, auth):
    response = await client.get("/api/orders/9999", headers=auth("admin"))
    assert response.status_code == 404


# =============================================================================
# RESERVATIONS / CATALOG / INVENTORY
# =============================================================================

async def test_reservation_status_is_forced_to_pending(client, auth, seed):
    response = await client.post(
        "/api/reservations",
        json={"table_id": seed["table"], "appointment_time": "2025-04-01T19:00:00", "status": "CONFIRMED"},
        headers=auth("alice"),
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/reservations",
        json={"table_id": seed["table"], "appointment_time": "2025-04-01T19:00:00"},
        headers=auth("alice"),
    )
    assert response.status_code == 201
    assert response.json()["data"]["status"] == "PENDING"

    response = await client.get("/api/reservations", headers=auth("alice"))
    assert response.status_code == 403


async def test_menu_without_token(client):
    response = await client.get("/api/foods")
    assert response.status_code == 200
    assert response.json()["total"] == 3


async def test_food_management_is_staff_only(client, auth):
    body = {"name": "Tom Yum", "price": "12.00"}
    response = await client.post("/api/foods", json=body, headers=auth("alice"))
    assert response.status_code == 403

    response = await client.post("/api/foods", json=body, headers=auth("admin"))
    assert response.status_code == 201
    assert response.json()["data"]["status"] == "AVAILABLE"


async def test_stock_entry_over_http(client, auth):
    response = await client.post(
        "/api/stock_items", json={"name": "Rice", "unit": "kg"}, headers=auth("staff")
    )
    assert response.status_code == 201
    item_id = response.json()["data"]["id"]

    response = await client.post(
        "/api/stock_entries",
        json={"stock_item_id": item_id, "quantity": "10"},
        headers=auth("staff"),
    )
    assert response.status_code == 201

    response = await client.get(f"/api/inventory_logs?stock_item_id={item_id}", headers=auth("staff"))
    assert response.json()["total"] == 1

    response = await client.get("/api/stock_items", headers=auth("alice"))
    assert response.status_code == 403
