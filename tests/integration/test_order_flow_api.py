import pytest
from decimal import Decimal

from orderhub.models.shared.enums import OrderStatusName


@pytest.mark.asyncio
class TestOrderFlowAPI:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_requires_token(self, client):
        response = await client.get("/api/v1/orders/statuses")
        assert response.status_code in (401, 403)

    async def test_rejects_garbage_token(self, client):
        response = await client.get("/api/v1/orders/statuses", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    async def test_delivery_lifecycle(
        self, client, auth, catalog, customer, staff, driver, restaurant, address, menu_items, notifier
    ):
        jollof, chapman = menu_items
        created = await client.post("/api/v1/orders/", headers=auth(customer), json={
            "restaurant_id": restaurant.id,
            "order_type": "DELIVERY",
            "delivery_address_id": address.id,
            "items": [
                {"menu_item_id": jollof.id, "quantity": 1},
                {"menu_item_id": chapman.id, "quantity": 2},
            ],
            "delivery_fee": "200",
            "tax_amount": "160",
        })
        assert created.status_code == 201, created.text
        order = created.json()
        assert Decimal(order["final_total"]) == Decimal("2360")
        assert order["status_id"] == catalog.id_of(OrderStatusName.PENDING.value)

        next_statuses = await client.get(f"/api/v1/orders/{order['id']}/next-statuses", headers=auth(staff))
        assert [s["name"] for s in next_statuses.json()] == ["Preparing", "Cancelled"]

        # Customers cannot drive the kitchen workflow
        forbidden = await client.post(
            f"/api/v1/orders/{order['id']}/status", headers=auth(customer),
            json={"status_id": catalog.id_of("Preparing")},
        )
        assert forbidden.status_code == 403

        preparing = await client.post(
            f"/api/v1/orders/{order['id']}/status", headers=auth(staff),
            json={"status_id": catalog.id_of("Preparing"), "notes": "Fired"},
        )
        assert preparing.status_code == 200, preparing.text

        skipped = await client.post(
            f"/api/v1/orders/{order['id']}/status", headers=auth(staff),
            json={"status_id": catalog.id_of("Delivered")},
        )
        assert skipped.status_code == 409
        assert skipped.json()["detail"]["current"] == "Preparing"

        assigned = await client.post("/api/v1/delivery/assign", headers=auth(staff), json={
            "order_id": order["id"], "driver_id": driver.id,
        })
        assert assigned.status_code == 200, assigned.text
        assert assigned.json()["eta_minutes"] == 13

        ping = await client.post("/api/v1/delivery/location", headers=auth(driver), json={
            "latitude": 37.7894, "longitude": -122.4094, "speed": 18.5,
        })
        assert ping.status_code == 201, ping.text
        assert ping.json()["status"] == "nearby"

        live = await client.get(f"/api/v1/delivery/orders/{order['id']}/live", headers=auth(customer))
        assert live.status_code == 200
        assert live.json()["driver"]["name"] == "Dara Driver"
        assert live.json()["status"] == "nearby"

        history = await client.get(f"/api/v1/orders/{order['id']}/history", headers=auth(customer))
        names = [catalog.name_of(row["status_id"]) for row in history.json()]
        assert names[0] == "Out for Delivery"

    async def test_customer_cannot_read_other_orders(self, client, auth, make_order, make_user):
        order = await make_order()
        stranger = await make_user("Sam Stranger", "sam@example.com")

        response = await client.get(f"/api/v1/orders/{order.id}", headers=auth(stranger))
        assert response.status_code == 403

    async def test_location_without_delivery(self, client, auth, driver):
        response = await client.post("/api/v1/delivery/location", headers=auth(driver), json={
            "latitude": 37.7, "longitude": -122.4,
        })
        assert response.status_code == 404

    async def test_only_drivers_send_locations(self, client, auth, customer):
        response = await client.post("/api/v1/delivery/location", headers=auth(customer), json={
            "latitude": 37.7, "longitude": -122.4,
        })
        assert response.status_code == 403
