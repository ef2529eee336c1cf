import json
import pytest


@pytest.mark.asyncio
class TestPaymentAPI:
    async def test_checkout_webhook_invoice_refund(self, client, auth, make_order, customer, admin, gateway, paystack):
        order = await make_order()

        started = await client.post("/api/v1/payments/initialize", headers=auth(customer), json={"order_id": order.id})
        assert started.status_code == 201, started.text
        reference = started.json()["reference"]
        payment_id = started.json()["payment_id"]
        assert started.json()["authorization_url"].endswith(reference)

        body = json.dumps({"event": "charge.success", "data": paystack.settle(reference)}).encode()
        pushed = await client.post(
            "/api/v1/payments/webhook", content=body,
            headers={"x-paystack-signature": gateway.compute_signature(body), "Content-Type": "application/json"},
        )
        assert pushed.status_code == 200, pushed.text
        assert pushed.json()["success"] is True

        verified = await client.get(f"/api/v1/payments/verify/{reference}", headers=auth(customer))
        assert verified.status_code == 200
        assert verified.json()["status"] == "success"
        assert verified.json()["already_processed"] is True

        invoice = await client.get(f"/api/v1/payments/{payment_id}/invoice", headers=auth(customer))
        assert invoice.status_code == 200
        assert invoice.json()["invoice_number"].startswith("INV-")

        order_view = await client.get(f"/api/v1/orders/{order.id}", headers=auth(customer))
        assert order_view.json()["payment_status"] == "PAID"

        denied = await client.post(
            f"/api/v1/payments/{payment_id}/refund", headers=auth(customer), json={"reason": "Please"},
        )
        assert denied.status_code == 403

        refunded = await client.post(
            f"/api/v1/payments/{payment_id}/refund", headers=auth(admin), json={"reason": "Kitchen closed"},
        )
        assert refunded.status_code == 200, refunded.text
        assert refunded.json()["status"] == "refunded"

    async def test_bad_signature_is_rejected(self, client, make_order, customer, auth, paystack):
        order = await make_order()
        started = await client.post("/api/v1/payments/initialize", headers=auth(customer), json={"order_id": order.id})
        reference = started.json()["reference"]

        body = json.dumps({"event": "charge.success", "data": paystack.settle(reference)}).encode()
        response = await client.post(
            "/api/v1/payments/webhook", content=body, headers={"x-paystack-signature": "0" * 128},
        )
        assert response.status_code == 401

        missing = await client.post("/api/v1/payments/webhook", content=body)
        assert missing.status_code == 401

        stored = await client.get(f"/api/v1/payments/{started.json()['payment_id']}", headers=auth(customer))
        assert stored.json()["status"] == "pending"

    async def test_callback_verifies_with_gateway(self, client, auth, make_order, customer, paystack):
        order = await make_order()
        started = await client.post("/api/v1/payments/initialize", headers=auth(customer), json={"order_id": order.id})
        reference = started.json()["reference"]
        paystack.settle(reference, status="failed")

        response = await client.get("/api/v1/payments/callback", params={"reference": reference})

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert response.json()["success"] is False

    async def test_initialize_needs_exactly_one_target(self, client, auth, customer):
        response = await client.post("/api/v1/payments/initialize", headers=auth(customer), json={})
        assert response.status_code == 422

    async def test_my_payments(self, client, auth, make_order, customer, make_user):
        order = await make_order()
        await client.post("/api/v1/payments/initialize", headers=auth(customer), json={"order_id": order.id})
        other = await make_user("Sam Stranger", "sam@example.com")

        mine = await client.get("/api/v1/payments/me", headers=auth(customer))
        theirs = await client.get("/api/v1/payments/me", headers=auth(other))

        assert mine.json()["total"] == 1
        assert theirs.json()["total"] == 0

    async def test_other_customers_cannot_verify(self, client, auth, make_order, customer, make_user):
        order = await make_order()
        started = await client.post("/api/v1/payments/initialize", headers=auth(customer), json={"order_id": order.id})
        other = await make_user("Sam Stranger", "sam@example.com")

        response = await client.get(f"/api/v1/payments/verify/{started.json()['reference']}", headers=auth(other))
        assert response.status_code == 403
