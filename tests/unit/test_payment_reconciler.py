import json
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from orderhub.core.exceptions import (
    ConflictError, GatewayError, InvalidSignatureError, InvalidStateError, NotFoundError, ValidationError,
)
from orderhub.models.shared.enums import BookingStatus, OrderPaymentStatus, PaymentStatus
from orderhub.schemas.payment.payment_schema import PaymentInitializeRequest
from orderhub.services.payment.payment_service import PaymentReconciler
from orderhub.workers.celery_tasks.payment_tasks import sweep_stale_payments


@pytest.fixture
def reconciler(session, gateway) -> PaymentReconciler:
    return PaymentReconciler(session, gateway)


@pytest.fixture
def start_payment(reconciler, customer):
    async def _start(**target):
        return await reconciler.initialize_payment(PaymentInitializeRequest(**target), customer)
    return _start


def webhook_body(event, data) -> bytes:
    return json.dumps({"event": event, "data": data}).encode()


def verify_calls(paystack):
    return [r for r in paystack.requests if r.url.path.startswith("/transaction/verify/")]


@pytest.mark.asyncio
class TestInitialize:
    async def test_order_payment_defaults_to_final_total(self, make_order, start_payment, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)

        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("2360.00")
        assert payment.currency == "NGN"
        assert payment.payment_reference.startswith("RMS_")
        assert payment.payment_number.startswith("PAY-")
        assert payment.authorization_url == f"https://checkout.paystack.test/{payment.payment_reference}"
        assert payment.payment_metadata["payment_type"] == "order"

        sent = json.loads(paystack.requests[0].content)
        assert sent["amount"] == 236000
        assert sent["email"] == "ada@example.com"

    async def test_reservation_and_room_booking(self, reservation, room_booking, start_payment, paystack):
        deposit = await start_payment(reservation_id=reservation.id)
        stay = await start_payment(room_booking_id=room_booking.id)

        assert deposit.amount == Decimal("5000.00")
        assert stay.amount == Decimal("45000.00")
        assert [json.loads(r.content)["amount"] for r in paystack.requests] == [500000, 4500000]

    async def test_cancelled_reservation_cannot_be_paid(self, session, reservation, start_payment):
        reservation.status = BookingStatus.CANCELLED
        await session.commit()

        with pytest.raises(InvalidStateError):
            await start_payment(reservation_id=reservation.id)

    async def test_unknown_order(self, start_payment, paystack):
        with pytest.raises(NotFoundError):
            await start_payment(order_id=9999)
        assert paystack.requests == []

    async def test_gateway_failure_leaves_nothing_behind(self, make_order, reconciler, start_payment, paystack, customer):
        import httpx
        order = await make_order()
        paystack.fail_with = lambda request: httpx.Response(401, json={"status": False, "message": "Invalid key"})

        with pytest.raises(GatewayError):
            await start_payment(order_id=order.id)
        assert (await reconciler.get_user_payments(customer.id))["total"] == 0

    async def test_paid_order_is_rejected(self, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference)
        await reconciler.verify_payment(payment.payment_reference)

        with pytest.raises(ConflictError):
            await start_payment(order_id=order.id)


@pytest.mark.asyncio
class TestVerify:
    async def test_success_marks_order_paid_and_issues_invoice(self, session, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference)

        result = await reconciler.verify_payment(payment.payment_reference)

        assert result.success and not result.already_processed
        assert result.message == "Payment verified successfully"
        assert result.payment.status == PaymentStatus.SUCCESS
        assert result.payment.channel == "card"
        assert result.payment.transaction_id == "1000"
        assert result.payment.paid_at is not None

        invoice = await reconciler.get_invoice_for_payment(payment.id)
        assert invoice.invoice_number.startswith("INV-")

        await session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.PAID
        assert order.paid_at is not None

    async def test_second_verify_is_idempotent(self, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference)

        await reconciler.verify_payment(payment.payment_reference)
        again = await reconciler.verify_payment(payment.payment_reference)

        assert again.already_processed
        assert again.success
        assert again.message == "Payment already success"
        assert len(verify_calls(paystack)) == 1
        assert (await reconciler.get_invoice_for_payment(payment.id)).payment_id == payment.id

    async def test_ongoing_transaction_stays_pending(self, make_order, start_payment, reconciler):
        order = await make_order()
        payment = await start_payment(order_id=order.id)

        result = await reconciler.verify_payment(payment.payment_reference)

        assert result.payment.status == PaymentStatus.PENDING
        assert result.message == "Payment is still pending"
        assert not result.success

    async def test_declined_transaction_fails(self, session, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference, status="failed", gateway_response="Insufficient Funds")

        result = await reconciler.verify_payment(payment.payment_reference)

        assert result.payment.status == PaymentStatus.FAILED
        assert result.payment.failure_reason == "Insufficient Funds"
        assert result.payment.failed_at is not None
        await session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.UNPAID

    async def test_amount_mismatch_fails(self, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference, amount=100)

        result = await reconciler.verify_payment(payment.payment_reference)

        assert result.payment.status == PaymentStatus.FAILED
        assert result.payment.failure_reason.startswith("Amount mismatch")
        with pytest.raises(NotFoundError):
            await reconciler.get_invoice_for_payment(payment.id)

    async def test_unknown_reference(self, reconciler):
        with pytest.raises(NotFoundError):
            await reconciler.verify_payment("RMS_missing")

    async def test_reservation_confirmed(self, session, reservation, start_payment, reconciler, paystack):
        payment = await start_payment(reservation_id=reservation.id)
        paystack.settle(payment.payment_reference)

        await reconciler.verify_payment(payment.payment_reference)

        await session.refresh(reservation)
        assert reservation.status == BookingStatus.CONFIRMED

    async def test_invoice_failure_does_not_undo_payment(
        self, session, make_order, start_payment, reconciler, paystack, monkeypatch
    ):
        async def broken_invoice(payment):
            raise RuntimeError("invoice storage offline")

        monkeypatch.setattr(reconciler, "_ensure_invoice", broken_invoice)
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference)

        result = await reconciler.verify_payment(payment.payment_reference)

        assert result.payment.status == PaymentStatus.SUCCESS
        await session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.PAID
        with pytest.raises(NotFoundError):
            await reconciler.get_invoice_for_payment(payment.id)


@pytest.mark.asyncio
class TestWebhook:
    async def test_charge_success(self, make_order, start_payment, reconciler, gateway, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        body = webhook_body("charge.success", paystack.settle(payment.payment_reference))

        response = await reconciler.handle_webhook(body, gateway.compute_signature(body))

        assert response == {"success": True, "message": "Payment verified successfully", "event": "charge.success"}
        assert (await reconciler.get_payment(payment.id)).status == PaymentStatus.SUCCESS
        assert verify_calls(paystack) == []

    async def test_webhook_after_verify_is_noop(self, make_order, start_payment, reconciler, gateway, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        txn = paystack.settle(payment.payment_reference)
        await reconciler.verify_payment(payment.payment_reference)

        body = webhook_body("charge.success", txn)
        response = await reconciler.handle_webhook(body, gateway.compute_signature(body))

        assert response["message"] == "Payment already success"
        assert (await reconciler.get_invoice_for_payment(payment.id)).payment_id == payment.id

    async def test_charge_failed(self, make_order, start_payment, reconciler, gateway, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        body = webhook_body(
            "charge.failed",
            paystack.settle(payment.payment_reference, status="failed", gateway_response="Declined"),
        )

        await reconciler.handle_webhook(body, gateway.compute_signature(body))

        assert (await reconciler.get_payment(payment.id)).status == PaymentStatus.FAILED

    async def test_amount_mismatch_from_webhook(self, make_order, start_payment, reconciler, gateway, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        body = webhook_body("charge.success", paystack.settle(payment.payment_reference, amount=5000))

        await reconciler.handle_webhook(body, gateway.compute_signature(body))

        stored = await reconciler.get_payment(payment.id)
        assert stored.status == PaymentStatus.FAILED
        assert "Amount mismatch" in stored.failure_reason

    async def test_tampered_signature_rejected_before_parsing(self, reconciler, gateway):
        signature = gateway.compute_signature(b'{"event":"charge.success"}')

        with pytest.raises(InvalidSignatureError):
            await reconciler.handle_webhook(b"not json at all", signature)

    async def test_tampered_amount_changes_nothing(self, make_order, start_payment, reconciler, gateway, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        txn = paystack.settle(payment.payment_reference)
        signature = gateway.compute_signature(webhook_body("charge.success", txn))

        forged = webhook_body("charge.success", {**txn, "amount": 1})
        with pytest.raises(InvalidSignatureError):
            await reconciler.handle_webhook(forged, signature)
        assert (await reconciler.get_payment(payment.id)).status == PaymentStatus.PENDING

    async def test_unhandled_event_acknowledged(self, reconciler, gateway):
        body = webhook_body("transfer.success", {"reference": "TRF_1"})

        response = await reconciler.handle_webhook(body, gateway.compute_signature(body))

        assert response == {"success": True, "message": "Event ignored", "event": "transfer.success"}

    async def test_malformed_payload(self, reconciler, gateway):
        body = b"[1, 2"
        with pytest.raises(ValidationError):
            await reconciler.handle_webhook(body, gateway.compute_signature(body))

    @pytest.mark.parametrize("data", ["oops", [1, 2]])
    async def test_non_object_data_is_malformed(self, reconciler, gateway, data):
        body = webhook_body("charge.success", data)
        with pytest.raises(ValidationError) as exc_info:
            await reconciler.handle_webhook(body, gateway.compute_signature(body))
        assert exc_info.value.status_code == 422

    async def test_unknown_reference(self, reconciler, gateway):
        body = webhook_body("charge.success", {"reference": "RMS_nobody", "amount": 100})
        with pytest.raises(NotFoundError):
            await reconciler.handle_webhook(body, gateway.compute_signature(body))


@pytest.mark.asyncio
class TestRefund:
    async def test_refund_successful_payment(self, session, make_order, start_payment, reconciler, paystack, admin):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference)
        await reconciler.verify_payment(payment.payment_reference)

        refunded = await reconciler.initiate_refund(payment.id, "Customer cancelled", admin.id)

        assert refunded.status == PaymentStatus.REFUNDED
        assert refunded.refunded_amount == Decimal("2360.00")
        assert refunded.refunded_at is not None
        assert paystack.refunds == [{"transaction": payment.payment_reference, "amount": 236000}]
        await session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.REFUNDED

    async def test_pending_payment_cannot_be_refunded(self, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)

        with pytest.raises(InvalidStateError):
            await reconciler.initiate_refund(payment.id, "Changed mind")
        assert paystack.refunds == []

    async def test_refund_then_verify_is_terminal(self, make_order, start_payment, reconciler, paystack, admin):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference)
        await reconciler.verify_payment(payment.payment_reference)
        await reconciler.initiate_refund(payment.id, "Duplicate charge", admin.id)

        result = await reconciler.verify_payment(payment.payment_reference)

        assert result.already_processed
        assert result.payment.status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
class TestStaleSweep:
    async def _age(self, session, *payments):
        for payment in payments:
            payment.created_at = datetime.now(timezone.utc) - timedelta(hours=2)
        await session.commit()

    async def test_sweep_settles_old_pending_payments(
        self, session, make_order, reservation, room_booking, start_payment, reconciler, paystack
    ):
        order = await make_order()
        paid = await start_payment(order_id=order.id)
        waiting = await start_payment(reservation_id=reservation.id)
        fresh = await start_payment(room_booking_id=room_booking.id)
        paystack.settle(paid.payment_reference)
        paystack.settle(fresh.payment_reference)
        await self._age(session, paid, waiting)

        summary = await reconciler.reconcile_stale_payments(older_than_minutes=30)

        assert summary == {"checked": 2, "success": 1, "failed": 0, "pending": 1, "errors": 0}
        assert (await reconciler.get_payment(paid.id)).status == PaymentStatus.SUCCESS
        assert (await reconciler.get_payment(waiting.id)).status == PaymentStatus.PENDING
        assert (await reconciler.get_payment(fresh.id)).status == PaymentStatus.PENDING

    async def test_gateway_errors_are_counted(self, session, make_order, start_payment, reconciler, paystack):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        del paystack.transactions[payment.payment_reference]
        await self._age(session, payment)

        summary = await reconciler.reconcile_stale_payments(older_than_minutes=30)

        assert summary["errors"] == 1
        assert (await reconciler.get_payment(payment.id)).status == PaymentStatus.PENDING

    async def test_background_task_entrypoint(
        self, session, session_maker, make_order, start_payment, reconciler, gateway, paystack
    ):
        order = await make_order()
        payment = await start_payment(order_id=order.id)
        paystack.settle(payment.payment_reference, status="abandoned")
        await self._age(session, payment)

        summary = await sweep_stale_payments(session_maker, gateway, older_than_minutes=30)

        assert summary["failed"] == 1
        assert (await reconciler.get_payment(payment.id)).status == PaymentStatus.FAILED
