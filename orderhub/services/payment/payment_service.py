# orderhub/services/payment/payment_service.py
"""
Payment reconciliation.

Client-side verify, gateway webhooks and the stale-payment sweep all funnel into
``PaymentReconciler._reconcile``. It locks the payment row, short-circuits when
the payment is already terminal, and otherwise applies a normalized
``ProviderOutcome``. That guard runs inside the same transaction as the write, so
duplicate or racing deliveries of the same outcome leave exactly one invoice and
one payable-status update behind.
"""
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.config import settings
from orderhub.core.exceptions import (
    NotFoundError, ValidationError, ConflictError, InvalidStateError,
)
from orderhub.models.auth.user import User
from orderhub.models.booking.reservation import Reservation
from orderhub.models.booking.room_booking import RoomBooking
from orderhub.models.order.order import Order
from orderhub.models.payment.invoice import Invoice
from orderhub.models.payment.payment import Payment
from orderhub.models.shared.enums import (
    PaymentStatus, PaymentType, OrderPaymentStatus, BookingStatus, PaymentGatewayName,
)
from orderhub.schemas.payment.payment_schema import PaymentInitializeRequest
from orderhub.services.payment.paystack_gateway import PaystackGateway, ProviderOutcome, get_channels

logger = logging.getLogger(__name__)

TERMINAL_PAYMENT_STATUSES = frozenset({
    PaymentStatus.SUCCESS,
    PaymentStatus.FAILED,
    PaymentStatus.CANCELLED,
    PaymentStatus.REFUNDED,
})

HANDLED_WEBHOOK_EVENTS = ("charge.success", "charge.failed")


@dataclass
class Payable:
    payment_type: PaymentType
    entity: Any
    amount: Decimal


@dataclass
class ReconciliationResult:
    payment: Payment
    already_processed: bool = False

    @property
    def success(self) -> bool:
        return self.payment.status in (PaymentStatus.SUCCESS, PaymentStatus.REFUNDED)

    @property
    def message(self) -> str:
        if self.already_processed:
            return f"Payment already {self.payment.status.value}"
        if self.payment.status == PaymentStatus.SUCCESS:
            return "Payment verified successfully"
        if self.payment.status == PaymentStatus.PENDING:
            return "Payment is still pending"
        return "Payment verification failed"


class PaymentReconciler:
    def __init__(self, session: AsyncSession, gateway: Optional[PaystackGateway] = None):
        self.session = session
        self.gateway = gateway or PaystackGateway()

    def generate_reference(self) -> str:
        return f"RMS_{uuid.uuid4().hex[:20]}"

    def generate_payment_number(self) -> str:
        timestamp = datetime.now().strftime("%Y%m%d")
        return f"PAY-{timestamp}-{uuid.uuid4().hex[:8].upper()}"

    def generate_invoice_number(self) -> str:
        timestamp = datetime.now().strftime("%Y%m%d")
        return f"INV-{timestamp}-{uuid.uuid4().hex[:8].upper()}"

    # === Initialization ===

    async def initialize_payment(self, request: PaymentInitializeRequest, user: User) -> Payment:
        """Open a gateway transaction and record it as a pending payment.

        The gateway is called before anything is written. If the local insert
        then fails, the remote transaction is left alone and its reference is
        logged so the caller can verify it later.
        """
        reference = None
        try:
            payable = await self._resolve_payable(request)
            await self._ensure_not_already_paid(request)

            amount = request.amount if request.amount is not None else payable.amount
            if amount is None or Decimal(amount) <= 0:
                raise ValidationError("Payment amount must be greater than zero")

            reference = self.generate_reference()
            currency = (request.currency or settings.PAYMENT_DEFAULT_CURRENCY).upper()
            email = request.customer_email or user.email
            callback_url = request.callback_url or f"{settings.FRONTEND_URL}/payments/callback"
            metadata = self._build_metadata(request, payable, user)
            method = request.method.value if request.method else None

            initialized = await self.gateway.initialize(
                amount=amount,
                currency=currency,
                email=email,
                reference=reference,
                callback_url=callback_url,
                metadata=metadata,
                channels=get_channels(method),
            )

            payment = Payment(
                payment_number=self.generate_payment_number(),
                payment_reference=reference,
                user_id=user.id,
                email=email,
                order_id=request.order_id,
                reservation_id=request.reservation_id,
                room_booking_id=request.room_booking_id,
                amount=Decimal(amount),
                currency=currency,
                payment_method=request.method,
                gateway=PaymentGatewayName.PAYSTACK,
                status=PaymentStatus.PENDING,
                access_code=initialized.access_code,
                authorization_url=initialized.authorization_url,
                callback_url=callback_url,
                payment_metadata=metadata,
                created_by=user.id,
            )
            self.session.add(payment)
            await self.session.commit()

            logger.info(f"Payment initialized: {reference} ({payable.payment_type.value}, {amount} {currency})")
            return payment

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            if reference:
                logger.error(
                    f"Orphaned gateway reference {reference}: local payment record was not saved ({str(e)})"
                )
            else:
                logger.error(f"Error initializing payment: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to initialize payment"
            )

    # === Reconciliation ===

    async def verify_payment(self, reference: str) -> ReconciliationResult:
        """Client-initiated verify; the gateway is only called for non-terminal payments"""
        async def ask_gateway(payment: Payment) -> ProviderOutcome:
            return await self.gateway.verify(payment.payment_reference)

        return await self._reconcile(reference, ask_gateway)

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Process a gateway push. The signature is checked before the body is even parsed."""
        self.gateway.verify_signature(raw_body, signature)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Malformed webhook payload")
        if not isinstance(payload, dict):
            raise ValidationError("Malformed webhook payload")

        event = payload.get("event")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("Malformed webhook payload")
        reference = data.get("reference")
        logger.info(f"Received webhook event: {event} for reference: {reference}")

        if event not in HANDLED_WEBHOOK_EVENTS:
            logger.info(f"Unhandled webhook event ignored: {event}")
            return {"success": True, "message": "Event ignored", "event": event}
        if not reference:
            raise ValidationError("Webhook payload has no transaction reference")

        outcome = ProviderOutcome.from_transaction(data, succeeded=(event == "charge.success"))

        async def trust_payload(payment: Payment) -> ProviderOutcome:
            return outcome

        result = await self._reconcile(reference, trust_payload)
        return {"success": True, "message": result.message, "event": event}

    async def handle_callback(self, reference: str) -> ReconciliationResult:
        """Browser redirect from the gateway after checkout"""
        return await self.verify_payment(reference)

    async def _reconcile(
        self,
        reference: str,
        resolve_outcome: Callable[[Payment], Awaitable[ProviderOutcome]],
    ) -> ReconciliationResult:
        try:
            payment = await self._lock_payment(Payment.payment_reference == reference)
            payment_id = payment.id
            current = payment.status

            if current in TERMINAL_PAYMENT_STATUSES:
                await self.session.rollback()
                logger.info(f"Payment {reference} already {current.value}; returning stored outcome")
                return ReconciliationResult(payment=await self.get_payment(payment_id), already_processed=True)

            outcome = await resolve_outcome(payment)
            if not outcome.settled:
                await self.session.rollback()
                logger.info(f"Payment {reference} not settled at the gateway yet")
                return ReconciliationResult(payment=await self.get_payment(payment_id))

            self._apply_outcome(payment, outcome)
            await self.session.flush()

            if payment.status == PaymentStatus.SUCCESS:
                await self._run_isolated("invoice creation", payment, self._ensure_invoice)
                await self._run_isolated("payable status update", payment, self._mark_payable_paid)

            await self.session.commit()
            logger.info(f"Payment {reference} reconciled as {payment.status.value}")

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error reconciling payment {reference}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to reconcile payment"
            )

        return ReconciliationResult(payment=await self.get_payment(payment_id))

    def _apply_outcome(self, payment: Payment, outcome: ProviderOutcome):
        now = datetime.now(timezone.utc)
        payment.processed_at = now
        payment.channel = outcome.channel or payment.channel
        payment.gateway_response = outcome.gateway_response
        payment.transaction_id = outcome.transaction_id or payment.transaction_id
        if outcome.raw.get("metadata") is not None:
            payment.payment_metadata = {**(payment.payment_metadata or {}), "provider": outcome.raw.get("metadata")}

        failure_reason = None
        if outcome.succeeded and outcome.amount is not None and outcome.amount != Decimal(payment.amount):
            failure_reason = f"Amount mismatch: expected {payment.amount}, gateway reported {outcome.amount}"
            logger.error(f"Payment {payment.payment_reference}: {failure_reason}")
        elif not outcome.succeeded:
            failure_reason = outcome.gateway_response or "Payment failed"

        if failure_reason is None:
            payment.status = PaymentStatus.SUCCESS
            payment.paid_at = outcome.paid_at or now
        else:
            payment.status = PaymentStatus.FAILED
            payment.failure_reason = failure_reason
            payment.failed_at = now

    async def _run_isolated(self, label: str, payment: Payment, step: Callable[[Payment], Awaitable[None]]):
        """Run a post-payment step in its own savepoint; failures are logged, never raised"""
        reference, payment_id, current = payment.payment_reference, payment.id, payment.status
        try:
            async with self.session.begin_nested():
                await step(payment)
        except Exception as e:
            logger.error(
                f"Post-payment {label} failed for {reference} "
                f"(payment {payment_id} stays {current.value}): {str(e)}"
            )

    async def _ensure_invoice(self, payment: Payment):
        existing = await self.session.execute(select(Invoice.id).where(Invoice.payment_id == payment.id))
        if existing.scalar_one_or_none() is not None:
            return
        now = datetime.now(timezone.utc)
        invoice = Invoice(
            payment_id=payment.id,
            invoice_number=self.generate_invoice_number(),
            issued_at=now,
            pdf_url=None,
        )
        self.session.add(invoice)
        await self.session.flush()
        logger.info(f"Invoice created: {invoice.invoice_number} for payment {payment.payment_reference}")

    async def _mark_payable_paid(self, payment: Payment):
        if payment.order_id:
            order = await self._lock_row(Order, payment.order_id)
            order.payment_status = OrderPaymentStatus.PAID
            order.paid_at = payment.paid_at
            logger.info(f"Order {order.order_number} marked as paid")
        elif payment.reservation_id:
            reservation = await self._lock_row(Reservation, payment.reservation_id)
            reservation.status = BookingStatus.CONFIRMED
            logger.info(f"Reservation {reservation.id} confirmed")
        elif payment.room_booking_id:
            booking = await self._lock_row(RoomBooking, payment.room_booking_id)
            booking.status = BookingStatus.CONFIRMED
            logger.info(f"Room booking {booking.id} confirmed")
        await self.session.flush()

    # === Refunds ===

    async def initiate_refund(self, payment_id: int, reason: str, actor_id: Optional[int] = None) -> Payment:
        """Full refund of a successful payment"""
        try:
            payment = await self._lock_payment(Payment.id == payment_id)
            if payment.status != PaymentStatus.SUCCESS:
                raise InvalidStateError(
                    f"Only successful payments can be refunded (current: {payment.status.value})",
                    current=payment.status.value,
                )

            await self.gateway.refund(payment.payment_reference, payment.amount)

            payment.status = PaymentStatus.REFUNDED
            payment.refunded_amount = payment.amount
            payment.refunded_at = datetime.now(timezone.utc)
            payment.refund_reason = reason
            payment.gateway_response = f"Refunded: {reason}"
            payment.updated_by = actor_id
            await self.session.flush()

            if payment.order_id:
                await self._run_isolated("order refund update", payment, self._mark_order_refunded)

            await self.session.commit()
            logger.info(f"Refund completed for payment {payment.payment_reference}")

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error refunding payment {payment_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to refund payment"
            )

        return await self.get_payment(payment_id)

    async def _mark_order_refunded(self, payment: Payment):
        order = await self._lock_row(Order, payment.order_id)
        order.payment_status = OrderPaymentStatus.REFUNDED
        await self.session.flush()

    # === Sweep ===

    async def reconcile_stale_payments(self, older_than_minutes: Optional[int] = None) -> Dict[str, int]:
        """Re-verify pending payments that nobody has reconciled for a while"""
        minutes = older_than_minutes if older_than_minutes is not None else settings.STALE_PAYMENT_MINUTES
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)
        result = await self.session.execute(
            select(Payment.payment_reference)
            .where(and_(Payment.status == PaymentStatus.PENDING, Payment.created_at < cutoff))
            .order_by(Payment.id)
        )
        references = list(result.scalars().all())
        await self.session.rollback()

        summary = {"checked": len(references), "success": 0, "failed": 0, "pending": 0, "errors": 0}
        for reference in references:
            try:
                outcome = await self.verify_payment(reference)
            except HTTPException as e:
                summary["errors"] += 1
                logger.warning(f"Stale payment {reference} could not be verified: {e.detail}")
                continue
            if outcome.payment.status == PaymentStatus.SUCCESS:
                summary["success"] += 1
            elif outcome.payment.status == PaymentStatus.PENDING:
                summary["pending"] += 1
            else:
                summary["failed"] += 1

        logger.info(f"Stale payment sweep finished: {summary}")
        return summary

    # === Queries ===

    async def get_payment(self, payment_id: int) -> Payment:
        result = await self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id, Payment.is_deleted == False)
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    async def get_payment_by_reference(self, reference: str) -> Payment:
        result = await self.session.execute(
            select(Payment).where(Payment.payment_reference == reference, Payment.is_deleted == False)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError(f"Payment {reference} not found")
        return payment

    async def get_invoice_for_payment(self, payment_id: int) -> Invoice:
        await self.get_payment(payment_id)
        result = await self.session.execute(select(Invoice).where(Invoice.payment_id == payment_id))
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError(f"Invoice for payment {payment_id} not found")
        return invoice

    async def get_user_payments(self, user_id: int, skip: int = 0, limit: int = 100) -> Dict[str, Any]:
        conditions = [Payment.user_id == user_id, Payment.is_deleted == False]
        result = await self.session.execute(
            select(Payment)
            .where(and_(*conditions))
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset(skip)
            .limit(limit)
        )
        total_count = await self.session.execute(select(func.count(Payment.id)).where(and_(*conditions)))
        return {
            "data": list(result.scalars().all()),
            "total": total_count.scalar() or 0,
            "skip": skip,
            "limit": limit,
        }

    # === Helpers ===

    async def _lock_payment(self, condition) -> Payment:
        result = await self.session.execute(
            select(Payment)
            .where(condition, Payment.is_deleted == False)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    async def _lock_row(self, model, row_id: int):
        result = await self.session.execute(
            select(model)
            .where(model.id == row_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"{model.__name__} {row_id} not found")
        return row

    async def _resolve_payable(self, request: PaymentInitializeRequest) -> Payable:
        targets = [request.order_id, request.reservation_id, request.room_booking_id]
        if sum(1 for target in targets if target is not None) != 1:
            raise ValidationError("Exactly one of order_id, reservation_id or room_booking_id is required")

        if request.order_id is not None:
            order = await self.session.get(Order, request.order_id)
            if not order or order.is_deleted:
                raise NotFoundError(f"Order {request.order_id} not found")
            if order.payment_status != OrderPaymentStatus.UNPAID:
                raise ConflictError(f"Order {order.order_number} is already {order.payment_status.value.lower()}")
            return Payable(PaymentType.ORDER, order, order.final_total)

        if request.reservation_id is not None:
            reservation = await self.session.get(Reservation, request.reservation_id)
            if not reservation or reservation.is_deleted:
                raise NotFoundError(f"Reservation {request.reservation_id} not found")
            if reservation.status == BookingStatus.CANCELLED:
                raise InvalidStateError("Cannot pay for a cancelled reservation", current=reservation.status.value)
            return Payable(PaymentType.RESERVATION, reservation, reservation.deposit_amount)

        booking = await self.session.get(RoomBooking, request.room_booking_id)
        if not booking or booking.is_deleted:
            raise NotFoundError(f"Room booking {request.room_booking_id} not found")
        if booking.status == BookingStatus.CANCELLED:
            raise InvalidStateError("Cannot pay for a cancelled room booking", current=booking.status.value)
        return Payable(PaymentType.ROOM_BOOKING, booking, booking.total_amount)

    async def _ensure_not_already_paid(self, request: PaymentInitializeRequest):
        if request.order_id is not None:
            condition = Payment.order_id == request.order_id
        elif request.reservation_id is not None:
            condition = Payment.reservation_id == request.reservation_id
        else:
            condition = Payment.room_booking_id == request.room_booking_id
        result = await self.session.execute(
            select(func.count(Payment.id)).where(condition, Payment.status == PaymentStatus.SUCCESS)
        )
        if (result.scalar() or 0) > 0:
            raise ConflictError("A successful payment already exists for this item")

    def _build_metadata(self, request: PaymentInitializeRequest, payable: Payable, user: User) -> Dict[str, Any]:
        custom_fields = [{
            "display_name": "Customer Name",
            "variable_name": "customer_name",
            "value": request.customer_name or user.name,
        }]
        for label, key, value in (
            ("Order ID", "order_id", request.order_id),
            ("Reservation ID", "reservation_id", request.reservation_id),
            ("Room Booking ID", "room_booking_id", request.room_booking_id),
        ):
            if value is not None:
                custom_fields.append({"display_name": label, "variable_name": key, "value": value})
        return {
            "custom_fields": custom_fields,
            "payment_type": payable.payment_type.value,
        }
