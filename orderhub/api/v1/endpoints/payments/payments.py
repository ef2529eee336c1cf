import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, Header
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.database import get_async_session
from orderhub.api.dependencies import get_payment_gateway, require_action
from orderhub.auth.policy import AccessPolicy
from orderhub.models.shared.enums import UserRole
from orderhub.schemas.common.pagination import PaginatedResponse
from orderhub.schemas.payment.payment_schema import (
    PaymentInitializeRequest, PaymentInitializeResponse, PaymentOutcomeResponse,
    PaymentRefundRequest, PaymentResponse, InvoiceResponse, WebhookAck,
)
from orderhub.services.payment.payment_service import PaymentReconciler, ReconciliationResult
from orderhub.services.payment.paystack_gateway import PaystackGateway

router = APIRouter()
logger = logging.getLogger(__name__)

def _outcome_response(result: ReconciliationResult) -> dict:
    payment = result.payment
    return {
        "success": result.success,
        "message": result.message,
        "payment_id": payment.id,
        "reference": payment.payment_reference,
        "status": payment.status,
        "amount": payment.amount,
        "paid_at": payment.paid_at,
        "already_processed": result.already_processed,
    }

@router.post("/initialize", response_model=PaymentInitializeResponse, status_code=status.HTTP_201_CREATED)
async def initialize_payment(
    payment_data: PaymentInitializeRequest,
    session: AsyncSession = Depends(get_async_session),
    gateway: PaystackGateway = Depends(get_payment_gateway),
    current_user = Depends(require_action("payment:initialize"))
):
    """Start a checkout for an order, reservation or room booking"""
    try:
        payment = await PaymentReconciler(session, gateway).initialize_payment(payment_data, current_user)
        return {
            "payment_id": payment.id,
            "payment_number": payment.payment_number,
            "reference": payment.payment_reference,
            "authorization_url": payment.authorization_url,
            "access_code": payment.access_code,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error initializing payment: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to initialize payment"
        )

@router.get("/verify/{reference}", response_model=PaymentOutcomeResponse)
async def verify_payment(
    reference: str,
    session: AsyncSession = Depends(get_async_session),
    gateway: PaystackGateway = Depends(get_payment_gateway),
    current_user = Depends(require_action("payment:verify"))
):
    """Reconcile a payment against the gateway"""
    try:
        reconciler = PaymentReconciler(session, gateway)
        payment = await reconciler.get_payment_by_reference(reference)
        AccessPolicy(current_user).require_self_or(payment.user_id, UserRole.RESTAURANT_OWNER)
        return _outcome_response(await reconciler.verify_payment(reference))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error verifying payment {reference}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to verify payment"
        )

@router.get("/callback", response_model=PaymentOutcomeResponse)
async def payment_callback(
    reference: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_async_session),
    gateway: PaystackGateway = Depends(get_payment_gateway)
):
    """Gateway redirect after checkout; the outcome comes from the gateway, not the caller"""
    try:
        return _outcome_response(await PaymentReconciler(session, gateway).handle_callback(reference))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error handling payment callback {reference}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process payment callback"
        )

@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_async_session),
    gateway: PaystackGateway = Depends(get_payment_gateway)
):
    """Gateway push notification, authenticated by its HMAC signature"""
    try:
        raw_body = await request.body()
        return await PaymentReconciler(session, gateway).handle_webhook(raw_body, x_paystack_signature)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing payment webhook: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook"
        )

@router.get("/me", response_model=PaginatedResponse[PaymentResponse])
async def get_my_payments(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("payment:read"))
):
    """Payments made by the current user"""
    try:
        return await PaymentReconciler(session).get_user_payments(current_user.id, skip=skip, limit=limit)
    except Exception as e:
        logger.error(f"Error getting payments for user {current_user.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve payments"
        )

@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("payment:read"))
):
    """Get payment by ID"""
    try:
        payment = await PaymentReconciler(session).get_payment(payment_id)
        AccessPolicy(current_user).require_self_or(payment.user_id, UserRole.RESTAURANT_OWNER)
        return payment
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting payment {payment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve payment"
        )

@router.get("/{payment_id}/invoice", response_model=InvoiceResponse)
async def get_payment_invoice(
    payment_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user = Depends(require_action("payment:read"))
):
    """Invoice issued for a successful payment"""
    try:
        reconciler = PaymentReconciler(session)
        payment = await reconciler.get_payment(payment_id)
        AccessPolicy(current_user).require_self_or(payment.user_id, UserRole.RESTAURANT_OWNER)
        return await reconciler.get_invoice_for_payment(payment_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting invoice for payment {payment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve invoice"
        )

@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: int,
    refund_data: PaymentRefundRequest,
    session: AsyncSession = Depends(get_async_session),
    gateway: PaystackGateway = Depends(get_payment_gateway),
    current_user = Depends(require_action("payment:refund"))
):
    """Refund a successful payment in full"""
    try:
        return await PaymentReconciler(session, gateway).initiate_refund(payment_id, refund_data.reason, current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error refunding payment {payment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to refund payment"
        )
