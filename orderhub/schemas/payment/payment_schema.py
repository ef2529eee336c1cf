from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from orderhub.models.shared.enums import PaymentStatus, PaymentMethod, PaymentGatewayName

class PaymentInitializeRequest(BaseModel):
    order_id: Optional[int] = None
    reservation_id: Optional[int] = None
    room_booking_id: Optional[int] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    customer_email: Optional[EmailStr] = None
    customer_name: Optional[str] = None
    method: Optional[PaymentMethod] = None
    callback_url: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_payable(self):
        targets = [self.order_id, self.reservation_id, self.room_booking_id]
        if sum(1 for target in targets if target is not None) != 1:
            raise ValueError('Exactly one of order_id, reservation_id or room_booking_id is required')
        return self

class PaymentInitializeResponse(BaseModel):
    payment_id: int
    payment_number: str
    reference: str
    authorization_url: str
    access_code: str

class PaymentOutcomeResponse(BaseModel):
    """Result of a verify, webhook or callback reconciliation"""
    success: bool
    message: str
    payment_id: int
    reference: str
    status: PaymentStatus
    amount: Decimal
    paid_at: Optional[datetime] = None
    already_processed: bool = False

class PaymentRefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

class PaymentResponse(BaseModel):
    id: int
    payment_number: str
    payment_reference: str
    user_id: int
    email: str
    order_id: Optional[int] = None
    reservation_id: Optional[int] = None
    room_booking_id: Optional[int] = None
    amount: Decimal
    currency: str
    payment_method: Optional[PaymentMethod] = None
    gateway: PaymentGatewayName
    status: PaymentStatus
    authorization_url: Optional[str] = None
    transaction_id: Optional[str] = None
    channel: Optional[str] = None
    gateway_response: Optional[str] = None
    failure_reason: Optional[str] = None
    refunded_amount: Optional[Decimal] = None
    processed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class InvoiceResponse(BaseModel):
    id: int
    payment_id: int
    invoice_number: str
    pdf_url: Optional[str] = None
    issued_at: datetime
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class WebhookAck(BaseModel):
    success: bool = True
    message: str
    event: Optional[str] = None
