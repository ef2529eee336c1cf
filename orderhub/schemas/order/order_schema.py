from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from orderhub.models.shared.enums import OrderType, OrderPaymentStatus

class OrderItemCreate(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., ge=1)
    comment: Optional[str] = None

class OrderItemResponse(BaseModel):
    id: int
    menu_item_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    comment: Optional[str] = None

    class Config:
        from_attributes = True

class OrderCreate(BaseModel):
    restaurant_id: int
    customer_id: Optional[int] = None
    order_type: OrderType
    table_id: Optional[int] = None
    delivery_address_id: Optional[int] = None
    discount: Decimal = Field(Decimal("0"), ge=0)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0)
    tax_amount: Decimal = Field(Decimal("0"), ge=0)
    comment: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    items: List[OrderItemCreate]

    @field_validator('items')
    @classmethod
    def items_not_empty(cls, v):
        if not v:
            raise ValueError('Order must contain at least one item')
        return v

class OrderUpdate(BaseModel):
    """Content changes, accepted only while the order is Pending"""
    discount: Optional[Decimal] = Field(None, ge=0)
    delivery_fee: Optional[Decimal] = Field(None, ge=0)
    tax_amount: Optional[Decimal] = Field(None, ge=0)
    comment: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    items: Optional[List[OrderItemCreate]] = None

    @field_validator('items')
    @classmethod
    def items_not_empty(cls, v):
        if v is not None and not v:
            raise ValueError('Order must contain at least one item')
        return v

class OrderResponse(BaseModel):
    id: int
    order_number: str
    restaurant_id: int
    customer_id: int
    table_id: Optional[int] = None
    delivery_address_id: Optional[int] = None
    driver_id: Optional[int] = None
    order_type: OrderType
    status_id: int
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    tax_amount: Decimal
    final_total: Decimal
    payment_status: OrderPaymentStatus
    paid_at: Optional[datetime] = None
    scheduled_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True

class OrderStatusUpdate(BaseModel):
    status_id: int
    notes: Optional[str] = None

class OrderStatusResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None

    class Config:
        from_attributes = True

class OrderStatusHistoryResponse(BaseModel):
    id: int
    order_id: int
    from_status_id: Optional[int] = None
    status_id: int
    notes: Optional[str] = None
    actor_id: Optional[int] = None
    timestamp: datetime

    class Config:
        from_attributes = True
