"""
Pydantic schemas for order request/response validation
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


# Decimal internally, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


class OrderItemCreate(BaseModel):
    """Requested line item; any client-side price is ignored"""
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., gt=0, description="Quantity to order")
    size: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=50)


class OrderCreate(BaseModel):
    """Schema for placing a new order"""
    items: List[OrderItemCreate] = Field(default_factory=list)
    delivery_method: Optional[str] = Field(None, description="pickup or delivery")
    delivery_location: Optional[Union[dict, str]] = Field(None, description="Required for delivery")
    customer_phone: Optional[str] = Field(None, max_length=32)


class OrderStatusUpdate(BaseModel):
    """Schema for updating the order lifecycle status"""
    status: Literal['pending', 'processing', 'completed'] = Field(
        ...,
        description="Order status"
    )


class OrderItemResponse(BaseModel):
    product_id: int
    name: str
    unit_price: Money
    quantity: int
    size: Optional[str] = None
    color: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response"""
    id: int
    user_id: str
    customer_name: Optional[str]
    customer_phone: Optional[str]
    items: List[OrderItemResponse]
    total: Money
    delivery_method: str
    delivery_location: Optional[Any]
    status: str
    payment_status: str
    payment_method: Optional[str]
    gateway_checkout_ref: Optional[str]
    gateway_phone: Optional[str]
    receipt_ref: Optional[str]
    claimed_receipt_ref: Optional[str]
    payment_error: Optional[str]
    paid_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    """Schema for list of orders response"""
    orders: list[OrderResponse]
    total: int


class OrderEvent(BaseModel):
    """Envelope for events published to RabbitMQ"""
    event_type: Literal['OrderCreated', 'OrderStatusChanged', 'PaymentStatusChanged']
    event_id: str
    event_version: str = "1.0"
    timestamp: str
    source: str = "printshop-order-service"
    data: dict
