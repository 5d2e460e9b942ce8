"""
Schemas package
"""
from printshop.schemas.order import (
    Money,
    OrderItemCreate,
    OrderCreate,
    OrderStatusUpdate,
    OrderItemResponse,
    OrderResponse,
    OrderListResponse,
    OrderEvent
)
from printshop.schemas.payment import (
    PaymentInitiate,
    PaymentInitiateResponse,
    PaymentStatusResponse,
    ManualPaymentUpdate,
    ConfirmationCodeSubmit,
    CallbackAck
)
from printshop.schemas.product import (
    CatalogueFields,
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse
)

__all__ = [
    "Money",
    "OrderItemCreate",
    "OrderCreate",
    "OrderStatusUpdate",
    "OrderItemResponse",
    "OrderResponse",
    "OrderListResponse",
    "OrderEvent",
    "PaymentInitiate",
    "PaymentInitiateResponse",
    "PaymentStatusResponse",
    "ManualPaymentUpdate",
    "ConfirmationCodeSubmit",
    "CallbackAck",
    "CatalogueFields",
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "ProductListResponse"
]
