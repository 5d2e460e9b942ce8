"""
Pydantic schemas for payment endpoints
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PaymentInitiate(BaseModel):
    """Request body for starting an STK push"""
    order_id: int = Field(..., gt=0)
    phone: str = Field(..., min_length=1, max_length=32)


class PaymentInitiateResponse(BaseModel):
    message: str
    order_id: int
    checkout_ref: str
    payment_status: str


class PaymentStatusResponse(BaseModel):
    """Payment sub-record as seen by the poller"""
    order_id: int
    payment_status: str
    payment_method: Optional[str] = None
    receipt_ref: Optional[str] = None
    gateway_phone: Optional[str] = None
    payment_error: Optional[str] = None
    paid_at: Optional[datetime] = None


class ManualPaymentUpdate(BaseModel):
    """Admin manual mark; only 'paid' is a valid target"""
    payment_status: str = Field("paid", pattern="^paid$")
    receipt_ref: Optional[str] = Field(None, max_length=64)


class ConfirmationCodeSubmit(BaseModel):
    """Customer-submitted M-Pesa confirmation code"""
    order_id: int = Field(..., gt=0)
    code: str = Field(..., min_length=1, max_length=32)


class CallbackAck(BaseModel):
    """Acknowledgement returned to the gateway for every callback"""
    ResultCode: int = 0
    ResultDesc: str = "Accepted"
