"""
M-Pesa payment endpoints: initiate, poll status, gateway callback
"""
import logging

from fastapi import APIRouter, Depends, Request

from printshop.api.dependencies import get_current_user, get_payment_service
from printshop.api.errors import http_error
from printshop.exceptions import StorefrontError
from printshop.schemas.order import OrderResponse
from printshop.schemas.payment import (
    CallbackAck,
    ConfirmationCodeSubmit,
    PaymentInitiate,
    PaymentInitiateResponse,
    PaymentStatusResponse,
)
from printshop.services.identity import CurrentUser
from printshop.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initiate", response_model=PaymentInitiateResponse, summary="Start STK push")
async def initiate_payment(
    body: PaymentInitiate,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Send a payment prompt to the customer's phone

    - **order_id**: order to pay
    - **phone**: M-Pesa number, any local format
    """
    try:
        result = await service.initiate_payment(body.order_id, body.phone, user)
    except StorefrontError as e:
        logger.warning(f"STK push for order {body.order_id} not sent: {e}")
        raise http_error(e)

    return PaymentInitiateResponse(
        message=result.message,
        order_id=result.order.id,
        checkout_ref=result.checkout_ref,
        payment_status=result.order.payment_status,
    )


@router.get("/status/{order_id}", response_model=PaymentStatusResponse, summary="Check payment status")
async def get_payment_status(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Current payment state of an order

    While pending, the gateway is queried as a fallback for a late
    or lost callback. Gateway errors never fail this request.
    """
    try:
        order = await service.refresh_status(order_id, user)
    except StorefrontError as e:
        raise http_error(e)
    return PaymentStatusResponse(**service.status_of(order))


@router.post("/callback", response_model=CallbackAck, summary="M-Pesa result callback")
async def mpesa_callback(
    request: Request,
    service: PaymentService = Depends(get_payment_service)
):
    """
    Receive the STK push result from the gateway

    Always acknowledged, so the gateway does not keep retrying.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    logger.info(f"M-Pesa callback received: {payload}")

    try:
        service.handle_callback(payload)
    except Exception:
        logger.exception("Unexpected error handling M-Pesa callback")
    return CallbackAck()


@router.post("/confirm-code", response_model=OrderResponse, summary="Submit M-Pesa confirmation code")
def submit_confirmation_code(
    body: ConfirmationCodeSubmit,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Record the confirmation code from the customer's M-Pesa SMS

    The order stays unpaid until an admin confirms the payment.
    """
    try:
        return service.submit_confirmation_code(body.order_id, body.code, user)
    except StorefrontError as e:
        raise http_error(e)
