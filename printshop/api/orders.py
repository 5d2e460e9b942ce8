"""
Order API endpoints
"""
from fastapi import APIRouter, Depends, status

from printshop.api.dependencies import get_current_user, get_order_service, get_payment_service, require_admin
from printshop.api.errors import http_error
from printshop.exceptions import StorefrontError
from printshop.schemas.order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderResponse,
    OrderListResponse
)
from printshop.schemas.payment import ManualPaymentUpdate
from printshop.services.identity import CurrentUser
from printshop.services.order_service import OrderService
from printshop.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED, summary="Place order")
def create_order(
    order_data: OrderCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """
    Place a new order

    Process:
    1. Validate items and delivery details
    2. Reserve stock for every item (all or nothing)
    3. Compute the total from catalogue prices
    4. Publish OrderCreated event

    - **items**: list of {product_id, quantity, size, color}
    - **delivery_method**: pickup or delivery
    - **delivery_location**: required for delivery
    """
    try:
        return service.place_order(user, order_data)
    except StorefrontError as e:
        raise http_error(e)


@router.get("", response_model=OrderListResponse, summary="List orders")
def get_orders(
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """
    Admins get every order; customers get their own
    """
    orders = service.list_orders(user)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=len(orders)
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order by ID")
def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    try:
        return service.get_order(order_id, user)
    except StorefrontError as e:
        raise http_error(e)


@router.put("/{order_id}", response_model=OrderResponse, summary="Update order status")
def update_order_status(
    order_id: int,
    status_data: OrderStatusUpdate,
    user: CurrentUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """
    Update order lifecycle status (admin only)

    - **status**: pending, processing or completed
    """
    try:
        return service.update_status(order_id, status_data.status, user)
    except StorefrontError as e:
        raise http_error(e)


@router.put("/{order_id}/payment", response_model=OrderResponse, summary="Mark order paid manually")
def mark_order_paid(
    order_id: int,
    payment_data: ManualPaymentUpdate,
    user: CurrentUser = Depends(require_admin),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Record a payment received outside the gateway (admin only)

    - **receipt_ref**: optional receipt; defaults to a code the customer submitted
    """
    try:
        return service.mark_paid_manually(order_id, user, receipt_ref=payment_data.receipt_ref)
    except StorefrontError as e:
        raise http_error(e)
