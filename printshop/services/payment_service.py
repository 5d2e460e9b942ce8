"""
Payment Service - order payment state machine

    unpaid --initiate--> pending --callback/poll--> paid | failed
    failed --initiate--> pending (new checkout ref)
    any but paid --admin manual mark--> paid

paid is terminal. Gateway calls are made outside any write; each
transition is applied through OrderRepository.apply_mutation, which
re-reads the order and re-checks the guard before committing.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from printshop.config import get_gateway_settings
from printshop.exceptions import (
    AuthorizationError,
    ConfigurationError,
    GatewayError,
    NotFoundError,
    PaymentStateError,
    ValidationError,
)
from printshop.models.order import Order
from printshop.publishers.event_publisher import EventPublisher
from printshop.repositories.order_repository import OrderRepository
from printshop.services.identity import CurrentUser
from printshop.services.mpesa_client import (
    CallbackResult,
    CallbackSuccess,
    CallbackUnparseable,
    MpesaClient,
    QueryOutcome,
    classify_query_result,
    format_phone_number,
    parse_callback,
)

logger = logging.getLogger(__name__)

CONFIRMATION_CODE = re.compile(r"^[A-Z0-9]{8,12}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InitiationResult:
    order: Order
    checkout_ref: str
    message: str = "STK Push sent. Check your phone to complete payment."


class PaymentService:
    """Service layer for initiating and reconciling order payments"""

    def __init__(
        self,
        db: Session,
        gateway: Optional[MpesaClient] = None,
        event_publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = OrderRepository(db)
        self._gateway = gateway
        self.event_publisher = event_publisher or EventPublisher()
        self.clock = clock

    @property
    def gateway(self) -> MpesaClient:
        """Gateway client, built on first use so missing config fails here"""
        if self._gateway is None:
            self._gateway = MpesaClient(get_gateway_settings())
        return self._gateway

    # ----- helpers -----

    def _get_authorized(self, order_id: int, user: CurrentUser) -> Order:
        order = self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.user_id != user.id and not user.is_admin:
            raise AuthorizationError("Not authorized")
        return order

    @staticmethod
    def _check_can_initiate(order: Order) -> None:
        if order.payment_status == "paid":
            raise PaymentStateError("Order is already paid")
        if order.payment_status == "pending":
            raise PaymentStateError("A payment request is already in progress for this order")

    def _publish_transition(self, order: Order, old_status: str, source: str) -> None:
        logger.info(
            f"Order {order.id} payment {old_status} -> {order.payment_status} (source={source})"
        )
        data = {
            'order_id': order.id,
            'old_payment_status': old_status,
            'new_payment_status': order.payment_status,
            'payment_method': order.payment_method,
            'checkout_ref': order.gateway_checkout_ref,
            'receipt_ref': order.receipt_ref,
            'source': source,
        }
        try:
            self.event_publisher.publish_payment_status_changed(data)
        except Exception:
            logger.exception(f"Failed to publish payment event for order {order.id}")

    # ----- initiation -----

    async def initiate_payment(self, order_id: int, phone: str, user: CurrentUser) -> InitiationResult:
        """
        Send an STK push for an order and move it to pending

        Raises:
            NotFoundError: If the order does not exist
            AuthorizationError: If a customer pays for someone else's order
            PaymentStateError: If the order is paid or already pending
            ValidationError: If the phone number cannot be normalized
            ConfigurationError: If gateway credentials are missing
            GatewayAuthError, GatewayRequestError: If the gateway fails; the order is unchanged
        """
        order = self._get_authorized(order_id, user)
        self._check_can_initiate(order)

        formatted_phone = format_phone_number(phone)
        if not 10 <= len(formatted_phone) <= 15:
            raise ValidationError("Invalid phone number")

        gateway = self.gateway
        total = order.total
        result = await gateway.initiate_stk_push(formatted_phone, total, order.id)

        previous = {}

        def mutation(current: Order) -> bool:
            # Paid manually or re-initiated while the push was in flight
            self._check_can_initiate(current)
            previous['status'] = current.payment_status
            current.payment_status = "pending"
            current.payment_method = "gateway"
            current.gateway_checkout_ref = result.checkout_ref
            current.gateway_merchant_ref = result.merchant_ref
            current.gateway_phone = formatted_phone
            current.payment_error = None
            return True

        try:
            order = self.repository.apply_mutation(order_id, mutation)
        except PaymentStateError:
            # The prompt already reached the payer; a payment on it needs manual reconciliation
            logger.error(
                f"Order {order_id} changed while STK push was sent; push not recorded: "
                f"checkout_ref={result.checkout_ref} merchant_ref={result.merchant_ref} phone={formatted_phone}"
            )
            raise

        self._publish_transition(order, previous['status'], "initiate")
        return InitiationResult(order=order, checkout_ref=result.checkout_ref)

    # ----- reconciliation -----

    def _apply_gateway_result(
        self,
        order_id: int,
        checkout_ref: str,
        source: str,
        paid: bool,
        receipt_ref: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Order:
        """Move a pending order to paid or failed if it still waits on this checkout ref"""
        previous = {}

        def mutation(order: Order) -> bool:
            if order.payment_status != "pending" or order.gateway_checkout_ref != checkout_ref:
                logger.info(
                    f"Ignoring {source} result for order {order.id}: "
                    f"payment_status={order.payment_status}"
                )
                return False
            previous['status'] = order.payment_status
            if paid:
                order.payment_status = "paid"
                order.paid_at = self.clock()
                order.payment_error = None
                if receipt_ref:
                    order.receipt_ref = receipt_ref
            else:
                order.payment_status = "failed"
                order.payment_error = error or "Payment failed"
            return True

        order = self.repository.apply_mutation(order_id, mutation)
        if previous:
            self._publish_transition(order, previous['status'], source)
        return order

    def handle_callback(self, payload: Any) -> CallbackResult:
        """
        Apply an asynchronous gateway callback

        Never raises: unparseable or unmatched callbacks are logged and
        dropped so the endpoint can always acknowledge.
        """
        result = parse_callback(payload)
        if isinstance(result, CallbackUnparseable):
            logger.warning(f"Dropping M-Pesa callback: {result.reason}")
            return result

        try:
            order = self.repository.get_by_checkout_ref(result.checkout_ref)
            if not order:
                logger.warning(f"No order found for checkout ref {result.checkout_ref}; callback dropped")
                return result

            if isinstance(result, CallbackSuccess):
                self._apply_gateway_result(
                    order.id, result.checkout_ref, "callback", paid=True, receipt_ref=result.receipt_ref
                )
            else:
                self._apply_gateway_result(
                    order.id, result.checkout_ref, "callback", paid=False, error=result.result_desc
                )
        except Exception:
            logger.exception(f"Failed to apply M-Pesa callback for checkout ref {result.checkout_ref}")
        return result

    async def refresh_status(self, order_id: int, user: CurrentUser) -> Order:
        """
        Return the order's payment state, querying the gateway if still pending

        Gateway and configuration failures are logged and the last known
        state is returned.

        Raises:
            NotFoundError: If the order does not exist
            AuthorizationError: If a customer polls someone else's order
        """
        order = self._get_authorized(order_id, user)
        if order.payment_status != "pending" or not order.gateway_checkout_ref:
            return order

        checkout_ref = order.gateway_checkout_ref
        try:
            raw = await self.gateway.query_stk_status(checkout_ref)
        except (GatewayError, ConfigurationError) as e:
            logger.warning(f"STK status query failed for order {order_id}: {e}")
            return self.repository.get_by_id(order_id)

        query = classify_query_result(raw)
        if query.outcome is QueryOutcome.PROCESSING:
            return self.repository.get_by_id(order_id)

        return self._apply_gateway_result(
            order_id,
            checkout_ref,
            "poll",
            paid=query.outcome is QueryOutcome.SUCCESS,
            error=query.result_desc,
        )

    # ----- manual paths -----

    def mark_paid_manually(self, order_id: int, user: CurrentUser, receipt_ref: Optional[str] = None) -> Order:
        """
        Record a payment received outside the gateway (admin only)

        A paid order is returned unchanged.

        Raises:
            AuthorizationError: If the caller is not an admin
            NotFoundError: If the order does not exist
        """
        if not user.is_admin:
            raise AuthorizationError("Admin access required")

        previous = {}

        def mutation(order: Order) -> bool:
            if order.payment_status == "paid":
                return False
            previous['status'] = order.payment_status
            order.payment_status = "paid"
            order.payment_method = "manual"
            order.paid_at = self.clock()
            order.payment_error = None
            order.receipt_ref = receipt_ref or order.claimed_receipt_ref
            return True

        order = self.repository.apply_mutation(order_id, mutation)
        if previous:
            self._publish_transition(order, previous['status'], "manual")
        else:
            logger.info(f"Order {order_id} is already paid; manual mark ignored")
        return order

    def submit_confirmation_code(self, order_id: int, code: str, user: CurrentUser) -> Order:
        """
        Store a customer-submitted M-Pesa confirmation code for admin review

        The code is a claim only; payment_status does not change until an
        admin marks the order paid.

        Raises:
            ValidationError: If the code is not 8-12 letters/digits
            PaymentStateError: If the order is already paid
        """
        self._get_authorized(order_id, user)
        normalized = (code or "").strip().upper()
        if not CONFIRMATION_CODE.match(normalized):
            raise ValidationError("Please enter a valid M-Pesa confirmation code (e.g. SLK4H7TXY2)")

        def mutation(order: Order) -> bool:
            if order.payment_status == "paid":
                raise PaymentStateError("Order is already paid")
            order.claimed_receipt_ref = normalized
            return True

        order = self.repository.apply_mutation(order_id, mutation)
        logger.info(f"Confirmation code submitted for order {order_id}; awaiting admin review")
        return order

    @staticmethod
    def status_of(order: Order) -> Dict[str, Any]:
        return {
            'order_id': order.id,
            'payment_status': order.payment_status or "unpaid",
            'payment_method': order.payment_method,
            'receipt_ref': order.receipt_ref,
            'gateway_phone': order.gateway_phone,
            'payment_error': order.payment_error,
            'paid_at': order.paid_at,
        }
