"""
Order Service - Business Logic Layer
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from printshop.exceptions import AuthorizationError, NotFoundError, ValidationError
from printshop.models.order import DELIVERY_METHODS, Order
from printshop.publishers.event_publisher import EventPublisher
from printshop.repositories.order_repository import OrderRepository
from printshop.schemas.order import OrderCreate
from printshop.services.identity import CurrentUser

logger = logging.getLogger(__name__)


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session, event_publisher: Optional[EventPublisher] = None):
        self.repository = OrderRepository(db)
        self.event_publisher = event_publisher or EventPublisher()

    def list_orders(self, user: CurrentUser) -> List[Order]:
        """Admins see every order, customers their own"""
        if user.is_admin:
            return self.repository.get_all(limit=10_000)
        return self.repository.get_by_user(user.id)

    def get_order(self, order_id: int, user: CurrentUser) -> Order:
        """
        Get an order the caller is allowed to see

        Raises:
            NotFoundError: If the order does not exist
            AuthorizationError: If a customer asks for someone else's order
        """
        order = self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.user_id != user.id and not user.is_admin:
            raise AuthorizationError("Not authorized")
        return order

    def place_order(self, user: CurrentUser, order_data: OrderCreate) -> Order:
        """
        Place a new order

        Steps:
        1. Validate items and delivery details
        2. Reserve stock and snapshot prices (single transaction)
        3. Publish OrderCreated event

        Raises:
            ValidationError: If the request is incomplete
            NotFoundError: If a product does not exist
            StockError: If any item is short on stock
        """
        if not order_data.items:
            raise ValidationError("Order must have items")
        if order_data.delivery_method not in DELIVERY_METHODS:
            raise ValidationError("Please select pickup or delivery")
        if order_data.delivery_method == "delivery" and not order_data.delivery_location:
            raise ValidationError("Delivery location is required")

        order = self.repository.create(
            user_id=user.id,
            customer_name=user.name,
            items=order_data.items,
            delivery_method=order_data.delivery_method,
            delivery_location=order_data.delivery_location,
            customer_phone=order_data.customer_phone,
        )
        logger.info(f"Order {order.id} placed by {user.id}: total={order.total}")

        self._publish_safely(self.event_publisher.publish_order_created, {
            'order_id': order.id,
            'user_id': order.user_id,
            'total': str(order.total),
            'items': [
                {'product_id': i.product_id, 'quantity': i.quantity, 'unit_price': str(i.unit_price)}
                for i in order.items
            ],
            'delivery_method': order.delivery_method,
            'status': order.status,
        })
        return order

    def update_status(self, order_id: int, new_status: str, user: CurrentUser) -> Order:
        """
        Update the lifecycle status of an order (admin only)

        Raises:
            AuthorizationError: If the caller is not an admin
            NotFoundError: If the order does not exist
        """
        if not user.is_admin:
            raise AuthorizationError("Admin access required")

        previous = {}

        def mutation(order: Order) -> bool:
            if order.status == new_status:
                return False
            previous['status'] = order.status
            order.status = new_status
            return True

        order = self.repository.apply_mutation(order_id, mutation)

        if previous:
            self._publish_safely(self.event_publisher.publish_order_status_changed, {
                'order_id': order.id,
                'old_status': previous['status'],
                'new_status': order.status,
                'updated_at': order.updated_at.isoformat() if order.updated_at else None,
            })
        return order

    @staticmethod
    def _publish_safely(publish, data: dict) -> None:
        try:
            publish(data)
        except Exception:
            # Events are best-effort; the order is already committed
            logger.exception("Failed to publish order event")
