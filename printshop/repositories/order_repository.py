"""
Order Repository - Data Access Layer

The only writer of order rows. Payment and lifecycle fields change
through apply_mutation, which relies on the version column so that a
callback and a poll racing on the same order cannot overwrite each other.
"""
import logging
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from sqlalchemy import desc, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from tenacity import retry, stop_after_attempt, retry_if_exception_type

from printshop.exceptions import NotFoundError, StockError
from printshop.models.order import Order, OrderItem
from printshop.models.product import Product
from printshop.schemas.order import OrderItemCreate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Mutation returns True when it changed the order, False to leave it untouched
Mutation = Callable[[Order], bool]


class OrderRepository:
    """Repository for Order persistence"""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, skip: int = 0, limit: int = 100) -> List[Order]:
        """Get all orders, newest first"""
        return self.db.query(Order).order_by(
            desc(Order.created_at), desc(Order.id)
        ).offset(skip).limit(limit).all()

    def get_by_id(self, order_id: int) -> Optional[Order]:
        """Get order by ID, reloading it from the database"""
        return self.db.get(Order, order_id, populate_existing=True)

    def get_by_checkout_ref(self, checkout_ref: str) -> Optional[Order]:
        """Get the order that owns a gateway checkout ref (unique index)"""
        return self.db.query(Order).filter(
            Order.gateway_checkout_ref == checkout_ref
        ).populate_existing().first()

    def get_by_user(self, user_id: str) -> List[Order]:
        """Get orders placed by a user, newest first"""
        return self.db.query(Order).filter(
            Order.user_id == user_id
        ).order_by(desc(Order.created_at), desc(Order.id)).all()

    def count(self) -> int:
        """Get total count of orders"""
        return self.db.query(Order).count()

    def create(
        self,
        user_id: str,
        customer_name: Optional[str],
        items: Sequence[OrderItemCreate],
        delivery_method: str,
        delivery_location=None,
        customer_phone: Optional[str] = None,
    ) -> Order:
        """
        Reserve stock for every line and create the order in one transaction

        Prices come from the products table; the total is computed here.

        Raises:
            NotFoundError: If a product does not exist
            StockError: If any line is short; no stock is decremented
        """
        try:
            order_items = []
            total = Decimal("0.00")
            for item in items:
                product = self.db.get(Product, item.product_id)
                if not product:
                    raise NotFoundError(f"Product {item.product_id} not found")

                # Conditional decrement: zero rows means another order got there first
                result = self.db.execute(
                    update(Product)
                    .where(Product.id == item.product_id, Product.stock >= item.quantity)
                    .values(stock=Product.stock - item.quantity)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise StockError(f"Not enough stock for {product.name}")

                unit_price = Decimal(product.price).quantize(CENT)
                total += unit_price * item.quantity
                order_items.append(OrderItem(
                    product_id=product.id,
                    name=product.name,
                    unit_price=unit_price,
                    quantity=item.quantity,
                    size=item.size,
                    color=item.color,
                ))

            order = Order(
                user_id=user_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                items=order_items,
                total=total.quantize(CENT),
                delivery_method=delivery_method,
                delivery_location=delivery_location if delivery_method == "delivery" else None,
                status="pending",
                payment_status="unpaid",
            )
            self.db.add(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        return order

    @retry(
        stop=stop_after_attempt(5),
        retry=retry_if_exception_type(StaleDataError),
        reraise=True
    )
    def apply_mutation(self, order_id: int, mutation: Mutation) -> Order:
        """
        Load the latest order, apply a mutation and commit it

        The UPDATE is guarded by the version column. If another writer
        committed in between, StaleDataError is raised, the session is
        rolled back and the mutation is re-run against the fresh row.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = self.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        if not mutation(order):
            return order

        try:
            self.db.commit()
        except StaleDataError:
            logger.info(f"Concurrent update on order {order_id}; retrying mutation")
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        return order
