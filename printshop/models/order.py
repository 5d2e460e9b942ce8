"""
SQLAlchemy Order and OrderItem models
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from printshop.database import Base


ORDER_STATUSES = ("pending", "processing", "completed")
PAYMENT_STATUSES = ("unpaid", "pending", "paid", "failed")
PAYMENT_METHODS = ("gateway", "manual")
DELIVERY_METHODS = ("pickup", "delivery")


class Order(Base):
    """Order database model with its payment sub-record"""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)
    total = Column(Numeric(12, 2), nullable=False)
    delivery_method = Column(String(20), nullable=False)
    delivery_location = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default='pending', index=True)

    # Payment sub-record; mutated only through the payment service
    payment_status = Column(String(20), nullable=False, default='unpaid', index=True)
    payment_method = Column(String(20), nullable=True)
    gateway_checkout_ref = Column(String(100), nullable=True, unique=True, index=True)
    gateway_merchant_ref = Column(String(100), nullable=True)
    gateway_phone = Column(String(20), nullable=True)
    receipt_ref = Column(String(64), nullable=True)
    claimed_receipt_ref = Column(String(64), nullable=True)
    payment_error = Column(String(500), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version}

    # Constraints
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'processing', 'completed')", name='check_status_valid'),
        CheckConstraint(
            "payment_status IN ('unpaid', 'pending', 'paid', 'failed')",
            name='check_payment_status_valid'
        ),
        CheckConstraint("delivery_method IN ('pickup', 'delivery')", name='check_delivery_method_valid'),
    )

    def __repr__(self):
        return (
            f"<Order(id={self.id}, user_id='{self.user_id}', total={self.total}, "
            f"status='{self.status}', payment_status='{self.payment_status}')>"
        )


class OrderItem(Base):
    """Line item with the product's name and price at placement time"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)  # Denormalized for history
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    size = Column(String(50), nullable=True)
    color = Column(String(50), nullable=True)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"
