"""
SQLAlchemy Product model
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, CheckConstraint
from sqlalchemy.sql import func
from printshop.database import Base


class Product(Base):
    """Printable catalogue item; stock is reserved by order placement"""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True, default="")
    category = Column(String(100), nullable=True, index=True, default="Basic")
    image_url = Column(String(500), nullable=True)

    # KES, two decimal places
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)

    # Variant options offered in the storefront; orders pick one of each
    sizes = Column(JSON, nullable=False, default=lambda: ["M"])
    colors = Column(JSON, nullable=False, default=lambda: ["White"])

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('price > 0', name='check_product_price_positive'),
        CheckConstraint('stock >= 0', name='check_product_stock_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
