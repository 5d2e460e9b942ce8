"""
SQLAlchemy User and StoreSettings models
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, CheckConstraint
from sqlalchemy.sql import func
from printshop.database import Base


class User(Base):
    """Local record of an identity-provider user and their role"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_id = Column(String(128), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default='customer')
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('customer', 'admin')", name='check_role_valid'),
    )

    def __repr__(self):
        return f"<User(identity_id='{self.identity_id}', role='{self.role}')>"


class StoreSettings(Base):
    """Single-row storefront settings document"""

    __tablename__ = "store_settings"

    id = Column(Integer, primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
