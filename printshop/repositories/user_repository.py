"""
User and StoreSettings Repositories - Data Access Layer
"""
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from printshop.models.user import User, StoreSettings


DEFAULT_STORE_SETTINGS = {"currency": "KES", "currencySymbol": "KSh"}


class UserRepository:
    """Repository for local user records"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_identity(self, identity_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.identity_id == identity_id).first()

    def upsert(self, identity_id: str, email: Optional[str], name: Optional[str]) -> User:
        """Create the user as a customer, or refresh their name"""
        user = self.get_by_identity(identity_id)
        if not user:
            user = User(identity_id=identity_id, email=email, name=name, role="customer")
            self.db.add(user)
        elif name and name != user.name:
            user.name = name
        else:
            return user

        self.db.commit()
        self.db.refresh(user)
        return user

    def set_role(self, identity_id: str, role: str) -> Optional[User]:
        user = self.get_by_identity(identity_id)
        if not user:
            return None
        user.role = role
        self.db.commit()
        self.db.refresh(user)
        return user


class StoreSettingsRepository:
    """Repository for the single storefront settings document"""

    def __init__(self, db: Session):
        self.db = db

    def get(self) -> Dict[str, Any]:
        row = self.db.get(StoreSettings, 1)
        if not row:
            return dict(DEFAULT_STORE_SETTINGS)
        return {**DEFAULT_STORE_SETTINGS, **row.data}

    def merge(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Shallow-merge changes into the stored document"""
        row = self.db.get(StoreSettings, 1)
        if not row:
            row = StoreSettings(id=1, data=dict(DEFAULT_STORE_SETTINGS))
            self.db.add(row)
        # Reassign so the JSON column is flagged dirty
        row.data = {**(row.data or {}), **changes}
        self.db.commit()
        self.db.refresh(row)
        return {**DEFAULT_STORE_SETTINGS, **row.data}
