"""
Pydantic schemas for users and storefront settings
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class UserSync(BaseModel):
    name: Optional[str] = Field(None, max_length=255)


class UserResponse(BaseModel):
    id: str
    email: Optional[str]
    name: Optional[str]
    role: str


class AdminSetup(BaseModel):
    """Promote an existing user using the shared admin secret"""
    identity_id: str = Field(..., min_length=1)
    secret: str = Field(..., min_length=1)


class StoreSettingsResponse(BaseModel):
    settings: Dict[str, Any]
