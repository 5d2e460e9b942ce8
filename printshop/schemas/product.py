"""
Pydantic schemas for the product catalogue
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from printshop.schemas.order import Money


def _clean_options(values: Optional[List[str]]) -> Optional[List[str]]:
    """Strip blanks and duplicates from size/colour options, keeping order"""
    if values is None:
        return None
    cleaned = []
    for value in values:
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    if not cleaned:
        raise ValueError("At least one option is required")
    return cleaned


class CatalogueFields(BaseModel):
    """Fields an admin sets when listing a printable item"""
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=2000)
    price: Money = Field(..., gt=0, decimal_places=2, description="Unit price in KES")
    stock: int = Field(..., ge=0, description="Units available to order")
    sizes: List[str] = Field(default_factory=lambda: ["M"], description="Sizes offered, e.g. S, M, L")
    colors: List[str] = Field(default_factory=lambda: ["White"], description="Garment or item colours")
    category: str = Field("Basic", min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("sizes", "colors")
    @classmethod
    def clean_options(cls, values):
        return _clean_options(values)


class ProductCreate(CatalogueFields):
    pass


class ProductUpdate(BaseModel):
    """Partial update; omitted fields keep their value"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[Money] = Field(None, gt=0, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("sizes", "colors")
    @classmethod
    def clean_options(cls, values):
        return _clean_options(values)


class ProductResponse(CatalogueFields):
    id: int
    description: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    total: int
