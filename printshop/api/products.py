"""
Product catalogue endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from printshop.api.dependencies import require_admin
from printshop.api.errors import http_error
from printshop.database import get_db
from printshop.exceptions import StorefrontError
from printshop.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse
)
from printshop.services.identity import CurrentUser
from printshop.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    """Dependency to get ProductService instance"""
    return ProductService(db)


@router.get("", response_model=ProductListResponse, summary="Browse catalogue")
def get_products(
    skip: int = Query(0, ge=0, description="Number of products to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of products to return"),
    category: Optional[str] = Query(None, description="Only this category"),
    search: Optional[str] = Query(None, max_length=100, description="Match name or description"),
    in_stock: bool = Query(False, description="Hide sold-out products"),
    service: ProductService = Depends(get_product_service)
):
    """
    Retrieve the catalogue with pagination and shop filters

    - **skip**: Number of products to skip (default: 0)
    - **limit**: Maximum number of products to return (default: 100, max: 1000)
    - **category**: Exact category name
    - **search**: Case-insensitive text in name or description
    - **in_stock**: Only products with stock left
    """
    return service.list_products(skip=skip, limit=limit, category=category, search=search, in_stock=in_stock)


@router.get("/categories", response_model=List[str], summary="List categories")
def get_categories(service: ProductService = Depends(get_product_service)):
    return service.list_categories()


@router.get("/{product_id}", response_model=ProductResponse, summary="Get product by ID")
def get_product(
    product_id: int,
    service: ProductService = Depends(get_product_service)
):
    try:
        return service.get_product(product_id)
    except StorefrontError as e:
        raise http_error(e)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED, summary="Create product")
def create_product(
    product_data: ProductCreate,
    user: CurrentUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service)
):
    """
    Add a product to the catalogue (admin only)

    - **name**: Product name (required)
    - **price**: Unit price in KES (required, must be positive)
    - **stock**: Units available (required, must be non-negative)
    - **sizes** / **colors**: Variant options shown in the storefront
    """
    return service.create_product(product_data)


@router.put("/{product_id}", response_model=ProductResponse, summary="Update product")
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    user: CurrentUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service)
):
    """
    Update product fields (admin only); only provided fields change
    """
    try:
        return service.update_product(product_id, product_data)
    except StorefrontError as e:
        raise http_error(e)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete product")
def delete_product(
    product_id: int,
    user: CurrentUser = Depends(require_admin),
    service: ProductService = Depends(get_product_service)
):
    try:
        service.delete_product(product_id)
    except StorefrontError as e:
        raise http_error(e)
