"""
Product Service - Business Logic Layer
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from printshop.exceptions import NotFoundError
from printshop.repositories.product_repository import ProductRepository
from printshop.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse
)

logger = logging.getLogger(__name__)


class ProductService:
    """Service layer for the product catalogue"""

    def __init__(self, db: Session):
        self.repository = ProductRepository(db)

    def list_products(
        self,
        skip: int = 0,
        limit: int = 100,
        category: Optional[str] = None,
        search: Optional[str] = None,
        in_stock: bool = False,
    ) -> ProductListResponse:
        products = self.repository.get_all(skip, limit, category=category, search=search, in_stock=in_stock)
        return ProductListResponse(
            products=[ProductResponse.model_validate(p) for p in products],
            total=self.repository.count(category=category, search=search, in_stock=in_stock)
        )

    def list_categories(self) -> List[str]:
        return self.repository.get_categories()

    def get_product(self, product_id: int) -> ProductResponse:
        """
        Raises:
            NotFoundError: If the product does not exist
        """
        product = self.repository.get_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product with id={product_id} not found")
        return ProductResponse.model_validate(product)

    def create_product(self, product_data: ProductCreate) -> ProductResponse:
        product = self.repository.create(product_data)
        logger.info(f"Product {product.id} created: {product.name} (stock={product.stock})")
        return ProductResponse.model_validate(product)

    def update_product(self, product_id: int, product_data: ProductUpdate) -> ProductResponse:
        product = self.repository.update(product_id, product_data)
        if not product:
            raise NotFoundError(f"Product with id={product_id} not found")
        return ProductResponse.model_validate(product)

    def delete_product(self, product_id: int) -> None:
        if not self.repository.delete(product_id):
            raise NotFoundError(f"Product with id={product_id} not found")
        logger.info(f"Product {product_id} deleted")
