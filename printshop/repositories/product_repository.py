"""
Product Repository - Data Access Layer

Stock is only decremented by OrderRepository.create; here it is set
directly by admins.
"""
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from printshop.models.product import Product
from printshop.schemas.product import ProductCreate, ProductUpdate


class ProductRepository:
    """Repository for the product catalogue"""

    def __init__(self, db: Session):
        self.db = db

    def _catalogue(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        in_stock: bool = False,
    ) -> Query:
        query = self.db.query(Product)
        if category:
            query = query.filter(Product.category == category)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        if in_stock:
            query = query.filter(Product.stock > 0)
        return query

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        category: Optional[str] = None,
        search: Optional[str] = None,
        in_stock: bool = False,
    ) -> List[Product]:
        """Catalogue page, optionally filtered by category, text or availability"""
        return self._catalogue(category, search, in_stock).order_by(
            Product.id
        ).offset(skip).limit(limit).all()

    def count(self, category: Optional[str] = None, search: Optional[str] = None, in_stock: bool = False) -> int:
        return self._catalogue(category, search, in_stock).count()

    def get_categories(self) -> List[str]:
        rows = self.db.query(Product.category).filter(
            Product.category.isnot(None)
        ).distinct().order_by(Product.category).all()
        return [category for (category,) in rows]

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def create(self, product_data: ProductCreate) -> Product:
        product = Product(**product_data.model_dump())
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def update(self, product_id: int, product_data: ProductUpdate) -> Optional[Product]:
        """Apply only the fields present in the request"""
        product = self.get_by_id(product_id)
        if not product:
            return None

        for field, value in product_data.model_dump(exclude_unset=True).items():
            setattr(product, field, value)

        self.db.commit()
        self.db.refresh(product)
        return product

    def delete(self, product_id: int) -> bool:
        """Remove a product; placed orders keep their name and price snapshots"""
        product = self.get_by_id(product_id)
        if not product:
            return False

        self.db.delete(product)
        self.db.commit()
        return True
