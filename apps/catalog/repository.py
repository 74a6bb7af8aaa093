"""Catalog module repository implementations."""

from typing import List, Optional, Tuple
from framework.repository import AsyncRepository, QueryObject
from .models import Category, Product


class ProductQuery(QueryObject[Product]):
    """Active products, optionally narrowed by category and minimum price."""

    def __init__(self, category_id: Optional[int] = None, min_price: Optional[float] = None):
        super().__init__(Product.is_active == True)  # noqa: E712
        if category_id is not None:
            self.and_(Product.category_id == category_id)
        if min_price is not None:
            self.and_(Product.price >= min_price)


class CategoryRepository(AsyncRepository[Category]):
    """Category repository."""

    model = Category

    async def get_by_name(self, name: str) -> Optional[Category]:
        """Find category by name."""
        return await self.find_by(name=name)


class ProductRepository(AsyncRepository[Product]):
    """Product repository."""

    model = Product

    async def get_by_sku(self, sku: str) -> Optional[Product]:
        return await self.find_by(sku=sku)

    async def list_by_category(self, category_id: int, page: int = 1, page_size: int = 20) -> List[Product]:
        """Products of one category ordered by name."""
        return await self.filter(
            Product.category_id == category_id,
            order_by=Product.name,
            page=page,
            page_size=page_size,
        )

    async def search(
        self,
        page: int,
        page_size: int,
        category_id: Optional[int] = None,
        min_price: Optional[float] = None,
    ) -> Tuple[List[Product], int]:
        """
        Page through active products.

        Returns:
            (products ordered by id, total number of matches)
        """
        return await (
            self.query(ProductQuery(category_id, min_price))
            .order_by(Product.id)
            .select_page(page, page_size)
        )
