from typing import Any, List, Optional, Tuple
from loguru import logger
from sqlalchemy.exc import IntegrityError
from framework.exceptions.handler import BusinessException
from framework.repository import AsyncUnitOfWork
from .models import Category, Product
from .repository import CategoryRepository, ProductRepository

UPDATABLE_PRODUCT_FIELDS = ("name", "price", "is_active", "category_id")


class CatalogService:
    def __init__(self, uow: AsyncUnitOfWork):
        """Initialize Catalog Service with UnitOfWork."""
        self.uow = uow

    @property
    def categories(self) -> CategoryRepository:
        return self.uow.repository(Category, CategoryRepository)

    @property
    def products(self) -> ProductRepository:
        return self.uow.repository(Product, ProductRepository)

    async def create_category(self, name: str) -> Category:
        if await self.categories.get_by_name(name):
            raise BusinessException("Category already exists", code=4001)

        category = await self.categories.insert(Category(name=name))
        await self._save()
        logger.info(f"Category {name} created (id={category.id})")
        return category

    async def list_categories(self) -> List[Category]:
        return await self.categories.filter(order_by=Category.name)

    async def create_product(
        self,
        sku: str,
        name: str,
        price: float,
        category_id: Optional[int] = None,
    ) -> Product:
        """Create product; sku must be unique and the category must exist."""
        if await self.products.get_by_sku(sku):
            raise BusinessException("SKU already exists", code=4002)
        if category_id is not None:
            await self._require_category(category_id)

        product = await self.products.insert(
            Product(sku=sku, name=name, price=price, category_id=category_id)
        )
        await self._save()
        logger.info(f"Product {sku} created (id={product.id})")
        return product

    async def get_product(self, product_id: int) -> Product:
        product = await self.products.find(product_id)
        if product is None:
            raise BusinessException("Product not found", status_code=404, code=404)
        return product

    async def update_product(self, product_id: int, changes: dict[str, Any]) -> Product:
        product = await self.get_product(product_id)
        if changes.get("category_id") is not None:
            await self._require_category(changes["category_id"])

        for field in UPDATABLE_PRODUCT_FIELDS:
            if field in changes:
                setattr(product, field, changes[field])
        product = await self.products.update(product)
        await self._save()
        return product

    async def delete_product(self, product_id: int) -> None:
        if not await self.products.delete(product_id):
            raise BusinessException("Product not found", status_code=404, code=404)
        await self._save()
        logger.info(f"Product {product_id} deleted")

    async def list_products(
        self,
        page: int,
        page_size: int,
        category_id: Optional[int] = None,
        min_price: Optional[float] = None,
    ) -> Tuple[List[Product], int]:
        return await self.products.search(page, page_size, category_id=category_id, min_price=min_price)

    async def _require_category(self, category_id: int) -> Category:
        category = await self.categories.find(category_id)
        if category is None:
            raise BusinessException("Category not found", status_code=404, code=404)
        return category

    async def _save(self) -> int:
        try:
            return await self.uow.save_changes()
        except IntegrityError as e:
            await self.uow.session.rollback()
            error_msg = str(e.orig) if getattr(e, "orig", None) else str(e)
            logger.warning(f"Database integrity error: {error_msg}")
            raise BusinessException("Data conflict", status_code=409, code=409)
