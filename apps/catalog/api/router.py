from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from framework.config import settings
from framework.repository import AsyncUnitOfWork
from framework.repository.dependencies import get_uow
from framework.response import ResponseModel
from ..service import CatalogService

router = APIRouter()


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class ProductCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    category_id: Optional[int] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    category_id: Optional[int] = None  # null moves the product out of its category

    @field_validator('name', 'price', 'is_active')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


def get_catalog_service(uow: AsyncUnitOfWork = Depends(get_uow)) -> CatalogService:
    """Dependency: create CatalogService."""
    return CatalogService(uow)


@router.post("/categories")
async def create_category(data: CategoryCreate, service: CatalogService = Depends(get_catalog_service)):
    category = await service.create_category(data.name)
    return ResponseModel.success(data=category.model_dump(mode="json"))


@router.get("/categories")
async def list_categories(service: CatalogService = Depends(get_catalog_service)):
    categories = await service.list_categories()
    return ResponseModel.success(data=[c.model_dump(mode="json") for c in categories])


@router.post("/products")
async def create_product(data: ProductCreate, service: CatalogService = Depends(get_catalog_service)):
    product = await service.create_product(data.sku, data.name, data.price, data.category_id)
    return ResponseModel.success(data=product.model_dump(mode="json"))


@router.get("/products")
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    category_id: Optional[int] = None,
    min_price: Optional[float] = Query(None, ge=0),
    service: CatalogService = Depends(get_catalog_service),
):
    """Paged listing of active products."""
    products, total = await service.list_products(page, page_size, category_id, min_price)
    return ResponseModel.page([p.model_dump(mode="json") for p in products], total, page, page_size)


@router.get("/products/{product_id}")
async def get_product(product_id: int, service: CatalogService = Depends(get_catalog_service)):
    product = await service.get_product(product_id)
    return ResponseModel.success(data=product.model_dump(mode="json"))


@router.put("/products/{product_id}")
async def update_product(
    product_id: int,
    data: ProductUpdate,
    service: CatalogService = Depends(get_catalog_service),
):
    product = await service.update_product(product_id, data.model_dump(exclude_unset=True))
    return ResponseModel.success(data=product.model_dump(mode="json"))


@router.delete("/products/{product_id}")
async def delete_product(product_id: int, service: CatalogService = Depends(get_catalog_service)):
    await service.delete_product(product_id)
    return ResponseModel.success(data={"id": product_id})
