"""Product catalogue endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from indigo_api.routes.deps import require_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import catalog

router = APIRouter(responses=ERROR_RESPONSES)


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    price: float = Field(ge=0)
    category: str = Field(min_length=1, max_length=50)
    description: str | None = None
    original_price: float | None = Field(default=None, ge=0)
    image_url: str | None = None
    stock: int = Field(default=0, ge=0)
    colors: list[str] | None = None
    sizes: list[str] | None = None
    in_stock: bool = True
    slug: str | None = None


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    price: float | None = Field(default=None, ge=0)
    category: str | None = None
    description: str | None = None
    original_price: float | None = Field(default=None, ge=0)
    image_url: str | None = None
    stock: int | None = Field(default=None, ge=0)
    colors: list[str] | None = None
    sizes: list[str] | None = None
    in_stock: bool | None = None
    slug: str | None = None


@router.get("")
async def list_products(
    category: str | None = Query(default=None),
    in_stock: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict:
    return ok(await catalog.list_products(category=category, in_stock=in_stock, limit=limit, offset=offset))


@router.get("/{product_id}")
async def get_product(product_id: str) -> dict:
    return ok(await catalog.get_product(product_id))


@router.post("", status_code=201)
async def create_product(body: ProductCreate, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await catalog.create_product(body.model_dump()), message="商品创建成功")


@router.put("/{product_id}")
async def update_product(product_id: str, body: ProductUpdate, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await catalog.update_product(product_id, body.model_dump(exclude_unset=True)))


@router.delete("/{product_id}")
async def delete_product(product_id: str, user_id: str = Depends(require_user_id)) -> dict:
    await catalog.delete_product(product_id)
    return ok(message="商品已删除")
