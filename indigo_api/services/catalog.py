"""Product catalogue service.

Products are listed newest first and always carry the discount display
fields (`discountPercent`, `savings`) computed by services.pricing.
"""

import json
import logging
from typing import Any

from sqlalchemy import select

from indigo_api.errors import NotFoundError, ValidationError
from indigo_api.models import Product
from indigo_api.schemas.common import to_iso
from indigo_api.services.pricing import discount_percent, savings
from indigo_api.stores.postgres import count_rows, get_session

logger = logging.getLogger("uvicorn.error")

_JSON_FIELDS = {"colors": "colors_json", "sizes": "sizes_json"}
_UPDATABLE = {
    "name",
    "description",
    "category",
    "price",
    "original_price",
    "image_url",
    "stock",
    "in_stock",
    "slug",
}


def product_to_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "slug": product.slug,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "price": product.price,
        "original_price": product.original_price,
        "discountPercent": discount_percent(product.price, product.original_price),
        "savings": savings(product.price, product.original_price),
        "image_url": product.image_url,
        "stock": product.stock,
        "in_stock": product.in_stock,
        "colors": json.loads(product.colors_json) if product.colors_json else [],
        "sizes": json.loads(product.sizes_json) if product.sizes_json else [],
        "created_at": to_iso(product.created_at),
        "updated_at": to_iso(product.updated_at),
    }


def _apply_fields(product: Product, fields: dict[str, Any]) -> None:
    for key, value in fields.items():
        if key in _JSON_FIELDS:
            setattr(product, _JSON_FIELDS[key], json.dumps(value, ensure_ascii=False) if value is not None else None)
        elif key in _UPDATABLE:
            setattr(product, key, value)


async def list_products(
    category: str | None = None,
    in_stock: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> dict[str, Any]:
    filters = []
    if category:
        filters.append(Product.category == category)
    if in_stock is not None:
        filters.append(Product.in_stock.is_(in_stock))

    async with get_session() as session:
        total = await count_rows(session, Product, *filters)
        result = await session.execute(
            select(Product)
            .where(*filters)
            .order_by(Product.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        products = [product_to_dict(p) for p in result.scalars().all()]

    return {"products": products, "total": total, "limit": limit, "offset": offset}


async def get_product(product_id: str) -> dict[str, Any]:
    async with get_session() as session:
        product = await session.get(Product, product_id)
        if not product:
            raise NotFoundError("商品", f"Product not found: {product_id}")
        return product_to_dict(product)


async def create_product(fields: dict[str, Any]) -> dict[str, Any]:
    """Create a product. `name`, `price` and `category` are required."""
    for required in ("name", "category"):
        if not fields.get(required):
            raise ValidationError(f"{required} is required", field=required)
    if fields.get("price") is None or fields["price"] < 0:
        raise ValidationError("price must be >= 0", field="price")

    product = Product(name=fields["name"], category=fields["category"], price=fields["price"])
    _apply_fields(product, {"in_stock": True, **fields})

    async with get_session() as session:
        session.add(product)
        await session.flush()
        logger.info(f"[catalog] created product {product.id}")
        return product_to_dict(product)


async def update_product(product_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Partial update: only keys present in `fields` change."""
    if "price" in fields and fields["price"] is not None and fields["price"] < 0:
        raise ValidationError("price must be >= 0", field="price")

    async with get_session() as session:
        product = await session.get(Product, product_id)
        if not product:
            raise NotFoundError("商品", f"Product not found: {product_id}")
        _apply_fields(product, fields)
        await session.flush()
        return product_to_dict(product)


async def delete_product(product_id: str) -> None:
    async with get_session() as session:
        product = await session.get(Product, product_id)
        if not product:
            raise NotFoundError("商品", f"Product not found: {product_id}")
        await session.delete(product)
    logger.info(f"[catalog] deleted product {product_id}")
