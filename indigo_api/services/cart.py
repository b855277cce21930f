"""Shopping cart service.

Lines are unique per (user, product, color, size). Adding the same variant
again merges quantities, and the merged quantity is checked against stock.
Every mutation returns the refreshed cart.
"""

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import NotFoundError, ValidationError
from indigo_api.models import CartItem, Product
from indigo_api.schemas.common import to_iso
from indigo_api.services.catalog import product_to_dict
from indigo_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


async def _load_cart(session: AsyncSession, user_id: str) -> dict[str, Any]:
    result = await session.execute(
        select(CartItem, Product)
        .join(Product, Product.id == CartItem.product_id)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.created_at.desc())
    )

    items = []
    total_items = 0
    total_price = 0.0
    for line, product in result.all():
        items.append(
            {
                "id": line.id,
                "product_id": line.product_id,
                "quantity": line.quantity,
                "color": line.color,
                "size": line.size,
                "created_at": to_iso(line.created_at),
                "product": product_to_dict(product),
            }
        )
        total_items += line.quantity
        total_price += product.price * line.quantity

    return {"items": items, "totalItems": total_items, "totalPrice": round(total_price, 2)}


async def get_cart(user_id: str) -> dict[str, Any]:
    async with get_session() as session:
        return await _load_cart(session, user_id)


async def add_to_cart(
    user_id: str,
    product_id: str,
    quantity: int = 1,
    color: str | None = None,
    size: str | None = None,
) -> dict[str, Any]:
    """Add a product variant to the cart, merging with an existing line.

    Raises:
        NotFoundError: Product does not exist.
        ValidationError: Out of stock, or the (merged) quantity exceeds stock.
    """
    if quantity < 1:
        raise ValidationError("quantity must be >= 1", field="quantity")

    async with get_session() as session:
        product = await session.get(Product, product_id)
        if not product:
            raise NotFoundError("商品", f"Product not found: {product_id}")
        if not product.in_stock or product.stock <= 0:
            raise ValidationError("Product is out of stock", field="product_id", user_message="商品已售罄")
        if quantity > product.stock:
            raise ValidationError(
                f"Requested {quantity} exceeds stock {product.stock}",
                field="quantity",
                user_message=f"库存不足，仅剩 {product.stock} 件",
            )

        result = await session.execute(
            select(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
                CartItem.color.is_(None) if color is None else CartItem.color == color,
                CartItem.size.is_(None) if size is None else CartItem.size == size,
            )
        )
        line = result.scalar_one_or_none()

        if line:
            merged = line.quantity + quantity
            if merged > product.stock:
                raise ValidationError(
                    f"Merged quantity {merged} exceeds stock {product.stock}",
                    field="quantity",
                    user_message=f"库存不足，仅剩 {product.stock} 件",
                )
            line.quantity = merged
        else:
            session.add(
                CartItem(user_id=user_id, product_id=product_id, quantity=quantity, color=color, size=size)
            )

        await session.flush()
        return await _load_cart(session, user_id)


async def update_quantity(user_id: str, item_id: str, quantity: int) -> dict[str, Any]:
    if quantity < 1:
        raise ValidationError("quantity must be >= 1", field="quantity")

    async with get_session() as session:
        line = await session.get(CartItem, item_id)
        if not line or line.user_id != user_id:
            raise NotFoundError("购物车商品", f"Cart item not found: {item_id}")
        line.quantity = quantity
        await session.flush()
        return await _load_cart(session, user_id)


async def remove_item(user_id: str, item_id: str) -> dict[str, Any]:
    async with get_session() as session:
        line = await session.get(CartItem, item_id)
        if not line or line.user_id != user_id:
            raise NotFoundError("购物车商品", f"Cart item not found: {item_id}")
        await session.delete(line)
        await session.flush()
        return await _load_cart(session, user_id)


async def remove_lines(session: AsyncSession, user_id: str, item_ids: list[str]) -> int:
    """Delete the given cart lines owned by `user_id`. Returns rows removed."""
    if not item_ids:
        return 0
    result = await session.execute(
        delete(CartItem).where(CartItem.user_id == user_id, CartItem.id.in_(item_ids))
    )
    return result.rowcount or 0
