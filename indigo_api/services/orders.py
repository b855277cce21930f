"""Order service.

Order creation is two writes: the order row, then its items. They commit
separately, so when the item insert fails the order row is deleted again
(compensating step) before the error is reported.
"""

from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from indigo_api.errors import DatabaseError, ValidationError
from indigo_api.models import Order, OrderItem, OrderStatus
from indigo_api.schemas.common import to_iso
from indigo_api.services.cart import remove_lines
from indigo_api.services.pricing import Coupon, apply_coupon
from indigo_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


@dataclass
class OrderLine:
    product_id: str
    quantity: int
    price: float
    color: str | None = None
    size: str | None = None


def _order_to_dict(order: Order, items: list[OrderItem]) -> dict[str, Any]:
    return {
        "id": order.id,
        "status": order.status,
        "total_amount": order.total_amount,
        "shipping_address": order.shipping_address,
        "payment_method": order.payment_method,
        "created_at": to_iso(order.created_at),
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "price": item.price,
                "color": item.color,
                "size": item.size,
            }
            for item in items
        ],
    }


async def list_orders(user_id: str) -> dict[str, Any]:
    """Orders of a user, newest first, with counts by status."""
    async with get_session() as session:
        result = await session.execute(
            select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc())
        )
        orders = list(result.scalars().all())

        items_by_order: dict[str, list[OrderItem]] = {o.id: [] for o in orders}
        if orders:
            item_result = await session.execute(
                select(OrderItem).where(OrderItem.order_id.in_(list(items_by_order)))
            )
            for item in item_result.scalars().all():
                items_by_order[item.order_id].append(item)

    return {
        "total": len(orders),
        "completed": sum(1 for o in orders if o.status == OrderStatus.COMPLETED.value),
        "pending": sum(1 for o in orders if o.status == OrderStatus.PENDING.value),
        "list": [_order_to_dict(o, items_by_order[o.id]) for o in orders],
    }


async def _insert_items(order_id: str, lines: list[OrderLine]) -> None:
    async with get_session() as session:
        session.add_all(
            [
                OrderItem(
                    order_id=order_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=line.price,
                    color=line.color,
                    size=line.size,
                )
                for line in lines
            ]
        )


async def _delete_order(order_id: str) -> None:
    async with get_session() as session:
        await session.execute(delete(Order).where(Order.id == order_id))


async def create_order(
    user_id: str,
    lines: list[OrderLine],
    address: str | None,
    total_amount: float | None = None,
    cart_item_ids: list[str] | None = None,
    payment_method: str | None = None,
    coupon: Coupon | None = None,
) -> str:
    """Place an order and return its id.

    Raises:
        ValidationError: No items, no address, or an unusable coupon.
        DatabaseError: The items could not be stored (the order is rolled back).
    """
    if not lines:
        raise ValidationError("Order has no items", field="items", user_message="订单商品不能为空")
    if not address or not address.strip():
        raise ValidationError("Shipping address is required", field="address", user_message="请填写收货地址")
    for line in lines:
        if line.quantity < 1 or line.price < 0:
            raise ValidationError("Invalid order line", field="items")

    if total_amount is None:
        total_amount = round(sum(line.price * line.quantity for line in lines), 2)
    if coupon is not None:
        total_amount = apply_coupon(total_amount, coupon)

    async with get_session() as session:
        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            total_amount=total_amount,
            shipping_address=address.strip(),
            payment_method=payment_method,
        )
        session.add(order)
        await session.flush()
        order_id = order.id

    try:
        await _insert_items(order_id, lines)
    except SQLAlchemyError as e:
        logger.exception(f"[orders] item insert failed for {order_id}, rolling back order")
        await _delete_order(order_id)
        raise DatabaseError(f"Failed to create order items: {e}", user_message="创建订单失败") from e

    if cart_item_ids:
        async with get_session() as session:
            removed = await remove_lines(session, user_id, cart_item_ids)
        logger.info(f"[orders] order {order_id} cleared {removed} cart lines")

    return order_id
