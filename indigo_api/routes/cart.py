"""Cart endpoints. All require a bearer token."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from indigo_api.routes.deps import require_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import cart

router = APIRouter(responses=ERROR_RESPONSES)


class CartAdd(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    color: str | None = None
    size: str | None = None


class CartUpdate(BaseModel):
    id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


@router.get("")
async def get_cart(user_id: str = Depends(require_user_id)) -> dict:
    return ok(await cart.get_cart(user_id))


@router.post("")
async def add_to_cart(body: CartAdd, user_id: str = Depends(require_user_id)) -> dict:
    data = await cart.add_to_cart(user_id, body.product_id, body.quantity, body.color, body.size)
    return ok(data, message="已加入购物车")


@router.put("")
async def update_cart(body: CartUpdate, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await cart.update_quantity(user_id, body.id, body.quantity))


@router.delete("")
async def remove_from_cart(
    item_id: str = Query(alias="id", min_length=1),
    user_id: str = Depends(require_user_id),
) -> dict:
    return ok(await cart.remove_item(user_id, item_id))
