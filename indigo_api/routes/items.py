"""Item shop endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from indigo_api.routes.deps import game_user_id, optional_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import items

router = APIRouter(responses=ERROR_RESPONSES)


class ItemQuantity(BaseModel):
    item_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1, le=items.MAX_PURCHASE_QUANTITY)


class ItemRef(BaseModel):
    item_id: str = Field(min_length=1)


@router.get("")
async def list_items(user_id: str | None = Depends(optional_user_id)) -> dict:
    return ok(await items.list_items(user_id))


@router.post("/purchase")
async def purchase_item(body: ItemQuantity, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await items.purchase_item(user_id, body.item_id, body.quantity), message="购买成功")


@router.post("/use")
async def use_item(body: ItemQuantity, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await items.use_item(user_id, body.item_id, body.quantity))


@router.post("/toggle")
async def toggle_item(body: ItemRef, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await items.toggle_item(user_id, body.item_id))
