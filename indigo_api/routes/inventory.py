"""Inventory endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from indigo_api.routes.deps import game_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import inventory

router = APIRouter(responses=ERROR_RESPONSES)


class InventoryAdd(BaseModel):
    cloth_id: str = Field(min_length=1)


@router.get("")
async def get_inventory(
    slot_type: str | None = Query(default=None, description="inventory | recent"),
    user_id: str = Depends(game_user_id),
) -> dict:
    return ok(await inventory.get_inventory(user_id, slot_type))


@router.post("")
@router.post("/save")
async def add_to_inventory(body: InventoryAdd, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await inventory.add_to_inventory(user_id, body.cloth_id), message="已放入背包")


@router.post("/save-recent")
async def add_to_recent(body: InventoryAdd, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await inventory.add_to_recent(user_id, body.cloth_id), message="已保存到最近创作")


@router.delete("")
async def remove_from_inventory(
    cloth_id: str = Query(min_length=1),
    user_id: str = Depends(game_user_id),
) -> dict:
    await inventory.remove_from_inventory(user_id, cloth_id)
    return ok(message="已移出背包")


@router.post("/expand")
async def expand_inventory(user_id: str = Depends(game_user_id)) -> dict:
    return ok(await inventory.expand_inventory(user_id), message="背包扩容成功")
