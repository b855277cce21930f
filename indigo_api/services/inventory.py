"""Inventory service.

A user's cloths live in two slot types:
- recent: rolling list of the last MAX_RECENT creations (oldest evicted)
- inventory: kept cloths, capped by the shop's max_inventory_size

Capacity counts only inventory slots. Listed cloths stay in the inventory
until they are sold or withdrawn.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import ClothStatusError, InventoryFullError, NotFoundError, ValidationError
from indigo_api.models import Cloth, ClothStatus, SlotType, UserInventory
from indigo_api.schemas.common import to_iso
from indigo_api.services.cloths import cloth_to_dict, get_owned_cloth, latest_scores, load_cloths
from indigo_api.services.game_rules import MAX_RECENT
from indigo_api.services.player import debit, get_or_create_player
from indigo_api.services.pricing import inventory_expansion
from indigo_api.services.shop import get_or_create_shop
from indigo_api.stores.postgres import count_rows, get_session, utcnow
from indigo_api.stores.redis import economy_lock

logger = logging.getLogger("uvicorn.error")


async def _entry(session: AsyncSession, user_id: str, cloth_id: str) -> UserInventory | None:
    result = await session.execute(
        select(UserInventory).where(UserInventory.user_id == user_id, UserInventory.cloth_id == cloth_id)
    )
    return result.scalar_one_or_none()


async def count_slot(session: AsyncSession, user_id: str, slot_type: SlotType) -> int:
    return await count_rows(
        session,
        UserInventory,
        UserInventory.user_id == user_id,
        UserInventory.slot_type == slot_type.value,
    )


async def ensure_capacity(session: AsyncSession, user_id: str) -> None:
    """Raise InventoryFullError when no inventory slot is free."""
    shop = await get_or_create_shop(session, user_id)
    current = await count_slot(session, user_id, SlotType.INVENTORY)
    if current >= shop.max_inventory_size:
        raise InventoryFullError(current=current, max_size=shop.max_inventory_size)


async def save_to_recent(session: AsyncSession, user_id: str, cloth: Cloth) -> None:
    """Put a freshly scored cloth into the recent list.

    Cloths already in the inventory are left alone; a cloth already in
    recent only gets its timestamp refreshed.
    """
    entry = await _entry(session, user_id, cloth.id)
    if entry:
        if entry.slot_type == SlotType.RECENT.value:
            entry.added_at = utcnow()
            cloth.is_recent = True
        return

    result = await session.execute(
        select(UserInventory)
        .where(UserInventory.user_id == user_id, UserInventory.slot_type == SlotType.RECENT.value)
        .order_by(UserInventory.added_at.asc())
    )
    recent = list(result.scalars().all())

    # Evict oldest until there is room for one more
    while len(recent) >= MAX_RECENT:
        oldest = recent.pop(0)
        evicted = await session.get(Cloth, oldest.cloth_id)
        if evicted:
            evicted.is_recent = False
        await session.delete(oldest)
        logger.info(f"[inventory] evicted {oldest.cloth_id} from recent of {user_id}")

    session.add(UserInventory(user_id=user_id, cloth_id=cloth.id, slot_type=SlotType.RECENT.value))
    cloth.is_recent = True
    await session.flush()


async def move_to_inventory(session: AsyncSession, user_id: str, cloth: Cloth) -> None:
    """Move a cloth into the inventory (from recent, or fresh).

    Raises:
        InventoryFullError: No free inventory slot.
    """
    entry = await _entry(session, user_id, cloth.id)
    if entry and entry.slot_type == SlotType.INVENTORY.value:
        return

    await ensure_capacity(session, user_id)
    if entry:
        entry.slot_type = SlotType.INVENTORY.value
        entry.added_at = utcnow()
    else:
        session.add(UserInventory(user_id=user_id, cloth_id=cloth.id, slot_type=SlotType.INVENTORY.value))

    cloth.is_recent = False
    if cloth.status == ClothStatus.DRAFT.value:
        cloth.status = ClothStatus.IN_INVENTORY.value
    await session.flush()


# ============================================================
# API operations
# ============================================================


async def get_inventory(user_id: str, slot_type: str | None = None) -> dict[str, Any]:
    if slot_type is not None and slot_type not in {s.value for s in SlotType}:
        raise ValidationError(f"Unknown slot_type: {slot_type}", field="slot_type")

    async with get_session() as session:
        shop = await get_or_create_shop(session, user_id)
        query = select(UserInventory).where(UserInventory.user_id == user_id)
        result = await session.execute(query.order_by(UserInventory.added_at.desc()))
        entries = list(result.scalars().all())

        cloth_ids = [e.cloth_id for e in entries]
        cloths = await load_cloths(session, cloth_ids)
        scores = await latest_scores(session, cloth_ids)

    def item(entry: UserInventory) -> dict[str, Any]:
        return {
            "id": entry.id,
            "cloth_id": entry.cloth_id,
            "slot_type": entry.slot_type,
            "added_at": to_iso(entry.added_at),
            "cloth": cloth_to_dict(cloths.get(entry.cloth_id), scores.get(entry.cloth_id)),
        }

    recent = [item(e) for e in entries if e.slot_type == SlotType.RECENT.value]
    inventory = [item(e) for e in entries if e.slot_type == SlotType.INVENTORY.value]
    return {
        "recent": recent if slot_type in (None, SlotType.RECENT.value) else [],
        "inventory": inventory if slot_type in (None, SlotType.INVENTORY.value) else [],
        "capacity": {
            "current": len(inventory),
            "max": shop.max_inventory_size,
            "recentCount": len(recent),
            "maxRecent": MAX_RECENT,
        },
    }


async def add_to_inventory(user_id: str, cloth_id: str) -> dict[str, Any]:
    async with get_session() as session:
        cloth = await get_owned_cloth(session, user_id, cloth_id)
        await move_to_inventory(session, user_id, cloth)
        return cloth_to_dict(cloth)


async def add_to_recent(user_id: str, cloth_id: str) -> dict[str, Any]:
    """Explicitly save an owned cloth to recent (no-op when already in the inventory)."""
    async with get_session() as session:
        cloth = await get_owned_cloth(session, user_id, cloth_id)
        await save_to_recent(session, user_id, cloth)
        return cloth_to_dict(cloth)


async def remove_from_inventory(user_id: str, cloth_id: str) -> None:
    """Drop a cloth from the user's slots and put it back to draft.

    Raises:
        NotFoundError: The cloth is not in the user's inventory.
        ClothStatusError: The cloth is currently listed.
    """
    async with get_session() as session:
        entry = await _entry(session, user_id, cloth_id)
        if not entry:
            raise NotFoundError("背包物品", f"Cloth {cloth_id} is not in the inventory of {user_id}")
        cloth = await session.get(Cloth, cloth_id)
        if cloth and cloth.status == ClothStatus.LISTED.value:
            raise ClothStatusError(f"Cloth {cloth_id} is listed", user_message="作品正在出售中，请先下架")
        await session.delete(entry)
        if cloth:
            cloth.status = ClothStatus.DRAFT.value
            cloth.is_recent = False


async def expand_inventory(user_id: str) -> dict[str, Any]:
    cost, slots = inventory_expansion()
    async with economy_lock(user_id):
        async with get_session() as session:
            player = await get_or_create_player(session, user_id)
            new_currency = debit(player, cost)
            shop = await get_or_create_shop(session, user_id)
            shop.max_inventory_size += slots
            await session.flush()
            logger.info(f"[inventory] {user_id} expanded inventory to {shop.max_inventory_size}")
            return {"newMaxSize": shop.max_inventory_size, "newCurrency": new_currency, "cost": cost}
