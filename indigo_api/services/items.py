"""Item shop service.

The catalogue is static. Permanent items are owned once and can be toggled
active; consumables stack and are spent with `use_item`. Experience potions
bought from the shop are drunk on the spot.
"""

from dataclasses import asdict, dataclass
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import NotFoundError, ValidationError
from indigo_api.models import UserItem
from indigo_api.services.player import debit, get_or_create_player, grant_experience
from indigo_api.stores.postgres import get_session
from indigo_api.stores.redis import economy_lock

logger = logging.getLogger("uvicorn.error")

MAX_PURCHASE_QUANTITY = 99
EXP_POTION_EXP = 50


@dataclass(frozen=True)
class ShopItem:
    id: str
    name: str
    description: str
    icon: str
    price: int
    type: str  # consumable | permanent
    effect: str

    @property
    def is_permanent(self) -> bool:
        return self.type == "permanent"


ITEMS: dict[str, ShopItem] = {
    item.id: item
    for item in (
        ShopItem("lucky_dye", "幸运染料", "使用后下次评分有10%概率提升一个等级", "🍀", 50, "consumable", "score_boost"),
        ShopItem("golden_frame", "金色画框", "为作品添加金色边框，提升展示效果", "🖼️", 100, "permanent", "frame_gold"),
        ShopItem("silver_frame", "银色画框", "为作品添加银色边框，简约大方", "🪞", 60, "permanent", "frame_silver"),
        ShopItem("vip_badge", "VIP徽章", "商店名称旁显示VIP标识，彰显身份", "⭐", 500, "permanent", "vip_badge"),
        ShopItem("extra_recent", "最近创作+1", "永久增加1个最近创作槽位", "📦", 200, "permanent", "recent_slot"),
        ShopItem("exp_potion", "经验药水", "使用后获得50点经验值", "🧪", 30, "consumable", "exp_boost"),
    )
}


def get_item(item_id: str) -> ShopItem:
    item = ITEMS.get(item_id)
    if not item:
        raise NotFoundError("道具", f"Unknown item: {item_id}")
    return item


def _check_quantity(quantity: int) -> None:
    if not 1 <= quantity <= MAX_PURCHASE_QUANTITY:
        raise ValidationError(f"quantity must be 1-{MAX_PURCHASE_QUANTITY}", field="quantity")


async def _user_item(session: AsyncSession, user_id: str, item_id: str) -> UserItem | None:
    result = await session.execute(
        select(UserItem).where(UserItem.user_id == user_id, UserItem.item_id == item_id)
    )
    return result.scalar_one_or_none()


async def list_items(user_id: str | None) -> dict[str, Any]:
    user_items: dict[str, int] = {}
    active: list[str] = []
    if user_id:
        async with get_session() as session:
            result = await session.execute(select(UserItem).where(UserItem.user_id == user_id))
            for row in result.scalars().all():
                user_items[row.item_id] = row.quantity
                if row.is_active:
                    active.append(row.item_id)
    return {"items": [asdict(i) for i in ITEMS.values()], "userItems": user_items, "activeItems": active}


async def purchase_item(user_id: str, item_id: str, quantity: int = 1) -> dict[str, Any]:
    """Buy an item.

    Raises:
        NotFoundError: Unknown item.
        ValidationError: Bad quantity, or a permanent item already owned (ALREADY_OWNED).
        InsufficientCurrencyError: Not enough currency.
    """
    item = get_item(item_id)
    _check_quantity(quantity)
    if item.is_permanent:
        quantity = 1

    async with economy_lock(user_id):
        async with get_session() as session:
            owned = await _user_item(session, user_id, item_id)
            if item.is_permanent and owned:
                raise ValidationError(
                    f"Item {item_id} already owned",
                    field="item_id",
                    code="ALREADY_OWNED",
                    user_message="你已拥有该道具",
                )

            player = await get_or_create_player(session, user_id)
            new_currency = debit(player, item.price * quantity)

            data: dict[str, Any] = {"item_id": item_id, "newCurrency": new_currency}
            if item.effect == "exp_boost":
                progress = grant_experience(player, EXP_POTION_EXP * quantity)
                data.update(quantity=owned.quantity if owned else 0, leveled_up=progress.leveled_up, level=progress.level)
            elif owned:
                owned.quantity += quantity
                data["quantity"] = owned.quantity
            else:
                session.add(UserItem(user_id=user_id, item_id=item_id, quantity=quantity, is_active=item.is_permanent))
                data["quantity"] = quantity

            await session.flush()
            logger.info(f"[items] {user_id} bought {quantity}x {item_id}")
            return data


async def use_item(user_id: str, item_id: str, quantity: int = 1) -> dict[str, Any]:
    item = get_item(item_id)
    _check_quantity(quantity)
    if item.is_permanent:
        raise ValidationError(f"Item {item_id} is permanent", field="item_id", user_message="永久道具无需使用")

    async with get_session() as session:
        owned = await _user_item(session, user_id, item_id)
        held = owned.quantity if owned else 0
        if held < quantity:
            raise ValidationError(
                f"Need {quantity} of {item_id}, have {held}",
                field="quantity",
                code="INSUFFICIENT_ITEMS",
                user_message="道具数量不足",
            )

        data: dict[str, Any] = {"item_id": item_id, "effect": item.effect}
        if item.effect == "exp_boost":
            player = await get_or_create_player(session, user_id)
            progress = grant_experience(player, EXP_POTION_EXP * quantity)
            data.update(exp_gained=EXP_POTION_EXP * quantity, leveled_up=progress.leveled_up, level=progress.level)

        owned.quantity -= quantity
        if owned.quantity <= 0:
            await session.delete(owned)
        data["remaining"] = max(0, owned.quantity)
        return data


async def toggle_item(user_id: str, item_id: str) -> dict[str, Any]:
    item = get_item(item_id)
    if not item.is_permanent:
        raise ValidationError(f"Item {item_id} is not permanent", field="item_id", user_message="只有永久道具可以切换")

    async with get_session() as session:
        owned = await _user_item(session, user_id, item_id)
        if not owned:
            raise ValidationError(
                f"Item {item_id} not owned",
                field="item_id",
                code="NOT_OWNED",
                user_message="你还没有该道具",
            )
        owned.is_active = not owned.is_active
        return {"item_id": item_id, "is_active": owned.is_active}
