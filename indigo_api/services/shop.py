"""In-game shop service.

A shop is created lazily with defaults the first time it is needed. Besides
the storefront settings it carries the owner's inventory capacity and number
of listing slots.
"""

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import ValidationError
from indigo_api.models import Cloth, ListingStatus, ShopListing, UserShop
from indigo_api.schemas.common import to_iso
from indigo_api.services.cloths import cloth_to_dict, latest_scores, load_cloths
from indigo_api.services.game_rules import (
    DEFAULT_INVENTORY_SIZE,
    DEFAULT_LISTING_SLOTS,
    DEFAULT_SHOP_NAME,
    MAX_LISTING_SLOTS,
    SHOP_THEMES,
)
from indigo_api.services.player import debit, get_or_create_player
from indigo_api.services.pricing import listing_expansion_cost, next_listing_expansion_cost
from indigo_api.stores.postgres import count_rows, get_session
from indigo_api.stores.redis import economy_lock

logger = logging.getLogger("uvicorn.error")

MAX_SHOP_NAME_LENGTH = 50


def shop_to_dict(shop: UserShop) -> dict[str, Any]:
    return {
        "id": shop.id,
        "user_id": shop.user_id,
        "shop_name": shop.shop_name,
        "shop_level": shop.shop_level,
        "max_inventory_size": shop.max_inventory_size,
        "max_listing_slots": shop.max_listing_slots,
        "theme": shop.theme,
        "character_customization": (
            json.loads(shop.character_customization_json) if shop.character_customization_json else {}
        ),
        "total_sales": shop.total_sales,
        "total_revenue": shop.total_revenue,
        "created_at": to_iso(shop.created_at),
        "updated_at": to_iso(shop.updated_at),
    }


def listing_to_dict(listing: ShopListing, cloth: Cloth | None = None, score: Any = None) -> dict[str, Any]:
    return {
        "id": listing.id,
        "seller_id": listing.seller_id,
        "cloth_id": listing.cloth_id,
        "buyer_id": listing.buyer_id,
        "price": listing.price,
        "base_price": listing.base_price,
        "status": listing.status,
        "is_featured": listing.is_featured,
        "listed_at": to_iso(listing.listed_at),
        "sold_at": to_iso(listing.sold_at),
        "withdrawn_at": to_iso(listing.withdrawn_at),
        "cloth": cloth_to_dict(cloth, score),
    }


async def get_or_create_shop(session: AsyncSession, user_id: str) -> UserShop:
    result = await session.execute(select(UserShop).where(UserShop.user_id == user_id))
    shop = result.scalar_one_or_none()
    if shop:
        return shop
    shop = UserShop(
        user_id=user_id,
        shop_name=DEFAULT_SHOP_NAME,
        shop_level=1,
        max_inventory_size=DEFAULT_INVENTORY_SIZE,
        max_listing_slots=DEFAULT_LISTING_SLOTS,
        theme="traditional",
        total_sales=0,
        total_revenue=0,
    )
    session.add(shop)
    await session.flush()
    logger.info(f"[shop] created shop for {user_id}")
    return shop


async def count_listed(session: AsyncSession, user_id: str) -> int:
    return await count_rows(
        session,
        ShopListing,
        ShopListing.seller_id == user_id,
        ShopListing.status == ListingStatus.LISTED.value,
    )


async def get_shop(user_id: str) -> dict[str, Any]:
    """The shop with its listed listings (featured first, then newest)."""
    async with get_session() as session:
        shop = await get_or_create_shop(session, user_id)
        result = await session.execute(
            select(ShopListing)
            .where(ShopListing.seller_id == user_id, ShopListing.status == ListingStatus.LISTED.value)
            .order_by(ShopListing.is_featured.desc(), ShopListing.listed_at.desc())
        )
        listings = list(result.scalars().all())
        cloth_ids = [listing.cloth_id for listing in listings]
        cloths = await load_cloths(session, cloth_ids)
        scores = await latest_scores(session, cloth_ids)

        return {
            "shop": shop_to_dict(shop),
            "listingCount": len(listings),
            "listings": [
                listing_to_dict(listing, cloths.get(listing.cloth_id), scores.get(listing.cloth_id))
                for listing in listings
            ],
        }


async def update_shop(
    user_id: str,
    shop_name: str | None = None,
    theme: str | None = None,
    character_customization: dict[str, Any] | None = None,
) -> dict[str, Any]:
    if shop_name is not None:
        shop_name = shop_name.strip()
        if not 1 <= len(shop_name) <= MAX_SHOP_NAME_LENGTH:
            raise ValidationError(
                f"shop_name must be 1-{MAX_SHOP_NAME_LENGTH} characters",
                field="shop_name",
                user_message=f"店铺名称需为 1-{MAX_SHOP_NAME_LENGTH} 个字符",
            )
    if theme is not None and theme not in SHOP_THEMES:
        raise ValidationError(f"Unknown theme: {theme}", field="theme", user_message="无效的店铺主题")

    async with get_session() as session:
        shop = await get_or_create_shop(session, user_id)
        if shop_name is not None:
            shop.shop_name = shop_name
        if theme is not None:
            shop.theme = theme
        if character_customization:
            current = json.loads(shop.character_customization_json) if shop.character_customization_json else {}
            current.update(character_customization)
            shop.character_customization_json = json.dumps(current, ensure_ascii=False)
        await session.flush()
        return shop_to_dict(shop)


# ============================================================
# Listing slot expansion
# ============================================================


async def listing_expansion_info(user_id: str) -> dict[str, Any]:
    async with get_session() as session:
        shop = await get_or_create_shop(session, user_id)
        player = await get_or_create_player(session, user_id)
        next_cost = next_listing_expansion_cost(shop.max_listing_slots)
        return {
            "currentSlots": shop.max_listing_slots,
            "maxSlots": MAX_LISTING_SLOTS,
            "canExpand": next_cost is not None,
            "nextExpansionCost": next_cost,
            "currency": player.currency,
        }


async def expand_listing_slots(user_id: str) -> dict[str, Any]:
    """Buy one more listing slot.

    Raises:
        ValidationError: Already at the maximum.
        InsufficientCurrencyError: Not enough currency.
    """
    async with economy_lock(user_id):
        async with get_session() as session:
            shop = await get_or_create_shop(session, user_id)
            if shop.max_listing_slots >= MAX_LISTING_SLOTS:
                raise ValidationError(
                    f"Listing slots already at maximum ({MAX_LISTING_SLOTS})",
                    field="max_listing_slots",
                    user_message="上架位已达上限",
                )
            cost = listing_expansion_cost(shop.max_listing_slots)
            player = await get_or_create_player(session, user_id)
            new_currency = debit(player, cost)
            shop.max_listing_slots += 1
            await session.flush()
            logger.info(f"[shop] {user_id} expanded listings to {shop.max_listing_slots} for {cost}")
            return {
                "newSlots": shop.max_listing_slots,
                "newCurrency": new_currency,
                "cost": cost,
                "nextExpansionCost": next_listing_expansion_cost(shop.max_listing_slots),
            }
