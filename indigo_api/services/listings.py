"""Shop listing service.

Lifecycle of a listing: listed -> sold | withdrawn. Only listed listings
can be repriced, featured or withdrawn. At most one listed listing per
seller is featured; featuring one clears the others first.
"""

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import (
    ClothStatusError,
    DuplicateError,
    ForbiddenError,
    ListingSlotsFullError,
    NotFoundError,
    ValidationError,
)
from indigo_api.models import Cloth, ClothStatus, ListingStatus, ShopListing
from indigo_api.services.cloths import latest_scores
from indigo_api.services.game_rules import MAX_LISTING_PRICE
from indigo_api.services.inventory import move_to_inventory
from indigo_api.services.pricing import base_price, suggested_price_range
from indigo_api.services.shop import count_listed, get_or_create_shop, listing_to_dict
from indigo_api.stores.postgres import get_session, utcnow
from indigo_api.stores.redis import economy_lock

logger = logging.getLogger("uvicorn.error")


def validate_price(price: int | None, field: str = "price") -> int:
    if price is None or price <= 0 or price > MAX_LISTING_PRICE:
        raise ValidationError(
            f"{field} must be between 1 and {MAX_LISTING_PRICE}",
            field=field,
            user_message=f"价格需在 1-{MAX_LISTING_PRICE} 之间",
        )
    return price


async def _clear_featured(session: AsyncSession, seller_id: str, keep_id: str | None = None) -> None:
    stmt = update(ShopListing).where(
        ShopListing.seller_id == seller_id,
        ShopListing.is_featured.is_(True),
    )
    if keep_id:
        stmt = stmt.where(ShopListing.id != keep_id)
    await session.execute(stmt.values(is_featured=False))


async def _owned_listing(session: AsyncSession, user_id: str, listing_id: str) -> ShopListing:
    listing = await session.get(ShopListing, listing_id)
    if not listing:
        raise NotFoundError("商品", f"Listing not found: {listing_id}")
    if listing.seller_id != user_id:
        raise ForbiddenError(f"Listing {listing_id} belongs to another seller", user_message="这不是你的商品")
    return listing


def _require_listed(listing: ShopListing) -> None:
    if listing.status != ListingStatus.LISTED.value:
        raise ValidationError(
            f"Listing {listing.id} is {listing.status}",
            field="listing_id",
            user_message="商品不在出售中",
        )


async def create_listing(user_id: str, cloth_id: str, price: int, is_featured: bool = False) -> dict[str, Any]:
    """List an owned cloth for sale.

    Raises:
        ValidationError: Price out of range.
        ListingSlotsFullError: All listing slots are in use.
        NotFoundError / ForbiddenError: Cloth missing or not the caller's creation.
        DuplicateError: Cloth already listed.
        ClothStatusError: Cloth already sold to another player.
        InventoryFullError: Cloth has to enter a full inventory first.
    """
    validate_price(price)

    async with economy_lock(user_id):
        async with get_session() as session:
            shop = await get_or_create_shop(session, user_id)
            listed = await count_listed(session, user_id)
            if listed >= shop.max_listing_slots:
                raise ListingSlotsFullError(current=listed, max_slots=shop.max_listing_slots)

            cloth = await session.get(Cloth, cloth_id)
            if not cloth:
                raise NotFoundError("作品", f"Cloth not found: {cloth_id}")
            if cloth.creator_id != user_id:
                raise ForbiddenError(f"Cloth {cloth_id} is not {user_id}'s creation", user_message="只能出售自己的作品")
            if cloth.owner_id != user_id:
                raise ClothStatusError(f"Cloth {cloth_id} was sold to {cloth.owner_id}", user_message="该作品已售出")
            if cloth.status == ClothStatus.LISTED.value:
                raise DuplicateError(f"Cloth {cloth_id} is already listed", user_message="该作品已在出售中")

            await move_to_inventory(session, user_id, cloth)

            score = (await latest_scores(session, [cloth_id])).get(cloth_id)
            base = base_price(score.total_score, score.grade) if score else 0

            if is_featured:
                await _clear_featured(session, user_id)

            listing = ShopListing(
                seller_id=user_id,
                cloth_id=cloth_id,
                price=price,
                base_price=base,
                status=ListingStatus.LISTED.value,
                is_featured=is_featured,
            )
            session.add(listing)
            cloth.status = ClothStatus.LISTED.value
            await session.flush()

            logger.info(f"[listings] {user_id} listed {cloth_id} at {price} (base {base})")
            data = listing_to_dict(listing, cloth, score)
            if base:
                low, high = suggested_price_range(base)
                data["suggested_price"] = {"min": low, "max": high}
            return data


async def withdraw_listing(user_id: str, listing_id: str) -> dict[str, Any]:
    async with get_session() as session:
        listing = await session.get(ShopListing, listing_id)
        if not listing or listing.seller_id != user_id:
            raise NotFoundError("商品", f"Listing not found: {listing_id}")
        _require_listed(listing)

        listing.status = ListingStatus.WITHDRAWN.value
        listing.withdrawn_at = utcnow()
        listing.is_featured = False
        cloth = await session.get(Cloth, listing.cloth_id)
        if cloth:
            cloth.status = ClothStatus.IN_INVENTORY.value
        await session.flush()
        return listing_to_dict(listing, cloth)


async def update_price(user_id: str, listing_id: str, new_price: int) -> dict[str, Any]:
    validate_price(new_price, field="new_price")
    async with get_session() as session:
        listing = await _owned_listing(session, user_id, listing_id)
        _require_listed(listing)
        listing.price = new_price
        await session.flush()
        return listing_to_dict(listing)


async def toggle_featured(user_id: str, listing_id: str) -> dict[str, Any]:
    async with get_session() as session:
        listing = await _owned_listing(session, user_id, listing_id)
        _require_listed(listing)

        if listing.is_featured:
            listing.is_featured = False
        else:
            await _clear_featured(session, user_id, keep_id=listing.id)
            listing.is_featured = True
        await session.flush()
        return listing_to_dict(listing)
