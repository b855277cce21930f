"""Market service.

The market shows three fixed system listings next to other players' listed
listings. Purchases run under the buyer's economy lock and inside a single
DB transaction, so currency and cloth move together or not at all.

Purchase flow (player listing):
1. Listing must exist and be listed; buyer must not be the seller
2. Buyer needs the currency and a free inventory slot
3. Debit buyer, credit seller
4. Transfer cloth ownership and inventory rows
5. Mark listing sold, bump seller shop totals, record transaction
"""

from dataclasses import dataclass
import json
import logging
from typing import Any

from sqlalchemy import delete, select

from indigo_api.errors import NotFoundError, ValidationError
from indigo_api.models import (
    Cloth,
    ClothScore,
    ClothStatus,
    ListingStatus,
    MarketTransaction,
    ShopListing,
    TransactionType,
    UserInventory,
)
from indigo_api.schemas.common import to_iso
from indigo_api.services.cloths import cloth_to_dict, latest_scores, load_cloths
from indigo_api.services.game_rules import grade_rank
from indigo_api.services.ids import generate_id
from indigo_api.services.inventory import ensure_capacity, move_to_inventory
from indigo_api.services.player import credit, debit, get_or_create_player
from indigo_api.services.pricing import base_price
from indigo_api.services.shop import get_or_create_shop, listing_to_dict
from indigo_api.stores.postgres import get_session, utcnow
from indigo_api.stores.redis import economy_lock

logger = logging.getLogger("uvicorn.error")

SYSTEM_SELLER_ID = "system"
SYSTEM_SHOP_NAME = "蓝染坊·官方店"
SYSTEM_LISTING_PREFIX = "system-listing-"
DEFAULT_MARKET_LIMIT = 50


@dataclass(frozen=True)
class SystemListing:
    id: str
    name: str
    grade: str
    total_score: int
    price: int
    is_featured: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": SYSTEM_SELLER_ID,
            "seller_name": SYSTEM_SHOP_NAME,
            "cloth_id": None,
            "price": self.price,
            "base_price": base_price(self.total_score, self.grade),
            "status": ListingStatus.LISTED.value,
            "is_featured": self.is_featured,
            "is_system": True,
            "listed_at": None,
            "cloth": {
                "id": None,
                "name": self.name,
                "latest_score": {"total_score": self.total_score, "grade": self.grade},
            },
        }


SYSTEM_LISTINGS: dict[str, SystemListing] = {
    s.id: s
    for s in (
        SystemListing("system-listing-1", "经典蓝染", "SS", 92, 150, is_featured=True),
        SystemListing("system-listing-2", "扎染花纹", "S", 85, 100),
        SystemListing("system-listing-3", "蜡染图腾", "A", 78, 80),
    )
}


def _matches(grade: str | None, price: int, want_grade: str | None, min_price: int | None, max_price: int | None) -> bool:
    if want_grade and grade != want_grade:
        return False
    if min_price is not None and price < min_price:
        return False
    if max_price is not None and price > max_price:
        return False
    return True


async def list_market(
    user_id: str | None,
    grade: str | None = None,
    min_price: int | None = None,
    max_price: int | None = None,
    limit: int = DEFAULT_MARKET_LIMIT,
) -> dict[str, Any]:
    """System listings plus other players' listed listings. Featured first, then newest."""
    if grade and grade_rank(grade) == -1:
        raise ValidationError(f"Unknown grade: {grade}", field="grade")
    limit = max(1, min(limit, 100))

    async with get_session() as session:
        query = select(ShopListing).where(ShopListing.status == ListingStatus.LISTED.value)
        if user_id:
            query = query.where(ShopListing.seller_id != user_id)
        if min_price is not None:
            query = query.where(ShopListing.price >= min_price)
        if max_price is not None:
            query = query.where(ShopListing.price <= max_price)
        result = await session.execute(
            query.order_by(ShopListing.is_featured.desc(), ShopListing.listed_at.desc())
        )
        listings = list(result.scalars().all())

        cloth_ids = [listing.cloth_id for listing in listings]
        cloths = await load_cloths(session, cloth_ids)
        scores = await latest_scores(session, cloth_ids)

    player_items = []
    for listing in listings:
        score = scores.get(listing.cloth_id)
        if grade and (score is None or score.grade != grade):
            continue
        item = listing_to_dict(listing, cloths.get(listing.cloth_id), score)
        item["is_system"] = False
        player_items.append(item)

    system_items = [
        s.to_dict() for s in SYSTEM_LISTINGS.values() if _matches(s.grade, s.price, grade, min_price, max_price)
    ]

    # Stable sort: within a featured tier, player listings (newest first) precede system ones
    merged = sorted(player_items + system_items, key=lambda x: not x["is_featured"])
    return {"listings": merged[:limit], "total": len(merged)}


async def purchase(user_id: str, listing_id: str) -> dict[str, Any]:
    """Buy a system or player listing.

    Raises:
        ConflictError: Another economy operation of the buyer is in flight.
        NotFoundError: Unknown listing.
        ValidationError: Listing not for sale, or buying one's own listing.
        InsufficientCurrencyError / InventoryFullError: Buyer cannot afford or store it.
    """
    if not listing_id:
        raise ValidationError("listing_id is required", field="listing_id")

    async with economy_lock(user_id):
        if listing_id.startswith(SYSTEM_LISTING_PREFIX):
            return await _purchase_system(user_id, listing_id)
        return await _purchase_player(user_id, listing_id)


async def _purchase_system(user_id: str, listing_id: str) -> dict[str, Any]:
    system = SYSTEM_LISTINGS.get(listing_id)
    if not system:
        raise NotFoundError("商品", f"System listing not found: {listing_id}")

    async with get_session() as session:
        player = await get_or_create_player(session, user_id)
        debit(player, system.price)
        await ensure_capacity(session, user_id)

        cloth = Cloth(
            id=generate_id(),
            creator_id=SYSTEM_SELLER_ID,
            owner_id=user_id,
            name=system.name,
            layers_json=json.dumps([]),
            status=ClothStatus.DRAFT.value,
        )
        session.add(cloth)
        await session.flush()
        session.add(
            ClothScore(
                cloth_id=cloth.id,
                user_id=user_id,
                total_score=system.total_score,
                grade=system.grade,
            )
        )
        await move_to_inventory(session, user_id, cloth)

        tx = MarketTransaction(
            listing_id=listing_id,
            cloth_id=cloth.id,
            seller_id=SYSTEM_SELLER_ID,
            buyer_id=user_id,
            price=system.price,
            transaction_type=TransactionType.SYSTEM_BUY.value,
        )
        session.add(tx)
        await session.flush()

        logger.info(f"[market] purchase {listing_id} by {user_id} for {system.price}")
        return {
            "transaction_id": tx.id,
            "price": system.price,
            "newCurrency": player.currency,
            "cloth_id": cloth.id,
            "cloth_name": system.name,
        }


async def _purchase_player(user_id: str, listing_id: str) -> dict[str, Any]:
    async with get_session() as session:
        listing = await session.get(ShopListing, listing_id)
        if not listing:
            raise NotFoundError("商品", f"Listing not found: {listing_id}")
        if listing.status != ListingStatus.LISTED.value:
            raise ValidationError(f"Listing {listing_id} is {listing.status}", field="listing_id", user_message="商品已下架或售出")
        if listing.seller_id == user_id:
            raise ValidationError("Cannot buy own listing", field="listing_id", user_message="不能购买自己的商品")

        buyer = await get_or_create_player(session, user_id)
        debit(buyer, listing.price)
        await ensure_capacity(session, user_id)

        seller = await get_or_create_player(session, listing.seller_id)
        credit(seller, listing.price)

        cloth = await session.get(Cloth, listing.cloth_id)
        if not cloth:
            raise NotFoundError("作品", f"Cloth not found: {listing.cloth_id}")

        await session.execute(
            delete(UserInventory).where(
                UserInventory.user_id == listing.seller_id,
                UserInventory.cloth_id == cloth.id,
            )
        )
        cloth.owner_id = user_id
        cloth.status = ClothStatus.DRAFT.value
        cloth.is_recent = False
        await move_to_inventory(session, user_id, cloth)

        listing.status = ListingStatus.SOLD.value
        listing.buyer_id = user_id
        listing.sold_at = utcnow()
        listing.is_featured = False

        seller_shop = await get_or_create_shop(session, listing.seller_id)
        seller_shop.total_sales += 1
        seller_shop.total_revenue += listing.price

        tx = MarketTransaction(
            listing_id=listing.id,
            cloth_id=cloth.id,
            seller_id=listing.seller_id,
            buyer_id=user_id,
            price=listing.price,
            transaction_type=TransactionType.PLAYER_BUY.value,
        )
        session.add(tx)
        await session.flush()

        logger.info(f"[market] purchase {listing_id} by {user_id} from {listing.seller_id} for {listing.price}")
        return {
            "transaction_id": tx.id,
            "price": listing.price,
            "newCurrency": buyer.currency,
            "cloth_id": cloth.id,
            "cloth_name": cloth.name,
        }


# ============================================================
# Transactions
# ============================================================


async def list_transactions(user_id: str, kind: str | None = None, limit: int = 50) -> dict[str, Any]:
    """The user's transactions as seller ("sell"), buyer ("buy") or both."""
    if kind not in (None, "sell", "buy"):
        raise ValidationError(f"Unknown transaction type: {kind}", field="type")
    limit = max(1, min(limit, 100))

    query = select(MarketTransaction)
    if kind == "sell":
        query = query.where(MarketTransaction.seller_id == user_id)
    elif kind == "buy":
        query = query.where(MarketTransaction.buyer_id == user_id)
    else:
        query = query.where(
            (MarketTransaction.seller_id == user_id) | (MarketTransaction.buyer_id == user_id)
        )

    async with get_session() as session:
        result = await session.execute(query.order_by(MarketTransaction.created_at.desc()).limit(limit))
        txs = list(result.scalars().all())
        cloth_ids = [t.cloth_id for t in txs if t.cloth_id]
        cloths = await load_cloths(session, cloth_ids)
        scores = await latest_scores(session, cloth_ids)

    return {
        "transactions": [
            {
                "id": t.id,
                "listing_id": t.listing_id,
                "cloth_id": t.cloth_id,
                "seller_id": t.seller_id,
                "buyer_id": t.buyer_id,
                "price": t.price,
                "transaction_type": t.transaction_type,
                "role": "seller" if t.seller_id == user_id else "buyer",
                "created_at": to_iso(t.created_at),
                "cloth": cloth_to_dict(cloths.get(t.cloth_id), scores.get(t.cloth_id)) if t.cloth_id else None,
            }
            for t in txs
        ],
        "total": len(txs),
    }
