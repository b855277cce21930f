"""Shop and listing endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from indigo_api.routes.deps import game_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import listings, shop

router = APIRouter(responses=ERROR_RESPONSES)
listings_router = APIRouter(responses=ERROR_RESPONSES)


class ShopUpdate(BaseModel):
    shop_name: str | None = None
    theme: str | None = None
    character_customization: dict[str, Any] | None = None


class ListingCreate(BaseModel):
    cloth_id: str = Field(min_length=1)
    price: int
    is_featured: bool = False


class ListingRef(BaseModel):
    listing_id: str = Field(min_length=1)


class ListingPrice(BaseModel):
    listing_id: str = Field(min_length=1)
    new_price: int


# ============================================================
# /api/shop
# ============================================================


@router.get("")
async def get_shop(user_id: str = Depends(game_user_id)) -> dict:
    return ok(await shop.get_shop(user_id))


@router.post("")
async def update_shop(body: ShopUpdate, user_id: str = Depends(game_user_id)) -> dict:
    data = await shop.update_shop(
        user_id,
        shop_name=body.shop_name,
        theme=body.theme,
        character_customization=body.character_customization,
    )
    return ok(data, message="店铺已更新")


@router.get("/expand-listings")
async def listing_expansion_info(user_id: str = Depends(game_user_id)) -> dict:
    return ok(await shop.listing_expansion_info(user_id))


@router.post("/expand-listings")
async def expand_listings(user_id: str = Depends(game_user_id)) -> dict:
    return ok(await shop.expand_listing_slots(user_id), message="上架位扩展成功")


# ============================================================
# /api/listings
# ============================================================


@listings_router.post("/create", status_code=201)
async def create_listing(body: ListingCreate, user_id: str = Depends(game_user_id)) -> dict:
    data = await listings.create_listing(user_id, body.cloth_id, body.price, body.is_featured)
    return ok(data, message="上架成功")


@listings_router.post("/withdraw")
async def withdraw_listing(body: ListingRef, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await listings.withdraw_listing(user_id, body.listing_id), message="已下架")


@listings_router.put("/price")
async def update_price(body: ListingPrice, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await listings.update_price(user_id, body.listing_id, body.new_price), message="价格已更新")


@listings_router.put("/featured")
async def toggle_featured(body: ListingRef, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await listings.toggle_featured(user_id, body.listing_id))
