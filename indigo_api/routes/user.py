"""Per-user endpoints: orders, favorites, profile, stats and learning records."""

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from indigo_api.routes.deps import optional_user_id, require_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import favorites, orders, profile
from indigo_api.services.pricing import Coupon

router = APIRouter(responses=ERROR_RESPONSES)


class OrderLineIn(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    color: str | None = None
    size: str | None = None


class CouponIn(BaseModel):
    kind: str = Field(pattern="^(percent|fixed)$")
    value: float
    min_spend: float = 0


class OrderCreate(BaseModel):
    items: list[OrderLineIn] = Field(default_factory=list)
    address: str | None = None
    total_amount: float | None = Field(default=None, ge=0)
    cart_item_ids: list[str] | None = Field(default=None, alias="cartItemIds")
    payment_method: str | None = None
    coupon: CouponIn | None = None

    model_config = {"populate_by_name": True}


class FavoriteSelector(BaseModel):
    product_id: str | None = Field(default=None, alias="productId")
    course_id: str | None = Field(default=None, alias="courseId")
    article_id: str | None = Field(default=None, alias="articleId")

    model_config = {"populate_by_name": True}


class ProfileUpdate(BaseModel):
    username: str | None = Field(default=None, max_length=50)
    full_name: str | None = Field(default=None, max_length=100)
    avatar_url: str | None = None
    website: str | None = None


# ============================================================
# Orders
# ============================================================


@router.get("/orders")
async def list_orders(user_id: str = Depends(require_user_id)) -> dict:
    return ok(await orders.list_orders(user_id))


@router.post("/orders/create", status_code=201)
async def create_order(body: OrderCreate, user_id: str = Depends(require_user_id)) -> dict:
    order_id = await orders.create_order(
        user_id,
        [orders.OrderLine(**line.model_dump()) for line in body.items],
        body.address,
        total_amount=body.total_amount,
        cart_item_ids=body.cart_item_ids,
        payment_method=body.payment_method,
        coupon=Coupon(**body.coupon.model_dump()) if body.coupon else None,
    )
    return ok({"orderId": order_id}, message="订单创建成功")


# ============================================================
# Favorites
# ============================================================


@router.get("/favorites")
async def list_favorites(user_id: str = Depends(require_user_id)) -> dict:
    return ok(await favorites.list_favorites(user_id))


@router.post("/favorites")
async def add_favorite(
    body: FavoriteSelector,
    response: Response,
    user_id: str = Depends(require_user_id),
) -> dict:
    kind, target_id = favorites.resolve_selector(body.product_id, body.course_id, body.article_id)
    data, created = await favorites.add_favorite(user_id, kind, target_id)
    if not created:
        return ok(data, message="已在收藏夹中")
    response.status_code = 201
    return ok(data, message="收藏成功")


@router.delete("/favorites")
async def remove_favorite(
    product_id: str | None = Query(default=None, alias="productId"),
    course_id: str | None = Query(default=None, alias="courseId"),
    article_id: str | None = Query(default=None, alias="articleId"),
    user_id: str = Depends(require_user_id),
) -> dict:
    kind, target_id = favorites.resolve_selector(product_id, course_id, article_id)
    await favorites.remove_favorite(user_id, kind, target_id)
    return ok(message="已取消收藏")


# ============================================================
# Profile and stats
# ============================================================


@router.get("/profile")
async def get_profile(user_id: str = Depends(require_user_id)) -> dict:
    return ok(await profile.get_profile(user_id))


@router.put("/profile")
async def update_profile(body: ProfileUpdate, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await profile.update_profile(user_id, body.model_dump(exclude_unset=True)), message="资料已更新")


@router.get("/stats")
async def get_stats(user_id: str | None = Depends(optional_user_id)) -> dict:
    return ok({"stats": await profile.get_stats(user_id)})


@router.get("/courses")
async def get_user_courses(user_id: str = Depends(require_user_id)) -> dict:
    return ok(await profile.get_user_courses(user_id))


@router.get("/achievements")
async def get_achievements(user_id: str = Depends(require_user_id)) -> dict:
    return ok(await profile.get_achievements(user_id))
