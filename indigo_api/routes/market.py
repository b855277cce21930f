"""Market and transaction history endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from indigo_api.routes.deps import game_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import market

router = APIRouter(responses=ERROR_RESPONSES)
transactions_router = APIRouter(responses=ERROR_RESPONSES)


class PurchaseRequest(BaseModel):
    listing_id: str = Field(min_length=1)


@router.get("")
async def list_market(
    grade: str | None = Query(default=None),
    min_price: int | None = Query(default=None, ge=0),
    max_price: int | None = Query(default=None, ge=0),
    limit: int = Query(default=market.DEFAULT_MARKET_LIMIT, ge=1, le=100),
    user_id: str = Depends(game_user_id),
) -> dict:
    data = await market.list_market(user_id, grade=grade, min_price=min_price, max_price=max_price, limit=limit)
    return ok(data)


@router.post("/purchase")
async def purchase(body: PurchaseRequest, user_id: str = Depends(game_user_id)) -> dict:
    data = await market.purchase(user_id, body.listing_id)
    return ok(data, message=f"成功购买 {data.get('cloth_name') or '作品'}")


@transactions_router.get("")
async def list_transactions(
    type: str | None = Query(default=None, description="sell | buy"),
    limit: int = Query(default=50, ge=1, le=100),
    user_id: str = Depends(game_user_id),
) -> dict:
    return ok(await market.list_transactions(user_id, kind=type, limit=limit))
