"""Mini-game endpoints (scoring and player profile).

Callers authenticate with a bearer token, or with `X-Game-Test-Mode: true`
when the server runs with GAME_TEST_MODE_ENABLED.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from indigo_api.routes.deps import game_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.schemas.game import Layer
from indigo_api.services import game, player

router = APIRouter(responses=ERROR_RESPONSES)


class ScoreSubmit(BaseModel):
    cloth_id: str = Field(min_length=1, max_length=100)
    layers: list[Layer] = Field(default_factory=list)
    cloth_name: str | None = Field(default=None, max_length=100)


@router.post("/score")
async def submit_score(body: ScoreSubmit, user_id: str = Depends(game_user_id)) -> dict:
    result = await game.submit_score(user_id, body.cloth_id, body.layers, body.cloth_name)
    return ok(result.model_dump())


@router.get("/score")
async def list_scores(
    cloth_id: str = Query(min_length=1),
    user_id: str = Depends(game_user_id),
) -> dict:
    return ok(await game.list_scores(cloth_id))


@router.get("/profile")
async def get_profile(user_id: str = Depends(game_user_id)) -> dict:
    return ok(await player.get_player_profile(user_id))
