"""Task endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from indigo_api.routes.deps import game_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.schemas.game import Layer
from indigo_api.services import tasks
from indigo_api.services.task_detection import ScoreSnapshot, patterns_from_layers

router = APIRouter(responses=ERROR_RESPONSES)


class TaskClaim(BaseModel):
    task_id: str = Field(min_length=1)


class ScoreIn(BaseModel):
    total_score: int = Field(ge=0, le=100)
    grade: str


class ProgressUpdate(BaseModel):
    cloth_id: str | None = None
    layers: list[Layer] = Field(default_factory=list)
    score: ScoreIn | None = None


@router.get("")
async def list_tasks(
    category: str | None = Query(default=None),
    tier: int | None = Query(default=None, ge=1),
    include_completed: bool = Query(default=False),
    user_id: str = Depends(game_user_id),
) -> dict:
    data = await tasks.list_tasks(user_id, category=category, tier=tier, include_completed=include_completed)
    return ok(data)


@router.post("/claim")
async def claim_reward(body: TaskClaim, user_id: str = Depends(game_user_id)) -> dict:
    return ok(await tasks.claim_reward(user_id, body.task_id), message="奖励领取成功")


@router.post("/update-progress")
async def update_progress(body: ProgressUpdate, user_id: str = Depends(game_user_id)) -> dict:
    score = ScoreSnapshot(total_score=body.score.total_score, grade=body.score.grade) if body.score else None
    completed = await tasks.update_progress(user_id, patterns_from_layers(body.layers), score)
    return ok({"updated": completed, "count": len(completed)})


@router.get("/achievements")
async def list_achievements(user_id: str = Depends(game_user_id)) -> dict:
    return ok(await tasks.list_achievements(user_id))
