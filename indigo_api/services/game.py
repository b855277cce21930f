"""Mini-game scoring service.

Submitting a cloth for scoring:
1. Score the layers (services.scoring)
2. Create the cloth as a draft on first submit (403 if someone else owns it)
3. Store a cloth_scores row
4. Grant grade rewards to the player, rolling over levels
5. Update the player's score totals
6. Put the cloth into the recent slots
7. Run challenge task detection
All of it commits as one transaction.
"""

import json
import logging
from typing import Any

from sqlalchemy import select

from indigo_api.errors import ForbiddenError, NotFoundError, ValidationError
from indigo_api.models import Cloth, ClothScore, ClothStatus
from indigo_api.schemas.game import Layer, ScoreDimensions, ScoreSubmitResult
from indigo_api.services.cloths import score_to_dict
from indigo_api.services.game_rules import rewards_for
from indigo_api.services.inventory import save_to_recent
from indigo_api.services.player import get_or_create_player, grant_experience
from indigo_api.services.scoring import calculate_score
from indigo_api.services.task_detection import ScoreSnapshot, patterns_from_layers
from indigo_api.services.tasks import detect_and_record
from indigo_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

MAX_CLOTH_ID_LENGTH = 100


async def submit_score(
    user_id: str,
    cloth_id: str,
    layers: list[Layer],
    cloth_name: str | None = None,
) -> ScoreSubmitResult:
    """Score a cloth and apply rewards.

    Raises:
        ValidationError: Missing cloth id or no layers.
        ForbiddenError: The cloth belongs to another user.
    """
    cloth_id = (cloth_id or "").strip()
    if not cloth_id or len(cloth_id) > MAX_CLOTH_ID_LENGTH:
        raise ValidationError("cloth_id is required", field="cloth_id", user_message="缺少作品ID")
    if not layers:
        raise ValidationError("layers must not be empty", field="layers", user_message="作品至少需要一个图层")

    result = calculate_score(layers)
    exp_reward, currency_reward = rewards_for(result.grade)

    async with get_session() as session:
        cloth = await session.get(Cloth, cloth_id)
        if cloth is None:
            cloth = Cloth(
                id=cloth_id,
                creator_id=user_id,
                owner_id=user_id,
                name=cloth_name,
                layers_json=json.dumps([layer.model_dump(by_alias=True) for layer in layers], ensure_ascii=False),
                status=ClothStatus.DRAFT.value,
                is_recent=False,
            )
            session.add(cloth)
            await session.flush()
        elif cloth.owner_id != user_id:
            raise ForbiddenError(f"Cloth {cloth_id} belongs to another user", user_message="这不是你的作品")
        elif cloth_name:
            cloth.name = cloth_name

        score = ClothScore(
            cloth_id=cloth.id,
            user_id=user_id,
            color_score=result.color,
            pattern_score=result.pattern,
            creativity_score=result.creativity,
            technique_score=result.technique,
            total_score=result.total,
            grade=result.grade,
        )
        session.add(score)

        player = await get_or_create_player(session, user_id)
        old_level = player.level
        level = grant_experience(player, exp_reward)
        player.currency += currency_reward
        player.total_score += result.total
        player.highest_score = max(player.highest_score, result.total)
        player.total_cloths_created += 1

        await save_to_recent(session, user_id, cloth)
        await session.flush()

        completed = await detect_and_record(
            session,
            user_id,
            patterns_from_layers(layers),
            ScoreSnapshot(total_score=result.total, grade=result.grade),
        )

        logger.info(f"[game] {user_id} scored {cloth_id}: {result.total} ({result.grade})")
        return ScoreSubmitResult(
            score_id=score.id,
            dimensions=ScoreDimensions(**result.dimensions()),
            total_score=result.total,
            grade=result.grade,
            exp_reward=exp_reward,
            currency_reward=currency_reward,
            leveled_up=level.leveled_up,
            old_level=old_level,
            new_level=level.level,
            completed_tasks=completed,
        )


async def list_scores(cloth_id: str) -> list[dict[str, Any]]:
    if not cloth_id:
        raise ValidationError("cloth_id is required", field="cloth_id")
    async with get_session() as session:
        result = await session.execute(
            select(ClothScore).where(ClothScore.cloth_id == cloth_id).order_by(ClothScore.created_at.desc())
        )
        scores = [score_to_dict(s) for s in result.scalars().all()]
    if not scores:
        raise NotFoundError("评分记录", f"No scores for cloth {cloth_id}")
    return scores
