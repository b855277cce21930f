"""Cloth lookups shared by the game economy services."""

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import ForbiddenError, NotFoundError
from indigo_api.models import Cloth, ClothScore
from indigo_api.schemas.common import to_iso


def score_to_dict(score: ClothScore | None) -> dict[str, Any] | None:
    if score is None:
        return None
    return {
        "id": score.id,
        "color_score": score.color_score,
        "pattern_score": score.pattern_score,
        "creativity_score": score.creativity_score,
        "technique_score": score.technique_score,
        "total_score": score.total_score,
        "grade": score.grade,
        "created_at": to_iso(score.created_at),
    }


def cloth_to_dict(cloth: Cloth | None, score: ClothScore | None = None) -> dict[str, Any] | None:
    if cloth is None:
        return None
    return {
        "id": cloth.id,
        "name": cloth.name,
        "creator_id": cloth.creator_id,
        "owner_id": cloth.owner_id,
        "status": cloth.status,
        "is_recent": cloth.is_recent,
        "layers": json.loads(cloth.layers_json) if cloth.layers_json else [],
        "created_at": to_iso(cloth.created_at),
        "latest_score": score_to_dict(score),
    }


async def latest_scores(session: AsyncSession, cloth_ids: list[str]) -> dict[str, ClothScore]:
    """Newest score row per cloth."""
    if not cloth_ids:
        return {}
    result = await session.execute(
        select(ClothScore)
        .where(ClothScore.cloth_id.in_(cloth_ids))
        .order_by(ClothScore.created_at.desc())
    )
    latest: dict[str, ClothScore] = {}
    for score in result.scalars().all():
        latest.setdefault(score.cloth_id, score)
    return latest


async def load_cloths(session: AsyncSession, cloth_ids: list[str]) -> dict[str, Cloth]:
    if not cloth_ids:
        return {}
    result = await session.execute(select(Cloth).where(Cloth.id.in_(cloth_ids)))
    return {c.id: c for c in result.scalars().all()}


async def get_owned_cloth(session: AsyncSession, user_id: str, cloth_id: str) -> Cloth:
    """Fetch a cloth the user owns (404 if missing, 403 if someone else's)."""
    cloth = await session.get(Cloth, cloth_id)
    if not cloth:
        raise NotFoundError("作品", f"Cloth not found: {cloth_id}")
    if cloth.owner_id != user_id:
        raise ForbiddenError(f"Cloth {cloth_id} is not owned by {user_id}", user_message="这不是你的作品")
    return cloth
