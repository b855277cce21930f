"""Task and achievement service.

Challenge templates are checked against every newly scored cloth (see
services.task_detection). Completion is recorded in user_task_progress;
rewards are claimed separately. Creation/score achievements are tracked in
user_achievements and unlock once their target is reached.
"""

from collections.abc import Sequence
import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import DuplicateError, NotFoundError, ValidationError
from indigo_api.models import ClothScore, TaskTemplate, UserAchievement, UserTaskProgress
from indigo_api.schemas.common import to_iso
from indigo_api.services.game_rules import GRADE_ORDER, grade_rank
from indigo_api.services.player import get_or_create_player, grant_experience
from indigo_api.services.task_detection import PlacedPattern, ScoreSnapshot, check_all
from indigo_api.stores.postgres import count_rows, get_session, utcnow
from indigo_api.stores.redis import economy_lock

logger = logging.getLogger("uvicorn.error")

TASK_CATEGORIES = ("tutorial", "daily", "challenge", "achievement")

CREATION_ACHIEVEMENTS = {"creation_count_10": 10, "creation_count_50": 50, "creation_count_100": 100}
SCORE_COUNT_ACHIEVEMENTS = {"score_a_count_10": ("A", 10), "score_s_count_50": ("S", 50)}
FIRST_SSS_ACHIEVEMENT = "score_first_sss"


def _progress_to_dict(progress: UserTaskProgress | None) -> dict[str, Any] | None:
    if progress is None:
        return None
    return {
        "progress": progress.progress,
        "target": progress.target,
        "is_completed": progress.is_completed,
        "completed_at": to_iso(progress.completed_at),
        "reward_claimed": progress.reward_claimed,
        "claimed_at": to_iso(progress.claimed_at),
    }


async def list_tasks(
    user_id: str,
    category: str | None = None,
    tier: int | None = None,
    include_completed: bool = False,
) -> dict[str, Any]:
    if category is not None and category not in TASK_CATEGORIES:
        raise ValidationError(f"Unknown category: {category}", field="category")

    query = select(TaskTemplate).where(TaskTemplate.is_active.is_(True))
    if category:
        query = query.where(TaskTemplate.category == category)
    if tier is not None:
        query = query.where(TaskTemplate.tier == tier)

    async with get_session() as session:
        templates = list((await session.execute(query.order_by(TaskTemplate.sort_order.asc()))).scalars().all())
        result = await session.execute(select(UserTaskProgress).where(UserTaskProgress.user_id == user_id))
        progress_by_task = {p.task_id: p for p in result.scalars().all()}

    tasks = []
    for t in templates:
        progress = progress_by_task.get(t.id)
        if progress and progress.reward_claimed and not include_completed:
            continue
        tasks.append(
            {
                "id": t.id,
                "title": t.title,
                "description": t.description,
                "category": t.category,
                "tier": t.tier,
                "conditions": json.loads(t.conditions_json) if t.conditions_json else None,
                "target": t.target,
                "reward_exp": t.reward_exp,
                "reward_currency": t.reward_currency,
                "sort_order": t.sort_order,
                "user_progress": _progress_to_dict(progress),
            }
        )
    return {"tasks": tasks, "total": len(tasks)}


async def claim_reward(user_id: str, task_id: str) -> dict[str, Any]:
    """Claim the reward of a completed task.

    Raises:
        NotFoundError: No progress recorded for the task.
        ValidationError: Task not completed yet.
        DuplicateError: Reward already claimed.
    """
    async with economy_lock(user_id):
        async with get_session() as session:
            result = await session.execute(
                select(UserTaskProgress).where(
                    UserTaskProgress.user_id == user_id,
                    UserTaskProgress.task_id == task_id,
                )
            )
            progress = result.scalar_one_or_none()
            if not progress:
                raise NotFoundError("任务进度", f"No progress for task {task_id}")
            if not progress.is_completed:
                raise ValidationError(f"Task {task_id} is not completed", field="task_id", user_message="任务尚未完成")
            if progress.reward_claimed:
                raise DuplicateError(f"Reward for {task_id} already claimed", user_message="奖励已领取")

            template = await session.get(TaskTemplate, task_id)
            if not template:
                raise NotFoundError("任务", f"Task template not found: {task_id}")

            player = await get_or_create_player(session, user_id)
            old_level = player.level
            level = grant_experience(player, template.reward_exp)
            player.currency += template.reward_currency

            progress.reward_claimed = True
            progress.claimed_at = utcnow()
            await session.flush()

            logger.info(f"[tasks] {user_id} claimed {task_id}")
            return {
                "task_id": task_id,
                "reward_exp": template.reward_exp,
                "reward_currency": template.reward_currency,
                "newCurrency": player.currency,
                "leveled_up": level.leveled_up,
                "old_level": old_level,
                "new_level": level.level,
            }


# ============================================================
# Detection
# ============================================================


async def _upsert_achievement(session: AsyncSession, user_id: str, achievement_id: str, value: int, target: int) -> bool:
    """Record achievement progress. Returns True if it unlocked just now."""
    result = await session.execute(
        select(UserAchievement).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = UserAchievement(user_id=user_id, achievement_id=achievement_id, progress=0, target=target, is_unlocked=False)
        session.add(row)

    row.progress = min(value, target)
    if not row.is_unlocked and value >= target:
        row.is_unlocked = True
        row.unlocked_at = utcnow()
        return True
    return False


async def _update_achievements(session: AsyncSession, user_id: str, score: ScoreSnapshot | None) -> list[str]:
    unlocked = []
    player = await get_or_create_player(session, user_id)
    for achievement_id, target in CREATION_ACHIEVEMENTS.items():
        if await _upsert_achievement(session, user_id, achievement_id, player.total_cloths_created, target):
            unlocked.append(achievement_id)

    if score is None:
        return unlocked

    if score.grade == "SSS" and await _upsert_achievement(session, user_id, FIRST_SSS_ACHIEVEMENT, 1, 1):
        unlocked.append(FIRST_SSS_ACHIEVEMENT)

    for achievement_id, (min_grade, target) in SCORE_COUNT_ACHIEVEMENTS.items():
        grades = GRADE_ORDER[grade_rank(min_grade):]
        count = await count_rows(session, ClothScore, ClothScore.user_id == user_id, ClothScore.grade.in_(grades))
        if await _upsert_achievement(session, user_id, achievement_id, count, target):
            unlocked.append(achievement_id)
    return unlocked


async def detect_and_record(
    session: AsyncSession,
    user_id: str,
    patterns: Sequence[PlacedPattern],
    score: ScoreSnapshot | None,
) -> list[str]:
    """Check active challenge templates and record newly completed ones.

    Returns the ids of tasks completed by this call.
    """
    result = await session.execute(
        select(TaskTemplate).where(TaskTemplate.is_active.is_(True), TaskTemplate.category == "challenge")
    )
    templates = list(result.scalars().all())
    if not templates:
        await _update_achievements(session, user_id, score)
        return []

    checks = check_all(
        patterns,
        score,
        [(t.id, json.loads(t.conditions_json) if t.conditions_json else None) for t in templates],
    )
    satisfied = {c.task_id: c for c in checks if c.satisfied}

    completed = []
    if satisfied:
        existing = await session.execute(
            select(UserTaskProgress).where(
                UserTaskProgress.user_id == user_id,
                UserTaskProgress.task_id.in_(list(satisfied)),
            )
        )
        by_task = {p.task_id: p for p in existing.scalars().all()}
        now = utcnow()
        for task_id, check in satisfied.items():
            progress = by_task.get(task_id)
            if progress is None:
                progress = UserTaskProgress(user_id=user_id, task_id=task_id, reward_claimed=False)
                session.add(progress)
            elif progress.is_completed:
                continue
            progress.progress = check.progress
            progress.target = check.target
            progress.is_completed = True
            progress.completed_at = now
            completed.append(task_id)

    await _update_achievements(session, user_id, score)
    await session.flush()
    if completed:
        logger.info(f"[tasks] {user_id} completed {completed}")
    return completed


async def update_progress(
    user_id: str,
    patterns: Sequence[PlacedPattern],
    score: ScoreSnapshot | None = None,
) -> list[str]:
    async with get_session() as session:
        return await detect_and_record(session, user_id, patterns, score)


async def list_achievements(user_id: str) -> list[dict[str, Any]]:
    async with get_session() as session:
        result = await session.execute(select(UserAchievement).where(UserAchievement.user_id == user_id))
        return [
            {
                "achievement_id": a.achievement_id,
                "progress": a.progress,
                "target": a.target,
                "is_unlocked": a.is_unlocked,
                "unlocked_at": to_iso(a.unlocked_at),
            }
            for a in result.scalars().all()
        ]
