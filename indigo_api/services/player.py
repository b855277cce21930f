"""Player profile (level, experience, wallet) helpers.

All helpers take the caller's session so that currency moves share one DB
transaction with the rest of an economy operation.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import InsufficientCurrencyError
from indigo_api.models import PlayerProfile
from indigo_api.schemas.common import to_iso
from indigo_api.services.game_rules import (
    DEFAULT_CURRENCY,
    DEFAULT_DYE_HOUSE_NAME,
    LevelProgress,
    apply_experience,
    exp_for_level,
)
from indigo_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


def player_to_dict(player: PlayerProfile) -> dict[str, Any]:
    return {
        "user_id": player.user_id,
        "dye_house_name": player.dye_house_name,
        "level": player.level,
        "exp": player.exp,
        "exp_to_next_level": exp_for_level(player.level),
        "currency": player.currency,
        "total_score": player.total_score,
        "highest_score": player.highest_score,
        "total_cloths_created": player.total_cloths_created,
        "created_at": to_iso(player.created_at),
        "updated_at": to_iso(player.updated_at),
    }


async def get_or_create_player(session: AsyncSession, user_id: str) -> PlayerProfile:
    player = await session.get(PlayerProfile, user_id)
    if player:
        return player
    player = PlayerProfile(
        user_id=user_id,
        dye_house_name=DEFAULT_DYE_HOUSE_NAME,
        level=1,
        exp=0,
        currency=DEFAULT_CURRENCY,
        total_score=0,
        highest_score=0,
        total_cloths_created=0,
    )
    session.add(player)
    await session.flush()
    logger.info(f"[player] created profile for {user_id}")
    return player


def grant_experience(player: PlayerProfile, exp: int) -> LevelProgress:
    progress = apply_experience(player.level, player.exp, exp)
    player.level = progress.level
    player.exp = progress.exp
    return progress


def debit(player: PlayerProfile, amount: int) -> int:
    """Take `amount` from the wallet, raising InsufficientCurrencyError if short."""
    if player.currency < amount:
        raise InsufficientCurrencyError(required=amount, current=player.currency)
    player.currency -= amount
    return player.currency


def credit(player: PlayerProfile, amount: int) -> int:
    player.currency += amount
    return player.currency


async def get_player_profile(user_id: str) -> dict[str, Any]:
    async with get_session() as session:
        player = await get_or_create_player(session, user_id)
        return player_to_dict(player)
