"""Shared route dependencies (authentication)."""

import logging

from fastapi import Header

from indigo_api.errors import AuthError, NetworkError, TestModeError
from indigo_api.services.auth import extract_bearer, verify_token
from indigo_api.services.game_rules import TEST_MODE_HEADER, TEST_USER_ID
from indigo_api.settings import get_settings

logger = logging.getLogger("uvicorn.error")


async def require_user_id(authorization: str | None = Header(default=None)) -> str:
    """Authenticated user id, 401 otherwise."""
    token = extract_bearer(authorization)
    if not token:
        raise AuthError("Missing bearer token")
    return await verify_token(token)


async def optional_user_id(authorization: str | None = Header(default=None)) -> str | None:
    """Authenticated user id, or None for anonymous / invalid tokens."""
    token = extract_bearer(authorization)
    if not token:
        return None
    try:
        return await verify_token(token)
    except AuthError:
        return None
    except NetworkError as e:
        logger.warning(f"[auth] verification unavailable, treating request as anonymous: {e}")
        return None


async def game_user_id(
    authorization: str | None = Header(default=None),
    test_mode: str | None = Header(default=None, alias=TEST_MODE_HEADER),
) -> str:
    """User id for game endpoints.

    With GAME_TEST_MODE_ENABLED, an anonymous request carrying
    `X-Game-Test-Mode: true` plays as the fixed test user.
    """
    token = extract_bearer(authorization)
    if token:
        return await verify_token(token)

    if (test_mode or "").lower() == "true":
        if not get_settings().game_test_mode_enabled:
            raise TestModeError("Test mode is disabled on this server")
        return TEST_USER_ID

    raise AuthError("Missing bearer token")
