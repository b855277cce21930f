"""Redis store for caching and per-user locks.

Handles:
- Caching with TTL policies
- Per-user locks (one economy mutation per user at a time)

TTL policies:
- Verified bearer token -> user id: AUTH_CACHE_TTL (default 60 seconds)
- Published course list (first page, unfiltered): 60 seconds
- Economy locks: 10 seconds

Redis is never the source of truth. Callers treat every operation here as
best-effort and keep working when Redis is unavailable.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import hashlib
import json
import logging
import secrets
from typing import Any

import redis.asyncio as redis

from indigo_api.errors import ConflictError
from indigo_api.settings import get_settings

# TTL constants (in seconds)
TTL_COURSE_LIST = 60  # 1 minute
TTL_ECONOMY_LOCK = 10

# Key prefixes
PREFIX_AUTH = "auth:user:"
PREFIX_COURSES = "courses:list:"
PREFIX_LOCK = "lock:"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_get_json(key: str) -> dict[str, Any] | None:
    """Get JSON value from cache.

    Returns:
        Parsed JSON dict or None if not found.
    """
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: dict[str, Any], ttl: int) -> None:
    await cache_set(key, json.dumps(value, ensure_ascii=False, default=str), ttl)


# ============================================================
# Auth cache (bearer token -> user id)
# ============================================================


def _token_key(token: str) -> str:
    # Never store raw tokens as keys.
    return PREFIX_AUTH + hashlib.sha256(token.encode("utf-8")).hexdigest()


async def get_cached_user_id(token: str) -> str | None:
    """Get cached user id for a previously verified token."""
    return await cache_get(_token_key(token))


async def set_cached_user_id(token: str, user_id: str, ttl: int) -> None:
    """Cache the user id a token resolved to."""
    if ttl <= 0:
        return
    await cache_set(_token_key(token), user_id, ttl)


# ============================================================
# Course list cache
# ============================================================


async def get_course_list_cache(variant: str) -> dict[str, Any] | None:
    return await cache_get_json(f"{PREFIX_COURSES}{variant}")


async def set_course_list_cache(variant: str, payload: dict[str, Any]) -> None:
    await cache_set_json(f"{PREFIX_COURSES}{variant}", payload, TTL_COURSE_LIST)


# ============================================================
# Locks
# ============================================================


async def acquire_lock(key: str, ttl: int = TTL_ECONOMY_LOCK) -> str | None:
    """Acquire a lock.

    Args:
        key: Lock key (e.g., "economy:<user_id>").
        ttl: Lock timeout in seconds.

    Returns:
        The owner token if the lock was acquired, None if already locked.
    """
    lock_key = f"{PREFIX_LOCK}{key}"
    token = secrets.token_hex(16)
    # SET NX (only if not exists) with TTL
    result = await _get_redis().set(lock_key, token, nx=True, ex=ttl)
    return token if result else None


# Delete only while the stored token is still ours
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


async def release_lock(key: str, token: str) -> bool:
    """Release a lock held under `token`. Returns False if it expired or changed hands."""
    released = await _get_redis().eval(_RELEASE_SCRIPT, 1, f"{PREFIX_LOCK}{key}", token)
    return bool(released)


@asynccontextmanager
async def economy_lock(user_id: str) -> AsyncIterator[None]:
    """Hold the per-user economy lock for the duration of the block.

    Raises ConflictError if another mutation holds it. When Redis is down the
    block runs unlocked; the DB transaction is still the last line.
    """
    key = f"economy:{user_id}"
    locked = True
    try:
        token = await acquire_lock(key)
    except Exception as e:
        logger.warning(f"[lock] redis unavailable, running unlocked: {e}")
        locked = False
    if locked and token is None:
        raise ConflictError(f"Economy lock busy for user {user_id}")

    if not locked:
        yield
        return

    try:
        yield
    finally:
        try:
            if not await release_lock(key, token):
                logger.warning(f"[lock] {key} expired before release")
        except Exception as e:
            logger.warning(f"[lock] release failed: {e}")
