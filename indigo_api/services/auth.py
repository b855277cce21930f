"""Bearer token authentication against the hosted auth platform.

Resolution order for a token:
1. Redis cache of previously verified tokens
2. Fast path: decode the JWT payload locally and trust an unexpired `sub`
3. Platform user lookup: GET {SUPABASE_URL}/auth/v1/user

The fast path skips signature verification; it only saves a network round
trip for tokens the platform issued. Disable it with AUTH_FAST_PATH=false.
"""

import base64
import binascii
import json
import logging
import time

import httpx

from indigo_api.errors import AuthError, NetworkError
from indigo_api.settings import get_settings
from indigo_api.stores.redis import get_cached_user_id, set_cached_user_id

logger = logging.getLogger("uvicorn.error")


def extract_bearer(header: str | None) -> str | None:
    """Return the token from an `Authorization: Bearer <token>` header value."""
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def parse_jwt_user_id(token: str, *, now_ms: int | None = None) -> str | None:
    """Decode a JWT payload and return its `sub` if the token is unexpired.

    Never raises: malformed tokens, bad base64 or JSON, and expired tokens all
    yield None.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None

    segment = parts[1].replace("-", "+").replace("_", "/")
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.b64decode(segment).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None

    exp = payload.get("exp")
    if isinstance(exp, (int, float)):
        now = now_ms if now_ms is not None else int(time.time() * 1000)
        if exp * 1000 < now:
            return None

    sub = payload.get("sub")
    return sub if isinstance(sub, str) and sub else None


async def fetch_platform_user_id(token: str, *, client: httpx.AsyncClient | None = None) -> str:
    """Verify a token with the platform and return the user id.

    Raises:
        AuthError: Token rejected or platform not configured.
        NetworkError: Platform unreachable.
    """
    settings = get_settings()
    if not settings.supabase_url:
        raise AuthError("Auth platform is not configured")

    url = settings.supabase_url.rstrip("/") + "/auth/v1/user"
    headers = {
        "apikey": settings.supabase_anon_key,
        "Authorization": f"Bearer {token}",
    }

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.platform_timeout) as c:
                r = await c.get(url, headers=headers)
        else:
            r = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        logger.warning(f"[auth] platform lookup failed: {e}")
        raise NetworkError("Auth platform unreachable") from e

    if r.status_code != 200:
        raise AuthError(f"Token rejected by platform (status={r.status_code})")

    data = r.json()
    user_id = data.get("id") if isinstance(data, dict) else None
    if not user_id:
        raise AuthError("Platform returned no user")
    return str(user_id)


async def verify_token(token: str, *, client: httpx.AsyncClient | None = None) -> str:
    """Resolve a bearer token to a user id (cache, fast path, then platform)."""
    settings = get_settings()

    try:
        cached = await get_cached_user_id(token)
        if cached:
            return cached
    except Exception as e:
        logger.warning(f"[auth] cache read failed: {e}")

    if settings.auth_fast_path:
        user_id = parse_jwt_user_id(token)
        if user_id:
            return user_id

    user_id = await fetch_platform_user_id(token, client=client)

    try:
        await set_cached_user_id(token, user_id, settings.auth_cache_ttl)
    except Exception as e:
        logger.warning(f"[auth] cache write failed: {e}")

    return user_id
