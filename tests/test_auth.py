import base64
import json

import httpx
import pytest

from indigo_api.errors import AuthError, NetworkError
from indigo_api.routes import deps
from indigo_api.services import auth
from indigo_api.settings import Settings


def _jwt(payload: dict) -> str:
    def seg(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    return f"{seg({'alg': 'HS256', 'typ': 'JWT'})}.{seg(payload)}.signature"


def test_extract_bearer():
    assert auth.extract_bearer("Bearer abc.def.ghi") == "abc.def.ghi"
    assert auth.extract_bearer("Bearer   ") is None
    assert auth.extract_bearer("Basic xyz") is None
    assert auth.extract_bearer(None) is None


def test_parse_jwt_user_id_unexpired():
    token = _jwt({"sub": "user-1", "exp": 2_000_000_000})
    assert auth.parse_jwt_user_id(token, now_ms=1_700_000_000_000) == "user-1"


def test_parse_jwt_user_id_expired():
    token = _jwt({"sub": "user-1", "exp": 1_600_000_000})
    assert auth.parse_jwt_user_id(token, now_ms=1_700_000_000_000) is None


@pytest.mark.parametrize("token", ["not-a-jwt", "a.!!!.c", _jwt({"exp": 2_000_000_000}), "a.bnVsbA.c"])
def test_parse_jwt_user_id_never_raises(token):
    assert auth.parse_jwt_user_id(token, now_ms=1_700_000_000_000) is None


@pytest.mark.asyncio
async def test_verify_token_fast_path_without_redis():
    token = _jwt({"sub": "user-fast", "exp": 4_000_000_000})
    assert await auth.verify_token(token) == "user-fast"


@pytest.mark.asyncio
async def test_verify_token_platform_lookup(monkeypatch: pytest.MonkeyPatch):
    settings = Settings(AUTH_FAST_PATH=False, SUPABASE_URL="https://platform.test", SUPABASE_ANON_KEY="anon")
    monkeypatch.setattr(auth, "get_settings", lambda: settings)

    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"id": "user-remote"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        user_id = await auth.verify_token("opaque-token", client=client)

    assert user_id == "user-remote"
    assert seen["url"] == "https://platform.test/auth/v1/user"
    assert seen["auth"] == "Bearer opaque-token"


@pytest.mark.asyncio
async def test_platform_rejection_is_auth_error(monkeypatch: pytest.MonkeyPatch):
    settings = Settings(AUTH_FAST_PATH=False, SUPABASE_URL="https://platform.test")
    monkeypatch.setattr(auth, "get_settings", lambda: settings)

    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"msg": "bad jwt"}))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(AuthError):
            await auth.verify_token("opaque-token", client=client)


@pytest.mark.asyncio
async def test_platform_unreachable_is_network_error(monkeypatch: pytest.MonkeyPatch):
    settings = Settings(AUTH_FAST_PATH=False, SUPABASE_URL="https://platform.test")
    monkeypatch.setattr(auth, "get_settings", lambda: settings)

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(NetworkError):
            await auth.verify_token("opaque-token", client=client)


@pytest.mark.asyncio
async def test_unconfigured_platform_is_auth_error(monkeypatch: pytest.MonkeyPatch):
    settings = Settings(AUTH_FAST_PATH=False, SUPABASE_URL="")
    monkeypatch.setattr(auth, "get_settings", lambda: settings)
    with pytest.raises(AuthError):
        await auth.fetch_platform_user_id("opaque-token")


@pytest.mark.asyncio
async def test_platform_outage_degrades_optional_auth_to_anonymous(client, monkeypatch: pytest.MonkeyPatch):
    async def unreachable(token: str) -> str:
        raise NetworkError("platform down")

    monkeypatch.setattr(deps, "verify_token", unreachable)
    headers = {"Authorization": "Bearer opaque-token"}

    resp = await client.get("/api/user/stats", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["stats"]["orders"] == 0

    resp = await client.get("/api/user/profile", headers=headers)
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "NETWORK_ERROR"
