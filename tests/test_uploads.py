import asyncio

import httpx
import pytest

from indigo_api.errors import NotFoundError, StorageError, ValidationError
from indigo_api.services import uploads
from indigo_api.settings import Settings
from indigo_api.stores import storage
from indigo_api.stores.storage import HostedStorage, LocalStorage


@pytest.fixture
def local_root(tmp_path, monkeypatch: pytest.MonkeyPatch):
    settings = Settings(LOCAL_STORAGE_DIR=str(tmp_path), MAX_UPLOAD_BYTES=64)
    monkeypatch.setattr(storage, "get_settings", lambda: settings)
    monkeypatch.setattr(uploads, "get_settings", lambda: settings)
    return tmp_path


@pytest.mark.parametrize(
    "content_type,upload_type,bucket",
    [
        ("image/png", "avatar", "avatars"),
        ("image/jpeg", "course", "courses-images"),
        ("image/webp", None, "products-images"),
        ("video/mp4", "course", "courses-videos"),
        ("video/mp4", "product", "products-videos"),
    ],
)
def test_select_bucket(content_type, upload_type, bucket):
    assert uploads.select_bucket(content_type, upload_type) == bucket


def test_select_bucket_rejects_other_types():
    with pytest.raises(ValidationError):
        uploads.select_bucket("application/pdf", None)


def test_unique_filename():
    name = uploads.unique_filename("我的 头像!.PNG", now_ms=1700000000000)
    stem, ts, rest = name.rsplit("-", 2)
    assert ts == "1700000000000"
    assert rest.endswith(".png")
    assert "/" not in stem and " " not in stem
    assert uploads.unique_filename("noext", now_ms=1).startswith("noext-1-")


def test_content_type_for():
    assert uploads.content_type_for("a/b.webp") == "image/webp"
    assert uploads.content_type_for("a/b.png") == "image/png"
    assert uploads.content_type_for("a/b.unknownext") == "application/octet-stream"


@pytest.mark.asyncio
async def test_local_storage_runs_file_io_off_the_loop(tmp_path, monkeypatch: pytest.MonkeyPatch):
    offloaded = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args):
        offloaded.append(func.__name__)
        return await real_to_thread(func, *args)

    monkeypatch.setattr(storage.asyncio, "to_thread", recording_to_thread)
    local = LocalStorage(tmp_path)

    stored = await local.upload("avatars", "a.png", b"png", "image/png")
    assert stored.path == "avatars/a.png"
    assert [f.path for f in await local.list("avatars")] == ["avatars/a.png"]
    await local.remove("avatars", "a.png")
    with pytest.raises(NotFoundError):
        await local.remove("avatars", "a.png")

    assert offloaded == ["_write_file", "_scan_files", "_remove_file", "_remove_file"]
    assert await local.list("missing-bucket") == []


@pytest.mark.parametrize("path", ["../secret", "avatars/../../etc/passwd", "a\\b", ""])
def test_local_paths_cannot_escape_root(tmp_path, path):
    with pytest.raises(ValidationError):
        LocalStorage(tmp_path).resolve(path)


def test_read_local_file_traversal(local_root):
    with pytest.raises(ValidationError):
        uploads.read_local_file("../x")


def test_read_missing_local_file(local_root):
    with pytest.raises(NotFoundError):
        uploads.read_local_file("avatars/missing.png")


class ChunkedStream:
    def __init__(self, chunks: list[bytes]):
        self.chunks = list(chunks)
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        self.reads += 1
        return self.chunks.pop(0) if self.chunks else b""


@pytest.mark.asyncio
async def test_read_limited_stops_at_cap(local_root):
    stream = ChunkedStream([b"x" * 40, b"x" * 40, b"x" * 40])
    with pytest.raises(ValidationError):
        await uploads.read_limited(stream)
    assert stream.reads == 2

    assert await uploads.read_limited(ChunkedStream([b"ab", b"cd"])) == b"abcd"


@pytest.mark.asyncio
async def test_read_limited_trusts_declared_size(local_root):
    stream = ChunkedStream([b"x"])
    with pytest.raises(ValidationError):
        await uploads.read_limited(stream, declared_size=65)
    assert stream.reads == 0


# ============================================================
# Routes (local backend)
# ============================================================


@pytest.mark.asyncio
async def test_local_upload_list_serve_delete(client, login, local_root):
    login("alice")
    resp = await client.post(
        "/api/upload",
        params={"local": "true"},
        files={"file": ("avatar.png", b"\x89PNG-data", "image/png")},
        data={"type": "avatar"},
    )
    assert resp.status_code == 201
    stored = resp.json()["data"]
    assert stored["bucket"] == "avatars"
    assert stored["isLocal"] is True
    assert stored["originalName"] == "avatar.png"
    assert stored["url"] == f"/api/files/local/{stored['path']}"
    assert (local_root / stored["path"]).read_bytes() == b"\x89PNG-data"

    listed = (await client.get("/api/upload/list", params={"bucket": "avatars", "local": "true"})).json()["data"]
    assert [f["path"] for f in listed] == [stored["path"]]

    resp = await client.get(stored["url"])
    assert resp.status_code == 200
    assert resp.content == b"\x89PNG-data"
    assert resp.headers["cache-control"] == "public, max-age=86400"
    assert resp.headers["content-type"] == "image/png"

    resp = await client.post("/api/files/url", json={"path": stored["path"], "isLocal": True})
    assert resp.json()["data"]["url"] == stored["url"]

    resp = await client.post("/api/upload/delete", json={"path": stored["path"], "isLocal": True})
    assert resp.status_code == 200
    assert (await client.get(stored["url"])).status_code == 404


@pytest.mark.asyncio
async def test_upload_limits(client, login, local_root):
    login("alice")
    too_big = await client.post(
        "/api/upload",
        params={"local": "true"},
        files={"file": ("big.png", b"x" * 65, "image/png")},
    )
    assert too_big.status_code == 400

    empty = await client.post("/api/upload", params={"local": "true"}, files={"file": ("e.png", b"", "image/png")})
    assert empty.status_code == 400

    pdf = await client.post("/api/upload", params={"local": "true"}, files={"file": ("a.pdf", b"%PDF", "application/pdf")})
    assert pdf.status_code == 400


@pytest.mark.asyncio
async def test_upload_requires_login(client):
    resp = await client.post("/api/upload", files={"file": ("a.png", b"x", "image/png")})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_batch_url_reports_failures_per_file(client, local_root):
    (local_root / "avatars").mkdir()
    (local_root / "avatars" / "a.png").write_bytes(b"x")

    resp = await client.put(
        "/api/files/url",
        json={
            "files": [
                {"path": "a.png", "bucket": "avatars", "isLocal": True},
                {"path": "avatars/missing.png", "isLocal": True},
                {"path": "nobucket/a.png", "isLocal": True},
            ]
        },
    )
    results = resp.json()["data"]
    assert results[0] == {"path": "a.png", "success": True, "url": "/api/files/local/avatars/a.png"}
    assert results[1]["success"] is False
    assert results[1]["code"] == "NOT_FOUND"
    assert results[2]["code"] == "VALIDATION_ERROR"


# ============================================================
# Hosted backend
# ============================================================


@pytest.mark.asyncio
async def test_hosted_upload_and_signed_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.headers["authorization"]))
        if request.url.path.startswith("/storage/v1/object/sign/"):
            return httpx.Response(200, json={"signedURL": "/object/sign/avatars/a.png?token=t"})
        return httpx.Response(200, json={"Key": "avatars/a.png"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        hosted = HostedStorage(base_url="https://platform.test", service_key="svc", client=client)
        stored = await hosted.upload("avatars", "a.png", b"x", "image/png")
        signed = await hosted.signed_url("avatars", "a.png")

    assert stored.path == "avatars/a.png"
    assert stored.url == "https://platform.test/storage/v1/object/public/avatars/a.png"
    assert signed == "https://platform.test/storage/v1/object/sign/avatars/a.png?token=t"
    assert seen[0] == ("POST", "/storage/v1/object/avatars/a.png", "Bearer svc")


@pytest.mark.asyncio
async def test_hosted_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    async with httpx.AsyncClient(transport=transport) as client:
        hosted = HostedStorage(base_url="https://platform.test", service_key="svc", client=client)
        with pytest.raises(StorageError):
            await hosted.remove("avatars", "a.png")

    with pytest.raises(StorageError):
        await HostedStorage(base_url="", service_key="").upload("avatars", "a.png", b"x", "image/png")
