"""Object storage: hosted bucket API or local filesystem fallback.

Both backends expose the same operations (upload, list, remove, url) so the
upload routes can switch per request with `?local=true`.

Hosted layout:  {SUPABASE_URL}/storage/v1/object/{bucket}/{path}
Local layout:   {LOCAL_STORAGE_DIR}/{bucket}/{path}, served by /api/files/local/...
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from indigo_api.errors import NotFoundError, StorageError, ValidationError
from indigo_api.settings import get_settings

logger = logging.getLogger("uvicorn.error")

BUCKETS = ("products-images", "courses-images", "avatars", "courses-videos", "products-videos")
SIGNED_URL_TTL = 60 * 60  # 1 hour
LOCAL_FILES_ROUTE = "/api/files/local"


@dataclass
class StoredFile:
    """Metadata of a stored object."""

    name: str
    bucket: str
    path: str
    size: int = 0
    content_type: str | None = None
    url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    is_local: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "bucket": self.bucket,
            "path": self.path,
            "size": self.size,
            "contentType": self.content_type,
            "url": self.url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "isLocal": self.is_local,
        }


def validate_bucket(bucket: str | None) -> str:
    if not bucket or bucket not in BUCKETS:
        raise ValidationError(f"Invalid bucket: {bucket}", field="bucket", user_message="无效的存储桶名称")
    return bucket


def _check_relative_path(path: str) -> str:
    clean = (path or "").strip().lstrip("/")
    if not clean:
        raise ValidationError("File path is required", field="path", user_message="缺少文件路径")
    if ".." in Path(clean).parts or "\\" in clean:
        raise ValidationError("Path traversal is not allowed", field="path", user_message="非法文件路径")
    return clean


# ============================================================
# Hosted storage
# ============================================================


class HostedStorage:
    """Client for the hosted storage REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url if base_url is not None else settings.supabase_url).rstrip("/")
        self.service_key = service_key if service_key is not None else settings.supabase_service_key
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=get_settings().platform_timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self) -> dict[str, str]:
        return {"apikey": self.service_key, "Authorization": f"Bearer {self.service_key}"}

    def _object_url(self, *parts: str) -> str:
        return f"{self.base_url}/storage/v1/object/" + "/".join(quote(p, safe="/") for p in parts)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if not self.base_url:
            raise StorageError("Hosted storage is not configured")
        client = await self._get_client()
        try:
            r = await client.request(method, url, headers={**self._headers(), **kwargs.pop("headers", {})}, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f"Storage request failed: {e}") from e
        if r.status_code == 404:
            raise NotFoundError("文件", f"Object not found: {url}")
        if r.status_code >= 400:
            raise StorageError(f"Storage returned {r.status_code}: {r.text[:200]}")
        return r

    def public_url(self, bucket: str, path: str) -> str:
        return self._object_url("public", bucket, path)

    async def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> StoredFile:
        path = _check_relative_path(path)
        r = await self._send(
            "POST",
            self._object_url(bucket, path),
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        key = r.json().get("Key") if r.content else None
        return StoredFile(
            name=path.rsplit("/", 1)[-1],
            bucket=bucket,
            path=key or f"{bucket}/{path}",
            size=len(content),
            content_type=content_type,
            url=self.public_url(bucket, path),
        )

    async def list(self, bucket: str, prefix: str = "", limit: int = 100) -> list[StoredFile]:
        r = await self._send(
            "POST",
            self._object_url("list", bucket),
            json={"prefix": prefix, "limit": limit, "offset": 0, "sortBy": {"column": "name", "order": "asc"}},
        )
        files = []
        for obj in r.json() or []:
            name = obj.get("name")
            if not name:
                continue
            meta = obj.get("metadata") or {}
            files.append(
                StoredFile(
                    name=name,
                    bucket=bucket,
                    path=f"{prefix.rstrip('/')}/{name}".lstrip("/"),
                    size=int(meta.get("size") or 0),
                    content_type=meta.get("mimetype"),
                    url=self.public_url(bucket, f"{prefix.rstrip('/')}/{name}".lstrip("/")),
                    created_at=obj.get("created_at"),
                    updated_at=obj.get("updated_at"),
                )
            )
        return files

    async def remove(self, bucket: str, path: str) -> None:
        path = _check_relative_path(path)
        await self._send("DELETE", self._object_url(bucket), json={"prefixes": [path]})

    async def signed_url(self, bucket: str, path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        path = _check_relative_path(path)
        r = await self._send("POST", self._object_url("sign", bucket, path), json={"expiresIn": expires_in})
        signed = (r.json() or {}).get("signedURL") or (r.json() or {}).get("signedUrl")
        if not signed:
            raise StorageError("Storage returned no signed URL")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"


# ============================================================
# Local storage
# ============================================================


def _write_file(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


def _scan_files(directory: Path) -> list[tuple[Path, os.stat_result]]:
    """Regular files directly under `directory`, sorted by name."""
    if not directory.is_dir():
        return []
    return [(p, p.stat()) for p in sorted(directory.iterdir(), key=lambda p: p.name) if p.is_file()]


def _remove_file(target: Path) -> bool:
    if not target.is_file():
        return False
    target.unlink()
    return True


class LocalStorage:
    """Filesystem-backed storage rooted at LOCAL_STORAGE_DIR."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root if root is not None else get_settings().local_storage_dir).resolve()

    def resolve(self, *parts: str) -> Path:
        """Absolute path under the root. Raises ValidationError on traversal."""
        rel = _check_relative_path("/".join(parts))
        target = (self.root / rel).resolve()
        if target != self.root and self.root not in target.parents:
            raise ValidationError("Path escapes storage root", field="path", user_message="非法文件路径")
        return target

    def public_url(self, bucket: str, path: str) -> str:
        return f"{LOCAL_FILES_ROUTE}/{bucket}/{_check_relative_path(path)}"

    def exists(self, bucket: str, path: str) -> bool:
        return self.resolve(bucket, path).is_file()

    def read(self, relative_path: str) -> bytes:
        target = self.resolve(relative_path)
        if not target.is_file():
            raise NotFoundError("文件", f"Local file not found: {relative_path}")
        return target.read_bytes()

    async def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> StoredFile:
        target = self.resolve(bucket, path)
        try:
            await asyncio.to_thread(_write_file, target, content)
        except OSError as e:
            raise StorageError(f"Local write failed: {e}") from e
        logger.info(f"[storage] saved local file {target}")
        rel = target.relative_to(self.root / bucket).as_posix()
        return StoredFile(
            name=target.name,
            bucket=bucket,
            path=f"{bucket}/{rel}",
            size=len(content),
            content_type=content_type,
            url=self.public_url(bucket, rel),
            is_local=True,
        )

    async def list(self, bucket: str, prefix: str = "", limit: int = 100) -> list[StoredFile]:
        directory = self.resolve(bucket, prefix) if prefix else self.resolve(bucket)
        files = []
        for entry, stat in await asyncio.to_thread(_scan_files, directory):
            rel = entry.relative_to(self.root / bucket).as_posix()
            files.append(
                StoredFile(
                    name=entry.name,
                    bucket=bucket,
                    path=f"{bucket}/{rel}",
                    size=stat.st_size,
                    url=self.public_url(bucket, rel),
                    created_at=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc).isoformat(),
                    updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    is_local=True,
                )
            )
            if len(files) >= limit:
                break
        return files

    async def remove(self, bucket: str, path: str) -> None:
        target = self.resolve(bucket, path)
        try:
            removed = await asyncio.to_thread(_remove_file, target)
        except OSError as e:
            raise StorageError(f"Local delete failed: {e}") from e
        if not removed:
            raise NotFoundError("文件", f"Local file not found: {bucket}/{path}")

    async def signed_url(self, bucket: str, path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        # Local files are served without signatures.
        return self.public_url(bucket, path)


# ============================================================
# Backend selection
# ============================================================

_hosted: HostedStorage | None = None


def get_storage(local: bool | None = None) -> HostedStorage | LocalStorage:
    """Pick a backend: explicit `local` flag wins, else STORAGE_BACKEND."""
    global _hosted
    if local is None:
        local = get_settings().storage_backend == "local"
    if local:
        return LocalStorage()
    if _hosted is None:
        _hosted = HostedStorage()
    return _hosted


async def close_storage() -> None:
    global _hosted
    if _hosted:
        await _hosted.close()
        _hosted = None
