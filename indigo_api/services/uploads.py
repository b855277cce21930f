"""Upload service: bucket routing, file naming and URL resolution.

Hosted paths are addressed as "bucket/path/in/bucket"; local paths use the
same shape relative to LOCAL_STORAGE_DIR.
"""

import asyncio
from dataclasses import dataclass
import logging
import mimetypes
from pathlib import PurePosixPath
import re
import secrets
import time
from typing import Any, Protocol

from indigo_api.errors import AppError, NotFoundError, ValidationError
from indigo_api.settings import get_settings
from indigo_api.stores.storage import LocalStorage, get_storage, validate_bucket

logger = logging.getLogger("uvicorn.error")

_SAFE_STEM_RE = re.compile(r"[^A-Za-z0-9_-]+")

EXTRA_CONTENT_TYPES = {
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
}

READ_CHUNK_SIZE = 64 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class FileRef:
    path: str
    bucket: str | None = None
    is_local: bool = False
    signed: bool = False


def select_bucket(content_type: str | None, upload_type: str | None) -> str:
    """Pick the bucket from MIME type and upload type (avatar, course, product...)."""
    mime = (content_type or "").lower()
    kind = (upload_type or "").lower()
    if mime.startswith("image/"):
        if kind == "avatar":
            return "avatars"
        if kind == "course":
            return "courses-images"
        return "products-images"
    if mime.startswith("video/"):
        if kind == "course":
            return "courses-videos"
        return "products-videos"
    raise ValidationError(f"Unsupported file type: {content_type}", field="file", user_message="不支持的文件类型")


def unique_filename(original: str | None, *, now_ms: int | None = None) -> str:
    """`{stem}-{timestamp_ms}-{random}.{ext}` with a filesystem-safe stem."""
    name = PurePosixPath(original or "file")
    stem = _SAFE_STEM_RE.sub("-", name.stem).strip("-")[:50] or "file"
    ext = name.suffix.lower().lstrip(".")
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    filename = f"{stem}-{ts}-{secrets.token_hex(4)}"
    return f"{filename}.{ext}" if ext else filename


def content_type_for(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in EXTRA_CONTENT_TYPES:
        return EXTRA_CONTENT_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


def split_bucket_path(path: str) -> tuple[str, str]:
    """'bucket/a/b.png' -> ('bucket', 'a/b.png')."""
    bucket, _, rest = path.strip("/").partition("/")
    if not rest:
        raise ValidationError(f"Path must be bucket/file: {path}", field="path")
    return validate_bucket(bucket), rest


def _too_large(max_bytes: int) -> ValidationError:
    return ValidationError(
        f"File exceeds {max_bytes} bytes",
        field="file",
        user_message=f"文件不能超过 {max_bytes // (1024 * 1024)}MB",
    )


async def read_limited(stream: AsyncReadable, declared_size: int | None = None) -> bytes:
    """Read an upload in chunks, failing as soon as it passes MAX_UPLOAD_BYTES."""
    max_bytes = get_settings().max_upload_bytes
    if declared_size is not None and declared_size > max_bytes:
        raise _too_large(max_bytes)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise _too_large(max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


async def upload_file(
    content: bytes,
    filename: str | None,
    content_type: str | None,
    upload_type: str | None = None,
    local: bool | None = None,
) -> dict[str, Any]:
    if not content:
        raise ValidationError("Empty file", field="file", user_message="文件为空")
    max_bytes = get_settings().max_upload_bytes
    if len(content) > max_bytes:
        raise _too_large(max_bytes)

    bucket = select_bucket(content_type, upload_type)
    name = unique_filename(filename)
    stored = await get_storage(local).upload(bucket, name, content, content_type or content_type_for(name))
    logger.info(f"[upload] stored {stored.path} ({stored.size} bytes, local={stored.is_local})")
    return {**stored.to_dict(), "originalName": filename}


async def list_files(bucket: str | None, local: bool | None = None) -> list[dict[str, Any]]:
    bucket = validate_bucket(bucket)
    files = await get_storage(local).list(bucket)
    return [f.to_dict() for f in files]


async def delete_file(path: str, is_local: bool = False) -> None:
    bucket, rest = split_bucket_path(path)
    await get_storage(is_local).remove(bucket, rest)
    logger.info(f"[upload] deleted {path} (local={is_local})")


async def resolve_url(ref: FileRef) -> str:
    """Public or signed URL for a stored file.

    `ref.path` may be "bucket/file" or, when `ref.bucket` is given, a path
    inside that bucket.
    """
    if ref.bucket:
        bucket, rest = validate_bucket(ref.bucket), ref.path.strip("/")
        if rest.startswith(f"{bucket}/"):
            rest = rest[len(bucket) + 1:]
    else:
        bucket, rest = split_bucket_path(ref.path)

    storage = get_storage(ref.is_local)
    if isinstance(storage, LocalStorage):
        if not await asyncio.to_thread(storage.exists, bucket, rest):
            raise NotFoundError("文件", f"Local file not found: {bucket}/{rest}")
        return storage.public_url(bucket, rest)
    if ref.signed:
        return await storage.signed_url(bucket, rest)
    return storage.public_url(bucket, rest)


async def resolve_urls(refs: list[FileRef]) -> list[dict[str, Any]]:
    """Resolve a batch; failures are reported per file instead of aborting."""
    results = []
    for ref in refs:
        try:
            results.append({"path": ref.path, "success": True, "url": await resolve_url(ref)})
        except AppError as e:
            results.append({"path": ref.path, "success": False, "error": e.user_message, "code": e.code})
    return results


def read_local_file(relative_path: str) -> tuple[bytes, str]:
    """Bytes and content type of a file under the local storage root."""
    storage = LocalStorage()
    return storage.read(relative_path), content_type_for(relative_path)
