"""Upload and file URL endpoints.

`?local=true` (or `isLocal` in bodies) selects the local filesystem backend;
otherwise STORAGE_BACKEND decides.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import BaseModel, Field

from indigo_api.routes.deps import require_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import uploads

router = APIRouter(responses=ERROR_RESPONSES)
files_router = APIRouter(responses=ERROR_RESPONSES)

LOCAL_CACHE_CONTROL = "public, max-age=86400"


class DeleteRequest(BaseModel):
    path: str = Field(min_length=1)
    is_local: bool = Field(default=False, alias="isLocal")

    model_config = {"populate_by_name": True}


class FileUrlRequest(BaseModel):
    path: str = Field(min_length=1)
    bucket: str | None = None
    is_local: bool = Field(default=False, alias="isLocal")
    signed: bool = False

    model_config = {"populate_by_name": True}

    def to_ref(self) -> uploads.FileRef:
        return uploads.FileRef(path=self.path, bucket=self.bucket, is_local=self.is_local, signed=self.signed)


class FileUrlBatch(BaseModel):
    files: list[FileUrlRequest] = Field(default_factory=list, max_length=100)


# ============================================================
# /api/upload
# ============================================================


@router.post("", status_code=201)
async def upload(
    file: UploadFile = File(...),
    type: str | None = Form(default=None),
    local: bool | None = Query(default=None),
    user_id: str = Depends(require_user_id),
) -> dict:
    content = await uploads.read_limited(file, declared_size=file.size)
    data = await uploads.upload_file(content, file.filename, file.content_type, upload_type=type, local=local)
    return ok(data, message="上传成功")


@router.get("/list")
async def list_files(
    bucket: str | None = Query(default=None),
    local: bool | None = Query(default=None),
    user_id: str = Depends(require_user_id),
) -> dict:
    return ok(await uploads.list_files(bucket, local=local))


@router.post("/delete")
async def delete_file(body: DeleteRequest, user_id: str = Depends(require_user_id)) -> dict:
    await uploads.delete_file(body.path, is_local=body.is_local)
    return ok(message="文件已删除")


# ============================================================
# /api/files
# ============================================================


@files_router.post("/url")
async def file_url(body: FileUrlRequest) -> dict:
    return ok({"url": await uploads.resolve_url(body.to_ref())})


@files_router.put("/url")
async def file_urls(body: FileUrlBatch) -> dict:
    return ok(await uploads.resolve_urls([f.to_ref() for f in body.files]))


@files_router.get("/local/{file_path:path}")
async def serve_local_file(file_path: str) -> Response:
    content, media_type = await run_in_threadpool(uploads.read_local_file, file_path)
    return Response(content=content, media_type=media_type, headers={"Cache-Control": LOCAL_CACHE_CONTROL})
