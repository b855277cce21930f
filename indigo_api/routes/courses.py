"""Course catalogue endpoints.

`{course_id}` accepts a UUID, a legacy numeric id or a slug.
"""

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from indigo_api.routes.deps import optional_user_id, require_user_id
from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import courses

router = APIRouter(responses=ERROR_RESPONSES)


class CommentCreate(BaseModel):
    content: str | None = None
    parent_id: str | None = None


class ProgressUpdate(BaseModel):
    progress: int = Field(ge=0, le=100)


@router.get("")
async def list_courses(
    category: str | None = Query(default=None),
    difficulty: str | None = Query(default=None),
    is_free: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict:
    data = await courses.list_courses(
        category=category,
        difficulty=difficulty,
        is_free=is_free,
        limit=limit,
        offset=offset,
    )
    return ok(data)


@router.get("/{course_id}")
async def get_course(course_id: str) -> dict:
    return ok(await courses.get_course(course_id))


# Comments


@router.get("/{course_id}/comments")
async def list_comments(
    course_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict:
    return ok(await courses.list_comments(course_id, limit=limit, offset=offset))


@router.post("/{course_id}/comments", status_code=201)
async def add_comment(course_id: str, body: CommentCreate, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await courses.add_comment(user_id, course_id, body.content, body.parent_id), message="评论成功")


@router.delete("/{course_id}/comments/{comment_id}")
async def delete_comment(course_id: str, comment_id: str, user_id: str = Depends(require_user_id)) -> dict:
    await courses.delete_comment(user_id, course_id, comment_id)
    return ok(message="评论已删除")


# Enrollment


@router.post("/{course_id}/enroll")
async def enroll(course_id: str, response: Response, user_id: str = Depends(require_user_id)) -> dict:
    data, created = await courses.enroll(user_id, course_id)
    if created:
        response.status_code = 201
        return ok(data, message="报名成功")
    return ok(data, message="已报名该课程")


@router.patch("/{course_id}/enroll")
async def update_progress(course_id: str, body: ProgressUpdate, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await courses.update_progress(user_id, course_id, body.progress))


# Likes


@router.post("/{course_id}/like")
async def toggle_like(course_id: str, user_id: str = Depends(require_user_id)) -> dict:
    return ok(await courses.toggle_like(user_id, course_id))


@router.get("/{course_id}/like")
async def like_status(course_id: str, user_id: str | None = Depends(optional_user_id)) -> dict:
    return ok(await courses.like_status(user_id, course_id))
