"""Course catalogue service.

Only published courses are visible. A course can be addressed by UUID,
legacy numeric id (mapped via services.ids) or slug.

Handles:
- Listing with filters (first unfiltered pages cached in Redis)
- Course detail with chapters
- Comments (top-level list with reply counts, create, delete own)
- Enrollment and progress
- Likes
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import ForbiddenError, NotFoundError, ValidationError
from indigo_api.models import (
    Course,
    CourseChapter,
    CourseComment,
    CourseLike,
    CourseStatus,
    Enrollment,
    EnrollmentStatus,
)
from indigo_api.schemas.common import to_iso
from indigo_api.services.ids import is_uuid, normalize_course_id
from indigo_api.services.pricing import discount_percent
from indigo_api.stores.postgres import count_rows, get_session, utcnow
from indigo_api.stores.redis import get_course_list_cache, set_course_list_cache

logger = logging.getLogger("uvicorn.error")

MAX_PAGE_SIZE = 100
MAX_COMMENT_LENGTH = 500


def course_to_dict(course: Course) -> dict[str, Any]:
    return {
        "id": course.id,
        "slug": course.slug,
        "title": course.title,
        "description": course.description,
        "image_url": course.image_url,
        "instructor": course.instructor,
        "category": course.category,
        "difficulty": course.difficulty,
        "is_free": course.is_free,
        "price": course.price,
        "original_price": course.original_price,
        "discountPercent": discount_percent(course.price, course.original_price),
        "duration_minutes": course.duration_minutes,
        "likes_count": course.likes_count,
        "students_count": course.students_count,
        "status": course.status,
        "created_at": to_iso(course.created_at),
        "updated_at": to_iso(course.updated_at),
    }


def _comment_to_dict(comment: CourseComment, reply_count: int = 0) -> dict[str, Any]:
    return {
        "id": comment.id,
        "course_id": comment.course_id,
        "user_id": comment.user_id,
        "parent_id": comment.parent_id,
        "content": comment.content,
        "likes_count": comment.likes_count,
        "reply_count": reply_count,
        "created_at": to_iso(comment.created_at),
    }


def _enrollment_to_dict(enrollment: Enrollment) -> dict[str, Any]:
    return {
        "id": enrollment.id,
        "course_id": enrollment.course_id,
        "progress": enrollment.progress,
        "status": enrollment.status,
        "started_at": to_iso(enrollment.started_at),
        "last_accessed_at": to_iso(enrollment.last_accessed_at),
        "completed_at": to_iso(enrollment.completed_at),
    }


async def find_published_course(session: AsyncSession, raw_id: str) -> Course:
    """Look up a published course by UUID, legacy numeric id or slug."""
    course_id = normalize_course_id(raw_id)
    if not course_id:
        raise ValidationError("Course id is required", field="id")

    query = select(Course).where(Course.status == CourseStatus.PUBLISHED.value)
    if is_uuid(course_id):
        query = query.where(Course.id == course_id)
    else:
        query = query.where(Course.slug == raw_id.strip())

    result = await session.execute(query)
    course = result.scalar_one_or_none()
    if not course:
        raise NotFoundError("课程", f"Course not found: {raw_id}")
    return course


# ============================================================
# Catalogue
# ============================================================


async def list_courses(
    category: str | None = None,
    difficulty: str | None = None,
    is_free: bool | None = None,
    limit: int = MAX_PAGE_SIZE,
    offset: int = 0,
) -> dict[str, Any]:
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    cacheable = category is None and difficulty is None and is_free is None and offset == 0
    variant = f"limit={limit}"
    if cacheable:
        try:
            cached = await get_course_list_cache(variant)
            if cached:
                return cached
        except Exception as e:
            logger.warning(f"[courses] cache read failed: {e}")

    filters = [Course.status == CourseStatus.PUBLISHED.value]
    if category:
        filters.append(Course.category == category)
    if difficulty:
        filters.append(Course.difficulty == difficulty)
    if is_free is not None:
        filters.append(Course.is_free.is_(is_free))

    async with get_session() as session:
        total = await count_rows(session, Course, *filters)
        result = await session.execute(
            select(Course).where(*filters).order_by(Course.created_at.desc()).limit(limit).offset(offset)
        )
        courses = [course_to_dict(c) for c in result.scalars().all()]

    payload = {"courses": courses, "total": total, "limit": limit, "offset": offset}
    if cacheable:
        try:
            await set_course_list_cache(variant, payload)
        except Exception as e:
            logger.warning(f"[courses] cache write failed: {e}")
    return payload


async def get_course(raw_id: str) -> dict[str, Any]:
    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        result = await session.execute(
            select(CourseChapter).where(CourseChapter.course_id == course.id).order_by(CourseChapter.position.asc())
        )
        chapters = [
            {
                "id": ch.id,
                "title": ch.title,
                "position": ch.position,
                "video_url": ch.video_url,
                "duration_minutes": ch.duration_minutes,
            }
            for ch in result.scalars().all()
        ]
    return {**course_to_dict(course), "chapters": chapters}


# ============================================================
# Comments
# ============================================================


async def list_comments(raw_id: str, limit: int = 20, offset: int = 0) -> dict[str, Any]:
    """Top-level comments, newest first, each with its reply count."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        top_level = [CourseComment.course_id == course.id, CourseComment.parent_id.is_(None)]

        total = await count_rows(session, CourseComment, *top_level)
        result = await session.execute(
            select(CourseComment)
            .where(*top_level)
            .order_by(CourseComment.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        comments = list(result.scalars().all())

        reply_counts: dict[str, int] = {}
        if comments:
            counts = await session.execute(
                select(CourseComment.parent_id, func.count())
                .where(CourseComment.parent_id.in_([c.id for c in comments]))
                .group_by(CourseComment.parent_id)
            )
            reply_counts = {parent_id: int(n) for parent_id, n in counts.all()}

    return {
        "comments": [_comment_to_dict(c, reply_counts.get(c.id, 0)) for c in comments],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


async def add_comment(user_id: str, raw_id: str, content: str | None, parent_id: str | None = None) -> dict[str, Any]:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment content is required", field="content", user_message="评论内容不能为空")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"Comment exceeds {MAX_COMMENT_LENGTH} characters",
            field="content",
            user_message=f"评论不能超过 {MAX_COMMENT_LENGTH} 字",
        )

    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        if parent_id:
            parent = await session.get(CourseComment, parent_id)
            if not parent or parent.course_id != course.id:
                raise NotFoundError("评论", f"Parent comment not found: {parent_id}")

        comment = CourseComment(course_id=course.id, user_id=user_id, parent_id=parent_id, content=text)
        session.add(comment)
        await session.flush()
        return _comment_to_dict(comment)


async def delete_comment(user_id: str, raw_id: str, comment_id: str) -> None:
    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        comment = await session.get(CourseComment, comment_id)
        if not comment or comment.course_id != course.id:
            raise NotFoundError("评论", f"Comment not found: {comment_id}")
        if comment.user_id != user_id:
            raise ForbiddenError(f"Comment {comment_id} belongs to another user", user_message="只能删除自己的评论")
        await session.delete(comment)


# ============================================================
# Enrollment
# ============================================================


async def enroll(user_id: str, raw_id: str) -> tuple[dict[str, Any], bool]:
    """Enroll in a course. Returns (enrollment, created).

    Re-enrolling only refreshes last_accessed_at.
    """
    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        result = await session.execute(
            select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course.id)
        )
        enrollment = result.scalar_one_or_none()
        if enrollment:
            enrollment.last_accessed_at = utcnow()
            await session.flush()
            return _enrollment_to_dict(enrollment), False

        enrollment = Enrollment(user_id=user_id, course_id=course.id)
        session.add(enrollment)
        course.students_count = (course.students_count or 0) + 1
        await session.flush()
        logger.info(f"[courses] user {user_id} enrolled in {course.id}")
        return _enrollment_to_dict(enrollment), True


async def update_progress(user_id: str, raw_id: str, progress: int) -> dict[str, Any]:
    if progress < 0 or progress > 100:
        raise ValidationError("progress must be between 0 and 100", field="progress")

    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        result = await session.execute(
            select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course.id)
        )
        enrollment = result.scalar_one_or_none()
        if not enrollment:
            raise NotFoundError("报名记录", f"User {user_id} is not enrolled in {course.id}")

        now = utcnow()
        enrollment.progress = progress
        enrollment.last_accessed_at = now
        if progress >= 100:
            enrollment.status = EnrollmentStatus.COMPLETED.value
            enrollment.completed_at = enrollment.completed_at or now
        else:
            enrollment.status = EnrollmentStatus.IN_PROGRESS.value
            enrollment.completed_at = None
        await session.flush()
        return _enrollment_to_dict(enrollment)


# ============================================================
# Likes
# ============================================================


async def toggle_like(user_id: str, raw_id: str) -> dict[str, Any]:
    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        result = await session.execute(
            select(CourseLike).where(CourseLike.course_id == course.id, CourseLike.user_id == user_id)
        )
        like = result.scalar_one_or_none()
        if like:
            await session.delete(like)
            is_liked = False
        else:
            session.add(CourseLike(course_id=course.id, user_id=user_id))
            is_liked = True
        await session.flush()

        course.likes_count = await count_rows(session, CourseLike, CourseLike.course_id == course.id)
        return {"isLiked": is_liked, "likesCount": course.likes_count}


async def like_status(user_id: str | None, raw_id: str) -> dict[str, Any]:
    async with get_session() as session:
        course = await find_published_course(session, raw_id)
        likes = await count_rows(session, CourseLike, CourseLike.course_id == course.id)
        is_liked = False
        if user_id:
            is_liked = (
                await count_rows(
                    session,
                    CourseLike,
                    CourseLike.course_id == course.id,
                    CourseLike.user_id == user_id,
                )
                > 0
            )
    return {"isLiked": is_liked, "likesCount": likes}
