"""User profile, stats, enrolled courses and learning achievements."""

from datetime import datetime, timezone
import logging
import math
from typing import Any

from sqlalchemy import select

from indigo_api.models import (
    Course,
    CourseComment,
    CourseLike,
    Enrollment,
    EnrollmentStatus,
    Favorite,
    Order,
    Profile,
)
from indigo_api.schemas.common import to_iso
from indigo_api.stores.postgres import count_rows, get_session, utcnow

logger = logging.getLogger("uvicorn.error")

PROFILE_FIELDS = ("username", "full_name", "avatar_url", "website")

EMPTY_STATS = {
    "orders": 0,
    "courses": 0,
    "favorites": 0,
    "completedCourses": 0,
    "learningDays": 0,
    "assignments": 0,
}


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _profile_to_dict(user_id: str, profile: Profile | None) -> dict[str, Any]:
    data = {"id": user_id}
    for name in PROFILE_FIELDS:
        data[name] = getattr(profile, name) if profile else None
    return data


def _distinct_learning_dates(enrollments: list[Enrollment]) -> set[str]:
    dates = set()
    for e in enrollments:
        for value in (e.started_at, e.last_accessed_at):
            if value:
                dates.add(_aware(value).date().isoformat())
    return dates


async def get_profile(user_id: str) -> dict[str, Any]:
    async with get_session() as session:
        profile = await session.get(Profile, user_id)
        return _profile_to_dict(user_id, profile)


async def update_profile(user_id: str, fields: dict[str, str | None]) -> dict[str, Any]:
    """Upsert the profile. Only keys present in `fields` are written."""
    async with get_session() as session:
        profile = await session.get(Profile, user_id)
        if not profile:
            profile = Profile(id=user_id)
            session.add(profile)
        for name in PROFILE_FIELDS:
            if name in fields:
                setattr(profile, name, fields[name])
        await session.flush()
        return _profile_to_dict(user_id, profile)


async def get_stats(user_id: str | None) -> dict[str, int]:
    if not user_id:
        return dict(EMPTY_STATS)

    async with get_session() as session:
        orders = await count_rows(session, Order, Order.user_id == user_id)
        favorites = await count_rows(session, Favorite, Favorite.user_id == user_id)
        result = await session.execute(select(Enrollment).where(Enrollment.user_id == user_id))
        enrollments = list(result.scalars().all())

    return {
        "orders": orders,
        "courses": len(enrollments),
        "favorites": favorites,
        "completedCourses": sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED.value),
        "learningDays": len(_distinct_learning_dates(enrollments)),
        # No assignment tracking yet
        "assignments": 0,
    }


async def get_user_courses(user_id: str) -> dict[str, Any]:
    """Enrollments with their course summaries, newest access first."""
    async with get_session() as session:
        result = await session.execute(
            select(Enrollment, Course)
            .join(Course, Course.id == Enrollment.course_id)
            .where(Enrollment.user_id == user_id)
            .order_by(Enrollment.last_accessed_at.desc())
        )
        rows = result.all()

    courses = [
        {
            "enrollment_id": enrollment.id,
            "progress": enrollment.progress,
            "status": enrollment.status,
            "started_at": to_iso(enrollment.started_at),
            "last_accessed_at": to_iso(enrollment.last_accessed_at),
            "completed_at": to_iso(enrollment.completed_at),
            "course": {
                "id": course.id,
                "title": course.title,
                "image_url": course.image_url,
                "instructor": course.instructor,
                "duration_minutes": course.duration_minutes,
                "difficulty": course.difficulty,
            },
        }
        for enrollment, course in rows
    ]

    learning_days = 0
    if rows:
        first = min(_aware(enrollment.started_at) for enrollment, _ in rows)
        learning_days = math.ceil((utcnow() - first).total_seconds() / 86400)

    completed = sum(1 for c in courses if c["status"] == EnrollmentStatus.COMPLETED.value)
    return {
        "courses": courses,
        "stats": {
            "total": len(courses),
            "completed": completed,
            "inProgress": len(courses) - completed,
            "learningDays": learning_days,
        },
    }


async def get_achievements(user_id: str) -> dict[str, Any]:
    async with get_session() as session:
        result = await session.execute(select(Enrollment).where(Enrollment.user_id == user_id))
        enrollments = list(result.scalars().all())
        likes = await count_rows(session, CourseLike, CourseLike.user_id == user_id)
        comments = await count_rows(session, CourseComment, CourseComment.user_id == user_id)

    first = min((_aware(e.started_at) for e in enrollments if e.started_at), default=None)
    last = max((_aware(e.last_accessed_at) for e in enrollments if e.last_accessed_at), default=None)

    return {
        "user_id": user_id,
        "completed_courses": sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED.value),
        "in_progress_courses": sum(1 for e in enrollments if e.status == EnrollmentStatus.IN_PROGRESS.value),
        "learning_days": len(_distinct_learning_dates(enrollments)),
        "total_likes": likes,
        "total_comments": comments,
        "total_engagements": likes + comments,
        "first_learning_date": to_iso(first),
        "last_learning_date": to_iso(last),
    }
