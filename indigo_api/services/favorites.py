"""Favorites service (products, courses and articles)."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indigo_api.errors import NotFoundError, ValidationError
from indigo_api.models import Article, Course, Favorite, Product
from indigo_api.schemas.common import to_iso
from indigo_api.services.courses import find_published_course
from indigo_api.services.ids import is_uuid, normalize_course_id
from indigo_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

# selector key -> (Favorite column, target model, resource name)
_TARGETS = {
    "product": (Favorite.product_id, Product, "商品"),
    "course": (Favorite.course_id, Course, "课程"),
    "article": (Favorite.article_id, Article, "文章"),
}


def resolve_selector(
    product_id: str | None = None,
    course_id: str | None = None,
    article_id: str | None = None,
) -> tuple[str, str]:
    """Return (kind, id) for exactly one given selector, else ValidationError."""
    given = [
        (kind, value)
        for kind, value in (("product", product_id), ("course", course_id), ("article", article_id))
        if value and value.strip()
    ]
    if len(given) != 1:
        raise ValidationError(
            "Exactly one of productId, courseId or articleId is required",
            field="productId",
            user_message="请指定一个收藏对象",
        )
    kind, value = given[0]
    return kind, value.strip()


def _summary(kind: str, target: Any) -> dict[str, Any]:
    if kind == "product":
        return {
            "id": target.id,
            "name": target.name,
            "price": target.price,
            "original_price": target.original_price,
            "image_url": target.image_url,
            "category": target.category,
        }
    if kind == "course":
        return {
            "id": target.id,
            "title": target.title,
            "image_url": target.image_url,
            "instructor": target.instructor,
            "price": target.price,
            "is_free": target.is_free,
        }
    return {
        "id": target.id,
        "title": target.title,
        "summary": target.summary,
        "cover_image": target.cover_image,
    }


async def _course_key(session: AsyncSession, raw_id: str) -> str:
    """Stored course id for a UUID, legacy numeric id or slug (any status)."""
    course_id = normalize_course_id(raw_id)
    if is_uuid(course_id):
        return course_id
    result = await session.execute(select(Course.id).where(Course.slug == raw_id))
    return result.scalar_one_or_none() or raw_id

async def list_favorites(user_id: str) -> list[dict[str, Any]]:
    async with get_session() as session:
        result = await session.execute(
            select(Favorite).where(Favorite.user_id == user_id).order_by(Favorite.created_at.desc())
        )
        favorites = list(result.scalars().all())

        # One IN query per target type
        targets: dict[str, dict[str, Any]] = {}
        for kind, (column, model, _) in _TARGETS.items():
            ids = [getattr(f, column.key) for f in favorites if getattr(f, column.key)]
            if ids:
                rows = await session.execute(select(model).where(model.id.in_(ids)))
                targets[kind] = {row.id: row for row in rows.scalars().all()}

    items = []
    for fav in favorites:
        for kind, (column, _, _) in _TARGETS.items():
            target_id = getattr(fav, column.key)
            if not target_id:
                continue
            target = targets.get(kind, {}).get(target_id)
            items.append(
                {
                    "id": fav.id,
                    "type": kind,
                    "target_id": target_id,
                    "created_at": to_iso(fav.created_at),
                    kind: _summary(kind, target) if target else None,
                }
            )
    return items


async def add_favorite(user_id: str, kind: str, target_id: str) -> tuple[dict[str, Any], bool]:
    """Add a favorite. Returns (favorite, created); existing favorites are not duplicated."""
    column, model, resource = _TARGETS[kind]

    async with get_session() as session:
        if kind == "course":
            target_id = (await find_published_course(session, target_id)).id

        existing = await session.execute(
            select(Favorite).where(Favorite.user_id == user_id, column == target_id)
        )
        fav = existing.scalar_one_or_none()
        if fav:
            return {"id": fav.id, "type": kind, "target_id": target_id}, False

        if not await session.get(model, target_id):
            raise NotFoundError(resource, f"{kind} not found: {target_id}")

        fav = Favorite(user_id=user_id, **{column.key: target_id})
        session.add(fav)
        await session.flush()
        return {"id": fav.id, "type": kind, "target_id": target_id, "created_at": to_iso(fav.created_at)}, True


async def remove_favorite(user_id: str, kind: str, target_id: str) -> None:
    column, _, _ = _TARGETS[kind]
    async with get_session() as session:
        if kind == "course":
            target_id = await _course_key(session, target_id)
        result = await session.execute(
            select(Favorite).where(Favorite.user_id == user_id, column == target_id)
        )
        fav = result.scalar_one_or_none()
        if not fav:
            raise NotFoundError("收藏", f"Favorite not found: {kind} {target_id}")
        await session.delete(fav)
