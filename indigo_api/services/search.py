"""Site search over products, published courses and articles.

Matching is a case-insensitive substring match (ILIKE on Postgres). Results
from all requested types are merged and sorted by updated_at descending,
then paginated.
"""

from typing import Any

from sqlalchemy import or_, select

from indigo_api.errors import ValidationError
from indigo_api.models import Article, Course, CourseStatus, Product
from indigo_api.schemas.common import to_iso
from indigo_api.stores.postgres import get_session

DEFAULT_LIMIT = 20
MAX_LIMIT = 50

TYPE_ALIASES: dict[str, str] = {
    "product": "product",
    "products": "product",
    "goods": "product",
    "store": "product",
    "course": "course",
    "courses": "course",
    "videos": "course",
    "video": "course",
    "article": "article",
    "articles": "article",
    "posts": "article",
}
ALL_TYPES = ("product", "course", "article")


def parse_types(raw: str | None) -> list[str]:
    """Comma separated type list -> canonical types. Empty means all."""
    if not raw:
        return list(ALL_TYPES)
    types: list[str] = []
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        canonical = TYPE_ALIASES.get(token)
        if canonical and canonical not in types:
            types.append(canonical)
    return types or list(ALL_TYPES)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search(
    q: str | None,
    types: str | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> dict[str, Any]:
    term = (q or "").strip()
    if not term:
        raise ValidationError("Search query is required", field="q", user_message="请输入搜索关键词")
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    wanted = parse_types(types)
    pattern = f"%{_escape_like(term)}%"

    results: list[dict[str, Any]] = []
    async with get_session() as session:
        if "product" in wanted:
            rows = await session.execute(
                select(Product).where(
                    or_(Product.name.ilike(pattern, escape="\\"), Product.description.ilike(pattern, escape="\\"))
                )
            )
            for p in rows.scalars().all():
                results.append(
                    {
                        "type": "product",
                        "id": p.id,
                        "title": p.name,
                        "description": p.description,
                        "image_url": p.image_url,
                        "price": p.price,
                        "updated_at": p.updated_at,
                    }
                )

        if "course" in wanted:
            rows = await session.execute(
                select(Course).where(
                    Course.status == CourseStatus.PUBLISHED.value,
                    or_(Course.title.ilike(pattern, escape="\\"), Course.description.ilike(pattern, escape="\\")),
                )
            )
            for c in rows.scalars().all():
                results.append(
                    {
                        "type": "course",
                        "id": c.id,
                        "title": c.title,
                        "description": c.description,
                        "image_url": c.image_url,
                        "price": c.price,
                        "updated_at": c.updated_at,
                    }
                )

        if "article" in wanted:
            rows = await session.execute(
                select(Article).where(
                    or_(Article.title.ilike(pattern, escape="\\"), Article.summary.ilike(pattern, escape="\\"))
                )
            )
            for a in rows.scalars().all():
                results.append(
                    {
                        "type": "article",
                        "id": a.id,
                        "title": a.title,
                        "description": a.summary,
                        "image_url": a.cover_image,
                        "price": None,
                        "updated_at": a.updated_at,
                    }
                )

    results.sort(key=lambda r: r["updated_at"].replace(tzinfo=None), reverse=True)
    page = results[offset : offset + limit]
    for r in page:
        r["updated_at"] = to_iso(r["updated_at"])

    return {"query": term, "types": wanted, "results": page, "total": len(results), "limit": limit, "offset": offset}
