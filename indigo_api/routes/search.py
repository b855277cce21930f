"""Site search endpoint."""

from fastapi import APIRouter, Query

from indigo_api.schemas.common import ERROR_RESPONSES, ok
from indigo_api.services import search as search_service

router = APIRouter(responses=ERROR_RESPONSES)


@router.get("")
async def search(
    q: str = Query(default="", description="Search term (substring, case-insensitive)"),
    types: str | None = Query(default=None, description="Comma separated: products, courses, articles"),
    limit: int = Query(default=search_service.DEFAULT_LIMIT, ge=1, le=search_service.MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
) -> dict:
    return ok(await search_service.search(q, types=types, limit=limit, offset=offset))
