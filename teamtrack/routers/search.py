"""
Search endpoint.
GET /search?q=...&scope=tasks|projects|users|comments|all&limit=10
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user
from teamtrack.models.user import User
from teamtrack.schemas.search import MIN_QUERY_LENGTH, SearchResponse, SearchScope
from teamtrack.services.search_service import SearchService

router = APIRouter()


def get_search_service(db: AsyncSession = Depends(get_db)) -> SearchService:
    return SearchService(db=db)


@router.get(
    "",
    response_model=SearchResponse,
    summary="Search tasks, projects, users and comments",
)
async def search(
    q: str = Query(min_length=MIN_QUERY_LENGTH, max_length=200),
    scope: SearchScope = Query(default=SearchScope.all),
    limit: int = Query(default=10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    return await service.search(q, current_user, scope=scope, limit=limit)
