"""
Search business logic.
Case-insensitive substring search across tasks, projects, users and comments.
Tasks, projects and comments are limited to projects visible to the actor;
users are limited to active accounts. ``%`` and ``_`` match literally.
"""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import BadRequestError
from teamtrack.models.comment import Comment
from teamtrack.models.project import Project
from teamtrack.models.task import Task
from teamtrack.models.user import User
from teamtrack.schemas.comment import CommentResponse
from teamtrack.schemas.common import UserSummary
from teamtrack.schemas.search import (
    MIN_QUERY_LENGTH,
    SearchResponse,
    SearchResults,
    SearchScope,
)
from teamtrack.services.project_service import to_project_response, visible_projects_clause
from teamtrack.services.task_service import to_task_response


class SearchService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def search(
        self,
        q: str,
        actor: User | None,
        scope: SearchScope = SearchScope.all,
        limit: int = 10,
    ) -> SearchResponse:
        """
        Results are grouped by entity type and capped at ``limit`` per type.
        ``total_count`` is the number of results actually returned.
        """
        q = q.strip()
        if len(q) < MIN_QUERY_LENGTH:
            raise BadRequestError(
                f"Search query must be at least {MIN_QUERY_LENGTH} characters",
                code="QUERY_TOO_SHORT",
            )

        results = SearchResults()
        if scope in (SearchScope.all, SearchScope.tasks):
            results.tasks = await self._search_tasks(q, actor, limit)
        if scope in (SearchScope.all, SearchScope.projects):
            results.projects = await self._search_projects(q, actor, limit)
        if scope in (SearchScope.all, SearchScope.users):
            results.users = await self._search_users(q, limit)
        if scope in (SearchScope.all, SearchScope.comments):
            results.comments = await self._search_comments(q, actor, limit)

        total = (
            len(results.tasks)
            + len(results.projects)
            + len(results.users)
            + len(results.comments)
        )
        return SearchResponse(query=q, scope=scope, total_count=total, results=results)

    async def _search_tasks(self, q: str, actor: User | None, limit: int):
        visible = select(Project.id).where(visible_projects_clause(actor))
        stmt = (
            select(Task)
            .where(
                Task.project_id.in_(visible),
                or_(
                    Task.title.icontains(q, autoescape=True),
                    Task.description.icontains(q, autoescape=True),
                    Task.task_number.icontains(q, autoescape=True),
                ),
            )
            .order_by(Task.updated_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [to_task_response(t) for t in result.scalars().all()]

    async def _search_projects(self, q: str, actor: User | None, limit: int):
        stmt = (
            select(Project)
            .where(
                visible_projects_clause(actor),
                or_(
                    Project.name.icontains(q, autoescape=True),
                    Project.description.icontains(q, autoescape=True),
                    Project.key.icontains(q, autoescape=True),
                ),
            )
            .order_by(Project.updated_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [to_project_response(p, actor) for p in result.scalars().all()]

    async def _search_users(self, q: str, limit: int):
        stmt = (
            select(User)
            .where(
                User.is_active.is_(True),
                or_(
                    User.first_name.icontains(q, autoescape=True),
                    User.last_name.icontains(q, autoescape=True),
                    User.email.icontains(q, autoescape=True),
                ),
            )
            .order_by(User.first_name, User.last_name)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [UserSummary.model_validate(u) for u in result.scalars().all()]

    async def _search_comments(self, q: str, actor: User | None, limit: int):
        visible = select(Project.id).where(visible_projects_clause(actor))
        stmt = (
            select(Comment)
            .join(Task, Comment.task_id == Task.id)
            .where(
                Task.project_id.in_(visible),
                Comment.is_deleted.is_(False),
                Comment.content.icontains(q, autoescape=True),
            )
            .order_by(Comment.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [CommentResponse.model_validate(c) for c in result.scalars().all()]
