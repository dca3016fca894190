"""
Search schemas.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from teamtrack.schemas.comment import CommentResponse
from teamtrack.schemas.common import UserSummary
from teamtrack.schemas.project import ProjectResponse
from teamtrack.schemas.task import TaskResponse

MIN_QUERY_LENGTH = 2


class SearchScope(str, Enum):
    all = "all"
    tasks = "tasks"
    projects = "projects"
    users = "users"
    comments = "comments"


class SearchResults(BaseModel):
    tasks: list[TaskResponse] = Field(default_factory=list)
    projects: list[ProjectResponse] = Field(default_factory=list)
    users: list[UserSummary] = Field(default_factory=list)
    comments: list[CommentResponse] = Field(default_factory=list)


class SearchResponse(BaseModel):
    query: str
    scope: SearchScope
    total_count: int
    results: SearchResults
