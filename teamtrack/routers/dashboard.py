"""
Dashboard endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user, require_role
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.dashboard import AdminOverviewResponse, OverviewResponse, WorkloadResponse
from teamtrack.services.dashboard_service import DashboardService

router = APIRouter()


def get_dashboard_service(db: AsyncSession = Depends(get_db)) -> DashboardService:
    return DashboardService(db=db)


@router.get(
    "/overview",
    response_model=OverviewResponse,
    summary="Personal dashboard",
)
async def overview(
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
) -> OverviewResponse:
    return await service.overview(current_user)


@router.get(
    "/admin",
    response_model=AdminOverviewResponse,
    summary="System-wide dashboard (admin)",
)
async def admin_overview(
    _: User = Depends(require_role(UserRole.admin)),
    service: DashboardService = Depends(get_dashboard_service),
) -> AdminOverviewResponse:
    return await service.admin_overview()


@router.get(
    "/workload/{project_id}",
    response_model=WorkloadResponse,
    summary="Open tasks per assignee in a project",
)
async def project_workload(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
) -> WorkloadResponse:
    return await service.project_workload(project_id, current_user)
