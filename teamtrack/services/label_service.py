"""
Label business logic.

Labels are either global (no project) or scoped to one project. Names are
unique among the non-archived labels of a scope; archiving frees the name.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from teamtrack.core.permissions import (
    PROJECT_MANAGER_ROLES,
    ensure_can_view_project,
    ensure_project_role,
    is_admin,
    resolve_role,
)
from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.models.label import Label
from teamtrack.models.user import User
from teamtrack.schemas.label import LabelCreateRequest, LabelResponse, LabelUpdateRequest
from teamtrack.services.activity_service import ActivityService
from teamtrack.services.project_service import get_project_or_404

logger = logging.getLogger(__name__)


class LabelService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityService(db)

    async def create_label(self, data: LabelCreateRequest, creator: User) -> LabelResponse:
        if data.project_id is not None:
            project = await get_project_or_404(self.db, data.project_id)
            ensure_project_role(project, creator)

        await self._ensure_name_free(data.name, data.project_id)

        label = Label(
            name=data.name,
            color=data.color,
            description=data.description,
            project_id=data.project_id,
            created_by_id=creator.id,
            is_archived=False,
        )
        self.db.add(label)
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.label_create,
            actor_id=creator.id,
            entity_type=EntityType.label,
            entity_id=label.id,
            project_id=label.project_id,
            metadata={"label_name": label.name},
        )
        return LabelResponse.model_validate(label)

    async def list_labels(
        self,
        actor: User | None,
        project_id: UUID | None = None,
        include_global: bool = True,
    ) -> list[LabelResponse]:
        """
        Active labels, alphabetical.

        With a project: that project's labels plus, unless disabled, the
        global ones. Without a project: global labels only.
        """
        stmt = select(Label).where(Label.is_archived.is_(False))
        if project_id is not None:
            project = await get_project_or_404(self.db, project_id)
            ensure_can_view_project(project, actor)
            scope = Label.project_id == project_id
            if include_global:
                scope = or_(scope, Label.project_id.is_(None))
            stmt = stmt.where(scope)
        else:
            stmt = stmt.where(Label.project_id.is_(None))

        result = await self.db.execute(stmt.order_by(Label.name, Label.id))
        return [LabelResponse.model_validate(label) for label in result.scalars().all()]

    async def get_label(self, label_id: UUID, actor: User | None) -> LabelResponse:
        label = await self._get_label(label_id, actor)
        return LabelResponse.model_validate(label)

    async def update_label(
        self, label_id: UUID, data: LabelUpdateRequest, actor: User
    ) -> LabelResponse:
        label = await self._get_label(label_id, actor)
        await self._ensure_can_manage(label, actor)

        before: dict[str, Any] = {}
        after: dict[str, Any] = {}
        if data.name is not None and data.name != label.name:
            await self._ensure_name_free(data.name, label.project_id, exclude_id=label.id)
            before["name"], after["name"] = label.name, data.name
            label.name = data.name
        if data.color is not None and data.color != label.color:
            before["color"], after["color"] = label.color, data.color
            label.color = data.color
        if "description" in data.model_fields_set and data.description != label.description:
            before["description"], after["description"] = label.description, data.description
            label.description = data.description

        if after:
            await self.db.flush()
            await self.activity.record_best_effort(
                ActivityAction.label_update,
                actor_id=actor.id,
                entity_type=EntityType.label,
                entity_id=label.id,
                project_id=label.project_id,
                changes={"before": before, "after": after},
            )
        return LabelResponse.model_validate(label)

    async def delete_label(self, label_id: UUID, actor: User) -> None:
        """Archive the label; tasks keep their existing links."""
        label = await self._get_label(label_id, actor)
        await self._ensure_can_manage(label, actor)
        if label.is_archived:
            return

        label.is_archived = True
        await self.db.flush()
        await self.activity.record_best_effort(
            ActivityAction.label_delete,
            actor_id=actor.id,
            entity_type=EntityType.label,
            entity_id=label.id,
            project_id=label.project_id,
            metadata={"label_name": label.name},
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_label(self, label_id: UUID, actor: User | None) -> Label:
        label = await self.db.get(Label, label_id)
        if label is None:
            raise NotFoundError("Label not found", code="LABEL_NOT_FOUND")
        if label.project_id is not None:
            project = await get_project_or_404(self.db, label.project_id)
            try:
                ensure_can_view_project(project, actor)
            except NotFoundError:
                raise NotFoundError("Label not found", code="LABEL_NOT_FOUND")
        return label

    async def _ensure_can_manage(self, label: Label, actor: User) -> None:
        """Creator, system admin, or owner/admin of the label's project."""
        if label.created_by_id == actor.id or is_admin(actor):
            return
        if label.project_id is not None:
            project = await get_project_or_404(self.db, label.project_id)
            if resolve_role(project, actor.id) in PROJECT_MANAGER_ROLES:
                return
        raise ForbiddenError("You cannot modify this label", code="LABEL_FORBIDDEN")

    async def _ensure_name_free(
        self, name: str, project_id: UUID | None, exclude_id: UUID | None = None
    ) -> None:
        scope = Label.project_id.is_(None) if project_id is None else Label.project_id == project_id
        stmt = select(Label.id).where(
            scope,
            Label.is_archived.is_(False),
            func.lower(Label.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Label.id != exclude_id)
        if (await self.db.execute(stmt)).first() is not None:
            raise ConflictError("A label with this name already exists", code="LABEL_NAME_TAKEN")
