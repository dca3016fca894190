"""
Authorization policy.

Pure functions over already-loaded role data: no I/O happens here. Each
``ensure_*`` helper raises the typed error a service should surface, the
``can_*`` helpers return booleans for callers that need to branch.
"""

from __future__ import annotations

from uuid import UUID

from teamtrack.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from teamtrack.models.project import Project, ProjectRole, ProjectVisibility
from teamtrack.models.user import User, UserRole

SYSTEM_ROLE_RANK: dict[UserRole, int] = {
    UserRole.viewer: 0,
    UserRole.member: 1,
    UserRole.admin: 2,
}

PROJECT_MANAGER_ROLES = frozenset({ProjectRole.owner, ProjectRole.admin})
ASSIGNABLE_MEMBER_ROLES = frozenset({ProjectRole.admin, ProjectRole.member, ProjectRole.viewer})


# ---------------------------------------------------------------------------
# System roles
# ---------------------------------------------------------------------------

def has_min_role(role: UserRole, minimum: UserRole) -> bool:
    """True if ``role`` is at or above ``minimum`` in viewer < member < admin."""
    return SYSTEM_ROLE_RANK[role] >= SYSTEM_ROLE_RANK[minimum]


def ensure_min_role(user: User, minimum: UserRole) -> None:
    if not has_min_role(user.role, minimum):
        raise ForbiddenError(
            f"Requires at least the {minimum.value} role",
            code="INSUFFICIENT_ROLE",
        )


def is_admin(user: User | None) -> bool:
    return user is not None and user.role == UserRole.admin


# ---------------------------------------------------------------------------
# Project roles
# ---------------------------------------------------------------------------

def resolve_role(project: Project, user_id: UUID | None) -> ProjectRole | None:
    """
    Effective role of ``user_id`` inside ``project``.

    The owner always resolves to ``owner``, whatever the member map says.
    """
    if user_id is None:
        return None
    if project.owner_id == user_id:
        return ProjectRole.owner
    member = project.members.get(user_id)
    return member.role if member is not None else None


def can_view_project(project: Project, user: User | None) -> bool:
    if project.visibility == ProjectVisibility.public:
        return True
    return resolve_role(project, user.id if user else None) is not None


def ensure_can_view_project(project: Project, user: User | None) -> ProjectRole | None:
    """Private projects the actor cannot see are reported as missing."""
    if not can_view_project(project, user):
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
    return resolve_role(project, user.id if user else None)


def ensure_project_role(project: Project, user: User) -> ProjectRole:
    """Actor must hold some role in the project (required for task and label writes)."""
    role = ensure_can_view_project(project, user)
    if role is None:
        raise ForbiddenError("You are not a member of this project", code="NOT_A_MEMBER")
    return role


def ensure_can_update_project(project: Project, user: User) -> None:
    role = ensure_can_view_project(project, user)
    if role not in PROJECT_MANAGER_ROLES:
        raise ForbiddenError("Only the project owner or an admin can update it")


def ensure_can_delete_project(project: Project, user: User) -> None:
    role = ensure_can_view_project(project, user)
    if role != ProjectRole.owner:
        raise ForbiddenError("Only the project owner can delete it")


def ensure_can_add_member(project: Project, user: User) -> None:
    role = ensure_can_view_project(project, user)
    if role not in PROJECT_MANAGER_ROLES:
        raise ForbiddenError("Only the project owner or an admin can add members")


def ensure_can_remove_member(project: Project, user: User, target_id: UUID) -> None:
    """Owner/admin may remove anyone but the owner; anyone may remove themselves."""
    if target_id == project.owner_id:
        raise BadRequestError("The project owner cannot be removed", code="OWNER_PROTECTED")
    role = ensure_can_view_project(project, user)
    if user.id == target_id:
        return
    if role not in PROJECT_MANAGER_ROLES:
        raise ForbiddenError("Only the project owner or an admin can remove members")


def ensure_can_change_member_role(project: Project, user: User, target_id: UUID) -> None:
    if target_id == project.owner_id:
        raise BadRequestError("The project owner's role cannot be changed", code="OWNER_PROTECTED")
    role = ensure_can_view_project(project, user)
    if role != ProjectRole.owner:
        raise ForbiddenError("Only the project owner can change member roles")
