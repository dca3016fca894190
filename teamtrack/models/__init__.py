"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from teamtrack.models.base import Base, TimestampMixin, UUIDMixin
from teamtrack.models.user import User, UserRole
from teamtrack.models.project import (
    Project,
    ProjectMember,
    ProjectRole,
    ProjectStatus,
    ProjectTaskCounter,
    ProjectVisibility,
)
from teamtrack.models.label import Label, task_labels
from teamtrack.models.task import Task, TaskPriority, TaskStatus, TaskType
from teamtrack.models.comment import Comment, CommentReaction
from teamtrack.models.activity import Activity, ActivityAction, EntityType
from teamtrack.models.notification import Notification, NotificationType

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "UserRole",
    "Project",
    "ProjectMember",
    "ProjectRole",
    "ProjectStatus",
    "ProjectTaskCounter",
    "ProjectVisibility",
    "Label",
    "task_labels",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "Comment",
    "CommentReaction",
    "Activity",
    "ActivityAction",
    "EntityType",
    "Notification",
    "NotificationType",
]
