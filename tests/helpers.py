"""Shared request helpers for the API tests."""

import uuid

import httpx

from teamtrack.core.security import create_access_token
from teamtrack.models import User

PASSWORD = "password123"


def unique_email(prefix: str) -> str:
    """Generate a unique email so tests never collide."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(str(user.id), user.role.value)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

async def create_project(
    client: httpx.AsyncClient,
    owner: User,
    key: str = "ABC",
    name: str = "Alpha",
    visibility: str = "private",
    **extra,
) -> dict:
    resp = await client.post(
        "/api/v1/projects",
        json={"name": name, "key": key, "visibility": visibility, **extra},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 201, f"Create project failed: {resp.text}"
    return resp.json()


async def add_member(
    client: httpx.AsyncClient, actor: User, project_id: str, user: User, role: str = "member"
) -> dict:
    resp = await client.post(
        f"/api/v1/projects/{project_id}/members",
        json={"user_id": str(user.id), "role": role},
        headers=auth_headers(actor),
    )
    assert resp.status_code == 201, f"Add member failed: {resp.text}"
    return resp.json()


async def create_task(
    client: httpx.AsyncClient, actor: User, project_id: str, title: str = "Task", **extra
) -> dict:
    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": project_id, "title": title, **extra},
        headers=auth_headers(actor),
    )
    assert resp.status_code == 201, f"Create task failed: {resp.text}"
    return resp.json()
