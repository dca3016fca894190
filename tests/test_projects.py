"""
Project tests: creation rules, visibility, updates and membership.
"""

from teamtrack.models import UserRole
from teamtrack.models.project import ProjectRole
from teamtrack.schemas.project import MemberAddRequest, ProjectCreateRequest
from teamtrack.services.project_service import ProjectService

from helpers import add_member, auth_headers, create_project, create_task


# ---------------------------------------------------------------------------
# 1. Creation
# ---------------------------------------------------------------------------

async def test_create_project_normalizes_key(client, alice):
    project = await create_project(client, alice, key="abc1")
    assert project["key"] == "ABC1"
    assert project["owner_id"] == str(alice.id)
    assert project["my_role"] == "owner"
    assert project["members"] == []
    assert project["task_count"] == 0
    assert project["created_at"].endswith("Z")
    assert project["settings"]["default_task_priority"] == "medium"


async def test_create_project_service_builds_response_in_session(db_session, alice, bob):
    service = ProjectService(db_session)
    response = await service.create_project(ProjectCreateRequest(name="Svc", key="svc"), alice)

    assert response.key == "SVC"
    assert response.members == []
    assert response.my_role == ProjectRole.owner
    assert response.created_at.tzinfo is not None

    response = await service.add_member(
        response.id, MemberAddRequest(user_id=bob.id, role=ProjectRole.viewer), alice
    )
    assert [(m.user_id, m.role) for m in response.members] == [(bob.id, ProjectRole.viewer)]


async def test_create_project_rejects_bad_key(client, alice):
    resp = await client.post(
        "/api/v1/projects",
        json={"name": "Bad", "key": "1AB"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_PROJECT_KEY"


async def test_duplicate_key_conflicts(client, alice, bob):
    await create_project(client, alice, key="DUP")
    resp = await client.post(
        "/api/v1/projects",
        json={"name": "Other", "key": "dup"},
        headers=auth_headers(bob),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "KEY_TAKEN"


async def test_viewer_cannot_create_project(client, make_user):
    viewer = await make_user(UserRole.viewer)
    resp = await client.post(
        "/api/v1/projects",
        json={"name": "Nope", "key": "NOPE"},
        headers=auth_headers(viewer),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"


async def test_system_viewer_blocked_on_create_routes_despite_membership(
    client, alice, make_user
):
    viewer = await make_user(UserRole.viewer)
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], viewer, role="member")
    headers = auth_headers(viewer)

    resp = await client.post(
        "/api/v1/tasks", json={"project_id": project["id"], "title": "Nope"}, headers=headers
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"

    resp = await client.post(
        "/api/v1/labels", json={"name": "nope", "project_id": project["id"]}, headers=headers
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"

    # Membership still grants read access
    resp = await client.get(f"/api/v1/projects/{project['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["my_role"] == "member"


async def test_end_date_before_start_date_rejected(client, alice):
    resp = await client.post(
        "/api/v1/projects",
        json={"name": "Dates", "key": "DT", "start_date": "2026-05-01", "end_date": "2026-04-01"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_DATES"


# ---------------------------------------------------------------------------
# 2. Visibility
# ---------------------------------------------------------------------------

async def test_private_project_hidden_until_member(client, alice, bob):
    project = await create_project(client, alice)
    url = f"/api/v1/projects/{project['id']}"

    resp = await client.get(url, headers=auth_headers(bob))
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "PROJECT_NOT_FOUND"

    await add_member(client, alice, project["id"], bob)
    resp = await client.get(url, headers=auth_headers(bob))
    assert resp.status_code == 200
    assert resp.json()["my_role"] == "member"


async def test_admin_does_not_bypass_private_visibility(client, alice, admin):
    project = await create_project(client, alice)
    resp = await client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers(admin))
    assert resp.status_code == 404


async def test_list_projects_only_returns_visible(client, alice, bob):
    await create_project(client, alice, key="PRIV")
    public = await create_project(client, alice, key="PUB", name="Open", visibility="public")

    resp = await client.get("/api/v1/projects", headers=auth_headers(bob))
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()["items"]] == [public["id"]]

    # Anonymous callers see public projects too
    resp = await client.get("/api/v1/projects")
    assert resp.json()["total"] == 1

    resp = await client.get("/api/v1/projects", headers=auth_headers(alice))
    assert resp.json()["total"] == 2


async def test_list_projects_search_and_sort(client, alice):
    await create_project(client, alice, key="ZED", name="Zebra")
    await create_project(client, alice, key="ANT", name="Anteater")

    resp = await client.get(
        "/api/v1/projects",
        params={"sort_by": "name", "sort_order": "asc"},
        headers=auth_headers(alice),
    )
    assert [p["key"] for p in resp.json()["items"]] == ["ANT", "ZED"]

    resp = await client.get(
        "/api/v1/projects", params={"search": "zeb"}, headers=auth_headers(alice)
    )
    assert [p["key"] for p in resp.json()["items"]] == ["ZED"]


# ---------------------------------------------------------------------------
# 3. Update / delete
# ---------------------------------------------------------------------------

async def test_member_cannot_update_project(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    resp = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"name": "Renamed"},
        headers=auth_headers(bob),
    )
    assert resp.status_code == 403


async def test_project_admin_updates_settings(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob, role="admin")
    resp = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"settings": {"default_task_priority": "high"}, "status": "completed"},
        headers=auth_headers(bob),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["settings"] == {
        "default_task_priority": "high",
        "allow_comments": True,
        "require_task_description": False,
    }


async def test_archive_is_audited_as_archive(client, alice):
    project = await create_project(client, alice)
    await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"status": "archived", "end_date": "2026-12-31"},
        headers=auth_headers(alice),
    )
    resp = await client.get(
        f"/api/v1/activities/project/{project['id']}", headers=auth_headers(alice)
    )
    items = resp.json()["items"]
    actions = [a["action"] for a in items]
    assert actions[0] == "project.archive"
    assert "project.create" in actions
    assert items[0]["changes"] == {
        "before": {"status": "active", "end_date": None},
        "after": {"status": "archived", "end_date": "2026-12-31"},
    }


async def test_only_owner_deletes_and_delete_cascades(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob, role="admin")
    task = await create_task(client, alice, project["id"], "Doomed")

    resp = await client.delete(f"/api/v1/projects/{project['id']}", headers=auth_headers(bob))
    assert resp.status_code == 403

    resp = await client.delete(f"/api/v1/projects/{project['id']}", headers=auth_headers(alice))
    assert resp.status_code == 204

    resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(alice))
    assert resp.status_code == 404

    # A new project can reuse the key
    await create_project(client, alice)


async def test_entity_history_is_as_private_as_the_entity(client, alice, carol):
    project = await create_project(client, alice, key="SEC", name="Secret plan")
    task = await create_task(client, alice, project["id"])
    resp = await client.post(
        f"/api/v1/comments/task/{task['id']}",
        json={"content": "eyes only"},
        headers=auth_headers(alice),
    )
    comment = resp.json()
    resp = await client.post(
        "/api/v1/labels",
        json={"name": "classified", "project_id": project["id"]},
        headers=auth_headers(alice),
    )
    label = resp.json()

    entities = {
        "project": project["id"],
        "task": task["id"],
        "comment": comment["id"],
        "label": label["id"],
    }
    for entity_type, entity_id in entities.items():
        url = f"/api/v1/activities/entity/{entity_type}/{entity_id}"
        resp = await client.get(url, headers=auth_headers(carol))
        assert resp.status_code == 404, entity_type
        resp = await client.get(url, headers=auth_headers(alice))
        assert resp.status_code == 200, entity_type
        assert resp.json()["total"] >= 1

    resp = await client.get(
        f"/api/v1/activities/entity/user/{alice.id}", headers=auth_headers(carol)
    )
    assert resp.status_code == 403

    resp = await client.delete(f"/api/v1/projects/{project['id']}", headers=auth_headers(alice))
    assert resp.status_code == 204

    # Once the project is gone its history is not readable by entity id
    for user in (carol, alice):
        resp = await client.get(
            f"/api/v1/activities/entity/project/{project['id']}", headers=auth_headers(user)
        )
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# 4. Members
# ---------------------------------------------------------------------------

async def test_add_member_twice_conflicts(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    resp = await client.post(
        f"/api/v1/projects/{project['id']}/members",
        json={"user_id": str(bob.id), "role": "viewer"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "ALREADY_MEMBER"


async def test_owner_role_cannot_be_granted(client, alice, bob):
    project = await create_project(client, alice)
    resp = await client.post(
        f"/api/v1/projects/{project['id']}/members",
        json={"user_id": str(bob.id), "role": "owner"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 422


async def test_owner_cannot_be_removed(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob, role="admin")
    for actor in (alice, bob):
        resp = await client.delete(
            f"/api/v1/projects/{project['id']}/members/{alice.id}",
            headers=auth_headers(actor),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "OWNER_PROTECTED"


async def test_owner_role_change_rejected(client, alice):
    project = await create_project(client, alice)
    resp = await client.patch(
        f"/api/v1/projects/{project['id']}/members/{alice.id}",
        json={"role": "viewer"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 400


async def test_member_leaves_and_loses_access(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)

    resp = await client.delete(
        f"/api/v1/projects/{project['id']}/members/{bob.id}", headers=auth_headers(bob)
    )
    assert resp.status_code == 200
    assert resp.json()["members"] == []

    resp = await client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers(bob))
    assert resp.status_code == 404


async def test_owner_changes_member_role(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    resp = await client.patch(
        f"/api/v1/projects/{project['id']}/members/{bob.id}",
        json={"role": "viewer"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json()["members"][0]["role"] == "viewer"


async def test_project_statistics_admin_only(client, alice, admin):
    await create_project(client, alice)
    assert (
        await client.get("/api/v1/projects/statistics", headers=auth_headers(alice))
    ).status_code == 403

    resp = await client.get("/api/v1/projects/statistics", headers=auth_headers(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert {s["status"]: s["count"] for s in body["by_status"]}["active"] == 1
