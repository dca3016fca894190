"""
Task tests: numbering, completion tracking, updates, bulk updates,
subtask deletion and audit behaviour.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from teamtrack.services.activity_service import ActivityService

from helpers import add_member, auth_headers, create_project, create_task


async def get_project(client, user, project_id: str) -> dict:
    resp = await client.get(f"/api/v1/projects/{project_id}", headers=auth_headers(user))
    assert resp.status_code == 200, resp.text
    return resp.json()


async def patch_task(client, user, task_id: str, **fields):
    return await client.patch(
        f"/api/v1/tasks/{task_id}", json=fields, headers=auth_headers(user)
    )


# ---------------------------------------------------------------------------
# 1. Numbering
# ---------------------------------------------------------------------------

async def test_task_numbers_are_sequential_and_never_reused(client, alice):
    project = await create_project(client, alice, key="ABC")
    tasks = [await create_task(client, alice, project["id"], f"T{i}") for i in range(3)]
    assert [t["task_number"] for t in tasks] == ["ABC-1", "ABC-2", "ABC-3"]

    resp = await client.delete(f"/api/v1/tasks/{tasks[1]['id']}", headers=auth_headers(alice))
    assert resp.status_code == 204

    fourth = await create_task(client, alice, project["id"], "T4")
    assert fourth["task_number"] == "ABC-4"
    assert (await get_project(client, alice, project["id"]))["task_count"] == 3


async def test_get_task_by_number_is_case_insensitive(client, alice):
    project = await create_project(client, alice, key="ABC")
    task = await create_task(client, alice, project["id"])

    resp = await client.get("/api/v1/tasks/number/abc-1", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json()["id"] == task["id"]


async def test_numbers_are_per_project(client, alice):
    first = await create_project(client, alice, key="ONE")
    second = await create_project(client, alice, key="TWO")
    await create_task(client, alice, first["id"])
    task = await create_task(client, alice, second["id"])
    assert task["task_number"] == "TWO-1"


# ---------------------------------------------------------------------------
# 2. Creation rules
# ---------------------------------------------------------------------------

async def test_public_non_member_cannot_create_task(client, alice, bob):
    project = await create_project(client, alice, visibility="public")
    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": project["id"], "title": "Drive-by"},
        headers=auth_headers(bob),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "NOT_A_MEMBER"


async def test_private_non_member_gets_404(client, alice, bob):
    project = await create_project(client, alice)
    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": project["id"], "title": "Sneaky"},
        headers=auth_headers(bob),
    )
    assert resp.status_code == 404


async def test_project_settings_apply_to_new_tasks(client, alice):
    project = await create_project(
        client,
        alice,
        settings={"default_task_priority": "high", "require_task_description": True},
    )
    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": project["id"], "title": "No description"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "DESCRIPTION_REQUIRED"

    task = await create_task(client, alice, project["id"], description="Spelled out")
    assert task["priority"] == "high"
    task = await create_task(client, alice, project["id"], description="x", priority="low")
    assert task["priority"] == "low"


async def test_assignee_must_be_active_user(client, alice, make_user):
    project = await create_project(client, alice)
    ghost = await make_user(is_active=False)
    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": project["id"], "title": "T", "assignee_id": str(ghost.id)},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "USER_NOT_FOUND"


async def test_parent_must_be_in_same_project(client, alice):
    first = await create_project(client, alice, key="ONE")
    second = await create_project(client, alice, key="TWO")
    parent = await create_task(client, alice, first["id"])
    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": second["id"], "title": "Child", "parent_task_id": parent["id"]},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "PARENT_OTHER_PROJECT"


async def test_labels_from_other_projects_rejected(client, alice):
    first = await create_project(client, alice, key="ONE")
    second = await create_project(client, alice, key="TWO")
    resp = await client.post(
        "/api/v1/labels",
        json={"name": "backend", "project_id": first["id"]},
        headers=auth_headers(alice),
    )
    label = resp.json()

    resp = await client.post(
        "/api/v1/tasks",
        json={"project_id": second["id"], "title": "T", "label_ids": [label["id"]]},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_LABELS"

    task = await create_task(client, alice, first["id"], label_ids=[label["id"]])
    assert [lbl["name"] for lbl in task["labels"]] == ["backend"]


async def test_viewer_member_may_create_tasks(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob, role="viewer")
    task = await create_task(client, bob, project["id"])
    assert task["reporter_id"] == str(bob.id)


# ---------------------------------------------------------------------------
# 3. Completion tracking
# ---------------------------------------------------------------------------

async def test_completion_stamps_and_counters(client, alice):
    project = await create_project(client, alice)
    task = await create_task(client, alice, project["id"])
    await create_task(client, alice, project["id"])

    resp = await patch_task(client, alice, task["id"], status="done")
    assert resp.status_code == 200
    completed_at = resp.json()["completed_at"]
    assert completed_at is not None
    assert completed_at.endswith("Z")

    # Read back from storage renders the same instant the same way
    resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(alice))
    assert resp.json()["completed_at"] == completed_at

    body = await get_project(client, alice, project["id"])
    assert body["completed_task_count"] == 1
    assert body["completion_percentage"] == 50

    # done -> done keeps the original timestamp
    resp = await patch_task(client, alice, task["id"], status="done")
    assert resp.json()["completed_at"] == completed_at

    resp = await patch_task(client, alice, task["id"], status="in_progress")
    assert resp.json()["completed_at"] is None
    assert (await get_project(client, alice, project["id"]))["completed_task_count"] == 0


async def test_task_created_done_counts_as_completed(client, alice):
    project = await create_project(client, alice)
    task = await create_task(client, alice, project["id"], status="done")
    assert task["completed_at"] is not None
    assert (await get_project(client, alice, project["id"]))["completion_percentage"] == 100


# ---------------------------------------------------------------------------
# 4. Updates
# ---------------------------------------------------------------------------

async def test_explicit_null_clears_nullable_fields_only(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    task = await create_task(
        client, alice, project["id"], assignee_id=str(bob.id), due_date="2030-01-01"
    )

    resp = await patch_task(client, alice, task["id"], assignee_id=None, due_date=None, title=None)
    assert resp.status_code == 200
    body = resp.json()
    assert body["assignee_id"] is None
    assert body["due_date"] is None
    assert body["title"] == task["title"]


async def test_parent_cycle_rejected(client, alice):
    project = await create_project(client, alice)
    parent = await create_task(client, alice, project["id"], "Parent")
    child = await create_task(client, alice, project["id"], "Child", parent_task_id=parent["id"])

    resp = await patch_task(client, alice, parent["id"], parent_task_id=child["id"])
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "PARENT_CYCLE"

    resp = await patch_task(client, alice, parent["id"], parent_task_id=parent["id"])
    assert resp.status_code == 400


async def test_update_audit_uses_first_matching_action(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    task = await create_task(client, alice, project["id"])

    await patch_task(client, alice, task["id"], assignee_id=str(bob.id), status="in_progress")
    await patch_task(client, alice, task["id"], priority="urgent")

    resp = await client.get(
        f"/api/v1/activities/entity/task/{task['id']}", headers=auth_headers(alice)
    )
    assert resp.status_code == 200
    entries = resp.json()["items"]
    assert [e["action"] for e in entries] == ["task.priority_change", "task.assign", "task.create"]
    assert entries[1]["changes"]["after"]["status"] == "in_progress"
    assert entries[2]["metadata"]["task_number"] == "ABC-1"


async def test_noop_update_writes_no_audit(client, alice):
    project = await create_project(client, alice)
    task = await create_task(client, alice, project["id"], "Same")
    resp = await patch_task(client, alice, task["id"], title="Same")
    assert resp.status_code == 200

    resp = await client.get(
        f"/api/v1/activities/entity/task/{task['id']}", headers=auth_headers(alice)
    )
    assert resp.json()["total"] == 1


# ---------------------------------------------------------------------------
# 5. Bulk update
# ---------------------------------------------------------------------------

async def test_bulk_update_counts_changed_tasks(client, alice):
    project = await create_project(client, alice)
    tasks = [await create_task(client, alice, project["id"], f"T{i}") for i in range(3)]
    ids = [t["id"] for t in tasks] + [tasks[0]["id"]]

    resp = await client.patch(
        "/api/v1/tasks/bulk",
        json={"task_ids": ids, "updates": {"status": "done"}},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json() == {"modified_count": 3}
    assert (await get_project(client, alice, project["id"]))["completed_task_count"] == 3

    resp = await client.patch(
        "/api/v1/tasks/bulk",
        json={"task_ids": ids, "updates": {"status": "done"}},
        headers=auth_headers(alice),
    )
    assert resp.json() == {"modified_count": 0}


async def test_bulk_update_is_all_or_nothing(client, alice, bob):
    mine = await create_project(client, alice, key="MINE")
    theirs = await create_project(client, bob, key="THEIRS", visibility="public")
    own_task = await create_task(client, alice, mine["id"])
    foreign_task = await create_task(client, bob, theirs["id"])

    resp = await client.patch(
        "/api/v1/tasks/bulk",
        json={"task_ids": [own_task["id"], foreign_task["id"]], "updates": {"priority": "urgent"}},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 403

    resp = await client.get(f"/api/v1/tasks/{own_task['id']}", headers=auth_headers(alice))
    assert resp.json()["priority"] == "medium"


async def test_bulk_update_limit(client, alice):
    resp = await client.patch(
        "/api/v1/tasks/bulk",
        json={
            "task_ids": ["00000000-0000-0000-0000-%012d" % i for i in range(51)],
            "updates": {"status": "done"},
        },
        headers=auth_headers(alice),
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# 6. Delete
# ---------------------------------------------------------------------------

async def test_delete_removes_subtree_and_comments(client, alice):
    project = await create_project(client, alice)
    root = await create_task(client, alice, project["id"], "Root")
    child = await create_task(client, alice, project["id"], "Child", parent_task_id=root["id"])
    grandchild = await create_task(
        client, alice, project["id"], "Grandchild", parent_task_id=child["id"], status="done"
    )
    survivor = await create_task(client, alice, project["id"], "Survivor")

    resp = await client.post(
        f"/api/v1/comments/task/{child['id']}",
        json={"content": "going away"},
        headers=auth_headers(alice),
    )
    comment_id = resp.json()["id"]

    resp = await client.delete(f"/api/v1/tasks/{root['id']}", headers=auth_headers(alice))
    assert resp.status_code == 204

    for task in (root, child, grandchild):
        resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(alice))
        assert resp.status_code == 404
    resp = await client.get(f"/api/v1/comments/{comment_id}", headers=auth_headers(alice))
    assert resp.status_code == 404
    resp = await client.get(f"/api/v1/tasks/{survivor['id']}", headers=auth_headers(alice))
    assert resp.status_code == 200

    body = await get_project(client, alice, project["id"])
    assert body["task_count"] == 1
    assert body["completed_task_count"] == 0

    resp = await client.get(
        f"/api/v1/activities/entity/task/{root['id']}", headers=auth_headers(alice)
    )
    assert resp.status_code == 404

    resp = await client.get(
        f"/api/v1/activities/project/{project['id']}", headers=auth_headers(alice)
    )
    latest = resp.json()["items"][0]
    assert latest["action"] == "task.delete"
    assert latest["entity_id"] == root["id"]
    assert latest["metadata"]["deleted_subtasks"] == 2


# ---------------------------------------------------------------------------
# 7. Reads
# ---------------------------------------------------------------------------

async def test_overdue_flag_and_filter(client, alice):
    project = await create_project(client, alice)
    yesterday = (datetime.now(UTC).date() - timedelta(days=1)).isoformat()
    late = await create_task(client, alice, project["id"], "Late", due_date=yesterday)
    await create_task(client, alice, project["id"], "Finished", due_date=yesterday, status="done")
    await create_task(client, alice, project["id"], "Undated")
    assert late["is_overdue"] is True

    resp = await client.get(
        "/api/v1/tasks",
        params={"project_id": project["id"], "overdue": "true"},
        headers=auth_headers(alice),
    )
    assert [t["id"] for t in resp.json()["items"]] == [late["id"]]

    resp = await client.get(
        "/api/v1/tasks",
        params={"project_id": project["id"], "overdue": "false"},
        headers=auth_headers(alice),
    )
    assert resp.json()["total"] == 2


async def test_list_filters_by_multiple_statuses(client, alice):
    project = await create_project(client, alice)
    await create_task(client, alice, project["id"], "A", status="backlog")
    await create_task(client, alice, project["id"], "B", status="in_review")
    await create_task(client, alice, project["id"], "C")

    resp = await client.get(
        "/api/v1/tasks",
        params=[("status", "backlog"), ("status", "in_review"), ("sort_by", "title"), ("sort_order", "asc")],
        headers=auth_headers(alice),
    )
    assert [t["title"] for t in resp.json()["items"]] == ["A", "B"]


async def test_task_list_hides_private_projects(client, alice, bob):
    project = await create_project(client, alice)
    await create_task(client, alice, project["id"])

    resp = await client.get("/api/v1/tasks", headers=auth_headers(bob))
    assert resp.json()["total"] == 0

    resp = await client.get(
        "/api/v1/tasks", params={"project_id": project["id"]}, headers=auth_headers(bob)
    )
    assert resp.status_code == 404


async def test_my_tasks_only_lists_assigned(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    mine = await create_task(client, alice, project["id"], "Bob's", assignee_id=str(bob.id))
    await create_task(client, alice, project["id"], "Alice's", assignee_id=str(alice.id))

    resp = await client.get("/api/v1/tasks/my-tasks", headers=auth_headers(bob))
    assert [t["id"] for t in resp.json()["items"]] == [mine["id"]]


async def test_board_has_a_column_per_status(client, alice):
    project = await create_project(client, alice)
    await create_task(client, alice, project["id"], status="in_progress")

    resp = await client.get(f"/api/v1/tasks/board/{project['id']}", headers=auth_headers(alice))
    assert resp.status_code == 200
    columns = {c["status"]: c["count"] for c in resp.json()["columns"]}
    assert columns == {
        "backlog": 0,
        "todo": 0,
        "in_progress": 1,
        "in_review": 0,
        "done": 0,
        "cancelled": 0,
    }


async def test_stats_sum_hours_per_status(client, alice):
    project = await create_project(client, alice)
    await create_task(client, alice, project["id"], estimated_hours=3)
    await create_task(client, alice, project["id"], estimated_hours=2.5)

    resp = await client.get(f"/api/v1/tasks/stats/{project['id']}", headers=auth_headers(alice))
    body = resp.json()
    assert body["total"] == 2
    todo = next(s for s in body["by_status"] if s["status"] == "todo")
    assert todo == {"status": "todo", "count": 2, "estimated_hours": 5.5, "actual_hours": 0.0}


# ---------------------------------------------------------------------------
# 8. Best-effort audit
# ---------------------------------------------------------------------------

async def test_failed_audit_append_does_not_fail_mutation(client, alice, monkeypatch):
    project = await create_project(client, alice)

    async def _broken_record(self, *args, **kwargs):
        raise SQLAlchemyError("audit store unavailable")

    monkeypatch.setattr(ActivityService, "record", _broken_record)

    task = await create_task(client, alice, project["id"], "Still saved")
    resp = await patch_task(client, alice, task["id"], status="done")
    assert resp.status_code == 200

    monkeypatch.undo()
    resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers(alice))
    assert resp.json()["status"] == "done"

    resp = await client.get(
        f"/api/v1/activities/entity/task/{task['id']}", headers=auth_headers(alice)
    )
    assert resp.json()["total"] == 0
