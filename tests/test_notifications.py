"""
Notification tests: who gets notified by task and comment events, and
the inbox endpoints.
"""

from helpers import add_member, auth_headers, create_project, create_task


async def inbox(client, user, **params) -> dict:
    resp = await client.get("/api/v1/notifications", params=params, headers=auth_headers(user))
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# 1. Triggers
# ---------------------------------------------------------------------------

async def test_member_added_is_notified(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)

    items = (await inbox(client, bob))["items"]
    assert [n["type"] for n in items] == ["project_invited"]
    assert items[0]["sender_id"] == str(alice.id)
    assert items[0]["project_id"] == project["id"]


async def test_assignment_and_reassignment(client, alice, bob, carol):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    await add_member(client, alice, project["id"], carol)
    task = await create_task(client, alice, project["id"], assignee_id=str(bob.id))

    bob_items = (await inbox(client, bob, type="task_assigned"))["items"]
    assert len(bob_items) == 1
    assert bob_items[0]["entity_id"] == task["id"]
    assert "ABC-1" in bob_items[0]["title"]

    await client.patch(
        f"/api/v1/tasks/{task['id']}",
        json={"assignee_id": str(carol.id)},
        headers=auth_headers(alice),
    )
    assert (await inbox(client, bob, type="task_unassigned"))["total"] == 1
    assert (await inbox(client, carol, type="task_assigned"))["total"] == 1


async def test_self_assignment_does_not_notify(client, alice):
    project = await create_project(client, alice)
    await create_task(client, alice, project["id"], assignee_id=str(alice.id))
    assert (await inbox(client, alice))["total"] == 0


async def test_reporter_notified_of_status_change(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    task = await create_task(client, alice, project["id"])

    await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"status": "in_review"}, headers=auth_headers(bob)
    )
    items = (await inbox(client, alice, type="task_status_changed"))["items"]
    assert len(items) == 1
    assert items[0]["title"] == "ABC-1 moved to in_review"


async def test_comment_recipients_get_most_specific_reason(client, alice, bob, carol):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    await add_member(client, alice, project["id"], carol)
    task = await create_task(client, alice, project["id"], assignee_id=str(bob.id))

    resp = await client.post(
        f"/api/v1/comments/task/{task['id']}",
        json={"content": "Root"},
        headers=auth_headers(carol),
    )
    root = resp.json()

    # Bob is assignee and mentioned; Carol wrote the parent; Alice is reporter
    await client.post(
        f"/api/v1/comments/task/{task['id']}",
        json={"content": "Reply", "parent_comment_id": root["id"], "mentions": [str(bob.id)]},
        headers=auth_headers(alice),
    )

    bob_types = [n["type"] for n in (await inbox(client, bob))["items"]]
    carol_types = [n["type"] for n in (await inbox(client, carol))["items"]]
    alice_types = [n["type"] for n in (await inbox(client, alice))["items"]]

    assert bob_types[0] == "comment_mentioned"
    assert bob_types.count("comment_mentioned") == 1
    assert carol_types[0] == "comment_replied"
    # Alice's own reply never notifies her; Carol's root comment did
    assert alice_types.count("task_commented") == 1


# ---------------------------------------------------------------------------
# 2. Inbox endpoints
# ---------------------------------------------------------------------------

async def test_read_flow(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    await create_task(client, alice, project["id"], assignee_id=str(bob.id))
    headers = auth_headers(bob)

    resp = await client.get("/api/v1/notifications/unread-count", headers=headers)
    assert resp.json() == {"unread_count": 2}

    first = (await inbox(client, bob))["items"][0]
    resp = await client.patch(f"/api/v1/notifications/{first['id']}/read", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_read"] is True
    assert resp.json()["read_at"] is not None

    assert (await inbox(client, bob, is_read="false"))["total"] == 1

    resp = await client.post("/api/v1/notifications/mark-all-read", headers=headers)
    assert resp.json() == {"updated": 1}
    resp = await client.get("/api/v1/notifications/unread-count", headers=headers)
    assert resp.json() == {"unread_count": 0}


async def test_other_users_notification_is_404(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    notification = (await inbox(client, bob))["items"][0]

    resp = await client.patch(
        f"/api/v1/notifications/{notification['id']}/read", headers=auth_headers(alice)
    )
    assert resp.status_code == 404
    resp = await client.delete(
        f"/api/v1/notifications/{notification['id']}", headers=auth_headers(alice)
    )
    assert resp.status_code == 404


async def test_delete_one_and_all(client, alice, bob):
    project = await create_project(client, alice)
    await add_member(client, alice, project["id"], bob)
    await create_task(client, alice, project["id"], "One", assignee_id=str(bob.id))
    await create_task(client, alice, project["id"], "Two", assignee_id=str(bob.id))
    headers = auth_headers(bob)

    first = (await inbox(client, bob))["items"][0]
    resp = await client.delete(f"/api/v1/notifications/{first['id']}", headers=headers)
    assert resp.status_code == 204

    resp = await client.delete("/api/v1/notifications", headers=headers)
    assert resp.json() == {"deleted": 2}
    assert (await inbox(client, bob))["total"] == 0
