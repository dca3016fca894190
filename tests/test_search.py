"""
Search tests: grouping per entity type, visibility and query validation.
"""

from helpers import auth_headers, create_project, create_task


async def search(client, user, q: str, **params):
    return await client.get(
        "/api/v1/search", params={"q": q, **params}, headers=auth_headers(user)
    )


async def test_search_groups_results_and_counts_them(client, alice, bob, make_user):
    project = await create_project(client, alice, key="AUTH", name="Authentication")
    await create_task(client, alice, project["id"], "Fix auth token expiry")
    await create_task(client, alice, project["id"], "Unrelated", description="OAuth callback")
    task = await create_task(client, alice, project["id"], "Styling")
    await client.post(
        f"/api/v1/comments/task/{task['id']}",
        json={"content": "Needs auth first"},
        headers=auth_headers(alice),
    )
    await make_user(first_name="Author", last_name="Smith")

    # Bob's private project must not leak into Alice's results
    hidden = await create_project(client, bob, key="SECRET")
    await create_task(client, bob, hidden["id"], "Secret auth work")

    resp = await search(client, alice, "auth")
    assert resp.status_code == 200
    body = resp.json()
    results = body["results"]

    # Every task of the AUTH project matches on its number
    assert len(results["tasks"]) == 3
    assert all(t["project_id"] == project["id"] for t in results["tasks"])
    assert [p["key"] for p in results["projects"]] == ["AUTH"]
    assert [u["first_name"] for u in results["users"]] == ["Author"]
    assert [c["content"] for c in results["comments"]] == ["Needs auth first"]
    assert body["total_count"] == 3 + 1 + 1 + 1
    assert body["query"] == "auth"


async def test_scope_limits_result_types(client, alice):
    project = await create_project(client, alice, key="DOCS", name="Docs")
    await create_task(client, alice, project["id"], "Write docs")

    resp = await search(client, alice, "docs", scope="tasks")
    body = resp.json()
    assert body["scope"] == "tasks"
    assert len(body["results"]["tasks"]) == 1
    assert body["results"]["projects"] == []
    assert body["total_count"] == 1


async def test_limit_caps_each_type(client, alice):
    project = await create_project(client, alice, key="LIM")
    for i in range(4):
        await create_task(client, alice, project["id"], f"Report {i}")

    body = (await search(client, alice, "report", limit=2)).json()
    assert len(body["results"]["tasks"]) == 2
    assert body["total_count"] == 2


async def test_deactivated_users_not_found(client, alice, make_user):
    await make_user(first_name="Zelda", is_active=False)
    body = (await search(client, alice, "zelda", scope="users")).json()
    assert body["results"]["users"] == []


async def test_short_queries_rejected(client, alice):
    resp = await search(client, alice, "a")
    assert resp.status_code == 422

    # Long enough before trimming, too short after
    resp = await search(client, alice, " a ")
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "QUERY_TOO_SHORT"


async def test_like_wildcards_are_literal(client, alice):
    project = await create_project(client, alice, key="PCT")
    await create_task(client, alice, project["id"], "Plain title")
    body = (await search(client, alice, "%%", scope="tasks")).json()
    assert body["results"]["tasks"] == []
