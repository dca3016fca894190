"""
Application-level tests: health endpoint and error envelope.
"""

from teamtrack import __version__

from helpers import auth_headers


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "environment": "test", "version": __version__}


async def test_errors_use_code_and_message(client, alice):
    resp = await client.get(
        "/api/v1/tasks/00000000-0000-0000-0000-000000000000", headers=auth_headers(alice)
    )
    assert resp.status_code == 404
    assert resp.json() == {"detail": {"code": "TASK_NOT_FOUND", "message": "Task not found"}}
