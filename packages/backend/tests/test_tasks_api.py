"""Task CRUD API tests.

Learn: Every request carries a real bearer token from the `register`
fixture. Cross-user cases use two registered users and check that the
other user's task is indistinguishable from a missing one.
"""

import pytest


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def alice(register):
    token, _ = await register("alice", "alice@x.com")
    return _bearer(token)


@pytest.fixture
async def bob(register):
    token, _ = await register("bob", "bob@x.com")
    return _bearer(token)


async def _create(client, headers, **body):
    body.setdefault("title", "buy milk")
    r = await client.post("/tasks", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Create / read
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_task(client, alice):
    task = await _create(client, alice, title="buy milk", description="2 liters")
    assert task["title"] == "buy milk"
    assert task["description"] == "2 liters"
    assert task["completed"] is False
    assert isinstance(task["id"], int)
    assert "createdAt" in task
    assert "updatedAt" in task


@pytest.mark.asyncio
async def test_task_json_has_no_owner(client, alice):
    task = await _create(client, alice)
    assert set(task) == {"id", "title", "description", "completed", "createdAt", "updatedAt"}


@pytest.mark.asyncio
async def test_create_completed(client, alice):
    task = await _create(client, alice, completed=True)
    assert task["completed"] is True


@pytest.mark.asyncio
async def test_owner_in_body_is_ignored(client, alice, bob):
    """There is no way to create a task on someone else's list."""
    r = await client.post(
        "/tasks",
        json={"title": "planted", "owner_id": "whoever", "ownerId": "whoever"},
        headers=alice,
    )
    assert r.status_code == 201
    assert (await client.get("/tasks", headers=bob)).json() == []


@pytest.mark.asyncio
async def test_get_task(client, alice):
    created = await _create(client, alice)
    r = await client.get(f"/tasks/{created['id']}", headers=alice)
    assert r.status_code == 200
    assert r.json() == created


@pytest.mark.asyncio
async def test_list_is_per_user(client, alice, bob):
    await _create(client, alice, title="a1")
    await _create(client, alice, title="a2")
    await _create(client, bob, title="b1")

    mine = (await client.get("/tasks", headers=alice)).json()
    theirs = (await client.get("/tasks", headers=bob)).json()
    assert [t["title"] for t in mine] == ["a1", "a2"]
    assert [t["title"] for t in theirs] == ["b1"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"title": ""},
        {"title": "   "},
        {"title": "x" * 201},
        {"title": "ok", "description": "d" * 1001},
    ],
)
async def test_create_validation(client, alice, body):
    r = await client.post("/tasks", json=body, headers=alice)
    assert r.status_code == 400
    assert r.json()["details"]


@pytest.mark.asyncio
async def test_non_integer_id(client, alice):
    r = await client.get("/tasks/abc", headers=alice)
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_partial_update(client, alice):
    created = await _create(client, alice, title="buy milk", description="2 liters")
    r = await client.put(f"/tasks/{created['id']}", json={"completed": True}, headers=alice)
    assert r.status_code == 200
    task = r.json()
    assert task["completed"] is True
    assert task["title"] == "buy milk"
    assert task["description"] == "2 liters"
    assert task["createdAt"] == created["createdAt"]
    assert task["updatedAt"] > created["updatedAt"]


@pytest.mark.asyncio
async def test_null_fields_are_left_alone(client, alice):
    created = await _create(client, alice, title="buy milk", description="2 liters")
    r = await client.put(
        f"/tasks/{created['id']}",
        json={"title": None, "description": None, "completed": None},
        headers=alice,
    )
    assert r.status_code == 200
    assert r.json()["title"] == "buy milk"
    assert r.json()["description"] == "2 liters"


@pytest.mark.asyncio
async def test_update_blank_title_rejected(client, alice):
    created = await _create(client, alice)
    r = await client.put(f"/tasks/{created['id']}", json={"title": "  "}, headers=alice)
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_delete_task(client, alice):
    created = await _create(client, alice)
    r = await client.delete(f"/tasks/{created['id']}", headers=alice)
    assert r.status_code == 204
    assert r.content == b""

    r = await client.get(f"/tasks/{created['id']}", headers=alice)
    assert r.status_code == 404
    r = await client.delete(f"/tasks/{created['id']}", headers=alice)
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Isolation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_other_users_task_is_not_found(client, alice, bob):
    created = await _create(client, alice, title="alice's")
    task_id = created["id"]

    foreign_get = await client.get(f"/tasks/{task_id}", headers=bob)
    missing_get = await client.get("/tasks/999999", headers=bob)
    assert foreign_get.status_code == missing_get.status_code == 404
    assert foreign_get.json()["error"] == missing_get.json()["error"]

    r = await client.put(f"/tasks/{task_id}", json={"title": "hijacked"}, headers=bob)
    assert r.status_code == 404
    r = await client.delete(f"/tasks/{task_id}", headers=bob)
    assert r.status_code == 404

    # Still intact for the owner
    r = await client.get(f"/tasks/{task_id}", headers=alice)
    assert r.status_code == 200
    assert r.json() == created


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, path",
    [("GET", "/tasks"), ("POST", "/tasks"), ("GET", "/tasks/1"),
     ("PUT", "/tasks/1"), ("DELETE", "/tasks/1")],
)
async def test_tasks_require_token(client, method, path):
    r = await client.request(method, path, json={"title": "x"} if method in ("POST", "PUT") else None)
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_bad_token_is_rejected(client, alice):
    r = await client.get("/tasks", headers=_bearer("not.a.token"))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_deleted_user_token_is_rejected(client, db_session, alice):
    from sqlalchemy import delete

    from tasktrack.db.models import User

    await db_session.execute(delete(User))
    await db_session.commit()

    r = await client.get("/tasks", headers=alice)
    assert r.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
@pytest.mark.parametrize("task_id", ["0", "-1", "2147483648", "99999999999999999999"])
async def test_ids_outside_the_column_are_not_found(client, alice, method, task_id):
    r = await client.request(
        method,
        f"/tasks/{task_id}",
        json={"title": "x"} if method == "PUT" else None,
        headers=alice,
    )
    assert r.status_code == 404
    assert r.json()["message"] == f"Task {task_id} not found"
