"""TaskService tests — ownership scoping and partial updates.

Learn: The service takes an injectable clock, so updated_at behavior
is tested with a frozen clock instead of sleeping. SQLite hands back
naive datetimes, hence the _utc() helper when comparing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tasktrack.auth.dependencies import CurrentPrincipal
from tasktrack.auth.ownership import TaskNotFoundError
from tasktrack.db.stores import TaskStore
from tasktrack.services.task_service import TaskService

T0 = datetime(2026, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


@pytest.fixture
async def alice(resolver):
    return CurrentPrincipal.from_user(await resolver.register("alice", "alice@x.com", "secret1"))


@pytest.fixture
async def bob(resolver):
    return CurrentPrincipal.from_user(await resolver.register("bob", "bob@x.com", "secret1"))


# ═══════════════════════════════════════════════════════════
# Create / list
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_stamps_owner_and_defaults(db_session, alice):
    svc = TaskService(db_session, clock=lambda: T0)
    task = await svc.create_task(alice, title="buy milk")

    assert task.id is not None
    assert task.owner_id == alice.id
    assert task.completed is False
    assert task.description is None
    assert _utc(task.created_at) == T0
    assert _utc(task.updated_at) == T0


@pytest.mark.asyncio
async def test_list_only_returns_own_tasks(db_session, alice, bob):
    svc = TaskService(db_session)
    await svc.create_task(alice, title="a1")
    await svc.create_task(bob, title="b1")
    await svc.create_task(alice, title="a2")

    assert [t.title for t in await svc.list_tasks(alice)] == ["a1", "a2"]
    assert [t.title for t in await svc.list_tasks(bob)] == ["b1"]


@pytest.mark.asyncio
async def test_new_principal_has_empty_list(db_session, alice):
    assert await TaskService(db_session).list_tasks(alice) == []


# ═══════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(db_session, alice):
    svc = TaskService(db_session, clock=lambda: T0)
    task = await svc.create_task(alice, title="buy milk", description="2 liters")

    updated = await svc.update_task(alice, task.id, completed=True)

    assert updated.completed is True
    assert updated.title == "buy milk"
    assert updated.description == "2 liters"
    assert _utc(updated.created_at) == T0


@pytest.mark.asyncio
async def test_update_advances_updated_at(db_session, alice):
    clock = {"now": T0}
    svc = TaskService(db_session, clock=lambda: clock["now"])
    task = await svc.create_task(alice, title="buy milk")

    clock["now"] = T0 + timedelta(minutes=5)
    updated = await svc.update_task(alice, task.id, title="buy oat milk")

    assert _utc(updated.updated_at) == T0 + timedelta(minutes=5)
    assert _utc(updated.created_at) == T0


@pytest.mark.asyncio
async def test_frozen_clock_still_advances_updated_at(db_session, alice):
    """Two writes in the same clock tick still get increasing timestamps."""
    svc = TaskService(db_session, clock=lambda: T0)
    task = await svc.create_task(alice, title="buy milk")

    first = await svc.update_task(alice, task.id, completed=True)
    first_stamp = _utc(first.updated_at)
    second = await svc.update_task(alice, task.id, completed=False)

    assert first_stamp > T0
    assert _utc(second.updated_at) > first_stamp


@pytest.mark.asyncio
async def test_clock_going_backwards_still_advances(db_session, alice):
    clock = {"now": T0}
    svc = TaskService(db_session, clock=lambda: clock["now"])
    task = await svc.create_task(alice, title="buy milk")

    clock["now"] = T0 - timedelta(hours=1)
    updated = await svc.update_task(alice, task.id, title="x")
    assert _utc(updated.updated_at) > T0


@pytest.mark.asyncio
async def test_cross_owner_update_is_not_found(db_session, alice, bob):
    svc = TaskService(db_session)
    task = await svc.create_task(alice, title="alice's")

    with pytest.raises(TaskNotFoundError):
        await svc.update_task(bob, task.id, title="hijacked", completed=True)

    unchanged = await svc.get_task(alice, task.id)
    assert unchanged.title == "alice's"
    assert unchanged.completed is False


@pytest.mark.asyncio
async def test_update_missing_task(db_session, alice):
    with pytest.raises(TaskNotFoundError) as exc:
        await TaskService(db_session).update_task(alice, 999, title="x")
    assert str(exc.value) == "Task 999 not found"


@pytest.mark.asyncio
@pytest.mark.parametrize("task_id", [0, -5, 2**31, 10**20])
async def test_out_of_range_ids_are_not_found(db_session, alice, task_id):
    svc = TaskService(db_session)
    with pytest.raises(TaskNotFoundError):
        await svc.get_task(alice, task_id)
    with pytest.raises(TaskNotFoundError):
        await svc.update_task(alice, task_id, title="x")
    with pytest.raises(TaskNotFoundError):
        await svc.delete_task(alice, task_id)


# ═══════════════════════════════════════════════════════════
# Get / delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_cross_owner_get_is_not_found(db_session, alice, bob):
    svc = TaskService(db_session)
    task = await svc.create_task(alice, title="alice's")
    with pytest.raises(TaskNotFoundError):
        await svc.get_task(bob, task.id)


@pytest.mark.asyncio
async def test_delete_then_gone(db_session, alice):
    svc = TaskService(db_session)
    task = await svc.create_task(alice, title="buy milk")
    await svc.delete_task(alice, task.id)

    with pytest.raises(TaskNotFoundError):
        await svc.get_task(alice, task.id)
    with pytest.raises(TaskNotFoundError):
        await svc.delete_task(alice, task.id)


@pytest.mark.asyncio
async def test_cross_owner_delete_leaves_task(db_session, alice, bob):
    svc = TaskService(db_session)
    task = await svc.create_task(alice, title="alice's")

    with pytest.raises(TaskNotFoundError):
        await svc.delete_task(bob, task.id)
    assert (await svc.get_task(alice, task.id)).title == "alice's"


@pytest.mark.asyncio
async def test_store_scopes_by_owner(db_session, alice, bob):
    """The store itself refuses to touch rows owned by someone else."""
    svc = TaskService(db_session)
    task = await svc.create_task(alice, title="alice's")
    store = TaskStore(db_session)

    assert await store.find_owned(task.id, bob.id) is None
    assert await store.update_owned(task.id, bob.id, {"title": "x"}) is None
    assert await store.delete_owned(task.id, bob.id) is False
    assert (await store.find_owned(task.id, alice.id)).title == "alice's"


@pytest.mark.asyncio
async def test_deleting_principal_removes_their_tasks(db_session, resolver, alice, bob):
    svc = TaskService(db_session)
    await svc.create_task(alice, title="a1")
    await svc.create_task(bob, title="b1")

    user = await resolver.credentials.find_by_id(alice.id)
    await db_session.delete(user)
    await db_session.commit()

    assert await svc.list_tasks(alice) == []
    assert [t.title for t in await svc.list_tasks(bob)] == ["b1"]
