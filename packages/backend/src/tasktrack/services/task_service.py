"""Task service — owner-scoped CRUD for a user's private task list.

Learn: Every method takes the CurrentPrincipal first. The owner is always
stamped from it, never from request input, and every lookup of an
existing task goes through OwnershipGuard with (task_id, principal.id).

Partial updates: only arguments that are not None are written. The
updated_at timestamp always moves forward, even when two writes land
inside the same clock tick.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import CurrentPrincipal
from tasktrack.auth.ownership import OwnershipGuard, TaskNotFoundError
from tasktrack.db.models import Task, utcnow
from tasktrack.db.stores import TaskStore

logger = structlog.get_logger()


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we write is UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class TaskService:
    """Business logic for task CRUD, scoped to the requesting user."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.store = TaskStore(db)
        self.guard = OwnershipGuard(self.store)
        self.clock = clock

    # ─── Create ──────────────────────────────────────────

    async def create_task(
        self,
        principal: CurrentPrincipal,
        title: str,
        description: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> Task:
        now = self.clock()
        task = Task(
            owner_id=principal.id,
            title=title,
            description=description,
            completed=bool(completed),
            created_at=now,
            updated_at=now,
        )
        task = await self.store.create(task)
        logger.info("tasks.created", task_id=task.id)
        return task

    # ─── Read ────────────────────────────────────────────

    async def list_tasks(self, principal: CurrentPrincipal) -> list[Task]:
        return await self.store.list_for_owner(principal.id)

    async def get_task(self, principal: CurrentPrincipal, task_id: int) -> Task:
        return await self.guard.require_owned(task_id, principal.id)

    # ─── Update ──────────────────────────────────────────

    async def update_task(
        self,
        principal: CurrentPrincipal,
        task_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> Task:
        """Partially update a task. None means "leave as is"."""
        task = await self.guard.require_owned(task_id, principal.id)

        values = {}
        if title is not None:
            values["title"] = title
        if description is not None:
            values["description"] = description
        if completed is not None:
            values["completed"] = completed

        previous = _as_utc(task.updated_at)
        now = _as_utc(self.clock())
        values["updated_at"] = max(now, previous + timedelta(microseconds=1))

        updated = await self.store.update_owned(task_id, principal.id, values)
        if updated is None:
            # Deleted between the guard and the write
            raise TaskNotFoundError(task_id)
        logger.info("tasks.updated", task_id=task_id, fields=sorted(values))
        return updated

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, principal: CurrentPrincipal, task_id: int) -> None:
        await self.guard.require_owned(task_id, principal.id)
        if not await self.store.delete_owned(task_id, principal.id):
            raise TaskNotFoundError(task_id)
        logger.info("tasks.deleted", task_id=task_id)
