"""Ownership enforcement for task operations.

Learn: "Not found" and "not yours" are deliberately the same error.
A user probing task ids gets an identical 404 whether the id is unused
or belongs to someone else, so other tenants' data can't be enumerated.
"""

import uuid

from tasktrack.db.models import Task
from tasktrack.db.stores import TaskStore

# tasks.id is a 32-bit INTEGER column; ids outside it can never exist
MAX_TASK_ID = 2**31 - 1


class ResourceError(Exception):
    """Base class for resource-access failures."""


class TaskNotFoundError(ResourceError):
    """No task with this id is owned by the requesting user."""

    def __init__(self, task_id: int):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class OwnershipGuard:
    """Combined-key (task_id, owner_id) check run before every read/write."""

    def __init__(self, tasks: TaskStore):
        self.tasks = tasks

    async def require_owned(self, task_id: int, owner_id: uuid.UUID) -> Task:
        if not 1 <= task_id <= MAX_TASK_ID:
            raise TaskNotFoundError(task_id)
        task = await self.tasks.find_owned(task_id, owner_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task
