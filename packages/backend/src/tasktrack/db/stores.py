"""Persistence stores — the only code that talks to the users/tasks tables.

Learn: Two small stores wrap an AsyncSession, one per table:

- CredentialStore: principal records. The database's unique constraints
  on username/email are authoritative; save() turns a constraint
  violation into DuplicateKeyError so the registration race surfaces
  as "taken", not as a 500.
- TaskStore: every method that touches an existing row takes BOTH
  task_id and owner_id and puts both in the WHERE clause. There is no
  unscoped get-by-id, so a cross-tenant read/write can't be written by
  accident.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.db.models import Task, User


class DuplicateKeyError(Exception):
    """Raised when a save violates a unique constraint."""

    def __init__(self, field: str):
        super().__init__(f"Duplicate value for unique field '{field}'")
        self.field = field


# ═══════════════════════════════════════════════════════════
# Credentials
# ═══════════════════════════════════════════════════════════


class CredentialStore:
    """Principal records backed by the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def exists_by_username(self, username: str) -> bool:
        return await self._taken(User.username == username)

    async def exists_by_email(self, email: str) -> bool:
        return await self._taken(User.email == email)

    async def _taken(self, condition) -> bool:
        result = await self.db.execute(select(exists().where(condition)))
        return bool(result.scalar())

    async def save(self, user: User) -> User:
        """Insert a new principal and commit.

        Raises DuplicateKeyError("username" | "email") when a concurrent
        registration won the race. The violated field is found by
        re-querying after rollback, username first.
        """
        username, email = user.username, user.email
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if await self._taken(User.username == username):
                raise DuplicateKeyError("username")
            if await self._taken(User.email == email):
                raise DuplicateKeyError("email")
            raise
        await self.db.refresh(user)
        return user


# ═══════════════════════════════════════════════════════════
# Tasks
# ═══════════════════════════════════════════════════════════


class TaskStore:
    """Owner-scoped access to the tasks table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, task: Task) -> Task:
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def list_for_owner(self, owner_id: uuid.UUID) -> list[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.owner_id == owner_id)
            .order_by(Task.created_at, Task.id)
        )
        return list(result.scalars().all())

    async def find_owned(self, task_id: int, owner_id: uuid.UUID) -> Optional[Task]:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
        )
        return result.scalars().first()

    async def update_owned(
        self,
        task_id: int,
        owner_id: uuid.UUID,
        values: dict[str, Any],
    ) -> Optional[Task]:
        """Apply `values` to the row matching (task_id, owner_id).

        Returns the refreshed task, or None if nothing matched.
        """
        result = await self.db.execute(
            update(Task)
            .where(Task.id == task_id, Task.owner_id == owner_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        if result.rowcount == 0:
            return None
        refreshed = await self.db.execute(
            select(Task)
            .where(Task.id == task_id, Task.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        return refreshed.scalars().first()

    async def delete_owned(self, task_id: int, owner_id: uuid.UUID) -> bool:
        """Delete the row matching (task_id, owner_id). True if a row went away."""
        result = await self.db.execute(
            delete(Task)
            .where(Task.id == task_id, Task.owner_id == owner_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return result.rowcount > 0
