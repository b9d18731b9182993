"""Task API routes.

Learn: Routes translate HTTP to TaskService calls. The principal comes
from get_current_principal (mounted on the whole router in api/__init__),
never from the request body or path. A task that doesn't exist and a
task owned by someone else both come back as 404.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import CurrentPrincipal, get_current_principal
from tasktrack.db.engine import get_db
from tasktrack.schemas.task import TaskCreate, TaskRead, TaskUpdate
from tasktrack.services.task_service import TaskService

router = APIRouter(prefix="/tasks")


def _task_svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: TaskService = Depends(_task_svc),
):
    """Create a task owned by the caller."""
    return await svc.create_task(
        principal,
        title=body.title,
        description=body.description,
        completed=body.completed,
    )


@router.get("", response_model=list[TaskRead])
async def list_tasks(
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: TaskService = Depends(_task_svc),
):
    """List the caller's tasks, oldest first."""
    return await svc.list_tasks(principal)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: int,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: TaskService = Depends(_task_svc),
):
    return await svc.get_task(principal, task_id)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    body: TaskUpdate,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: TaskService = Depends(_task_svc),
):
    """Partially update a task — omitted or null fields keep their value."""
    return await svc.update_task(
        principal,
        task_id,
        title=body.title,
        description=body.description,
        completed=body.completed,
    )


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: int,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: TaskService = Depends(_task_svc),
):
    await svc.delete_task(principal, task_id)
    return Response(status_code=204)
