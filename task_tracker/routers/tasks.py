"""
Task routes. Every operation is scoped to the signed-in user.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from task_tracker.auth.dependencies import get_app_settings, get_current_user, get_task_store
from task_tracker.config import Settings
from task_tracker.errors import NotFound
from task_tracker.models.task import (
    TaskCreate,
    TaskInDB,
    TaskResponse,
    UpdateTaskStatusRequest,
)
from task_tracker.models.user import UserInDB
from task_tracker.services.firestore import TaskStore
from task_tracker.timeutil import local_today, zone
from task_tracker.validators import validate_due_date

router = APIRouter()


def _previews(tasks: List[TaskInDB]) -> List[TaskResponse]:
    return [TaskResponse(**t.model_dump(exclude={"user_id"})) for t in tasks]


@router.post("", response_model=List[TaskResponse], status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreate,
    current_user: UserInDB = Depends(get_current_user),
    tasks: TaskStore = Depends(get_task_store),
    settings: Settings = Depends(get_app_settings),
):
    """Create a task and return the caller's full task list."""
    validate_due_date(request, local_today(zone(settings.timezone)))
    return _previews(await tasks.create_task(request, current_user.id))


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    current_user: UserInDB = Depends(get_current_user),
    tasks: TaskStore = Depends(get_task_store),
):
    """List the caller's tasks."""
    return _previews(await tasks.list_tasks(current_user.id))


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    current_user: UserInDB = Depends(get_current_user),
    tasks: TaskStore = Depends(get_task_store),
):
    """Get one of the caller's tasks."""
    task = await tasks.get_task(task_id, current_user.id)
    if task is None:
        raise NotFound("Task not found")
    return _previews([task])[0]


@router.put("/{task_id}", response_model=List[TaskResponse])
async def update_task_status(
    task_id: str,
    request: UpdateTaskStatusRequest,
    current_user: UserInDB = Depends(get_current_user),
    tasks: TaskStore = Depends(get_task_store),
):
    """Move a task to another status and return the caller's task list."""
    result = await tasks.update_task_status(task_id, current_user.id, request.new_status)
    if result is None:
        raise NotFound("Task not found")
    return _previews(result)


@router.delete("/{task_id}", response_model=List[TaskResponse])
async def delete_task(
    task_id: str,
    current_user: UserInDB = Depends(get_current_user),
    tasks: TaskStore = Depends(get_task_store),
):
    """Delete a task and return the caller's remaining tasks."""
    result = await tasks.delete_task(task_id, current_user.id)
    if result is None:
        raise NotFound("Task not found")
    return _previews(result)
