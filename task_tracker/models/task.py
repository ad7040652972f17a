"""
Task data models.
"""
from datetime import date
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field


class TaskStatus(str, Enum):
    """Task status, persisted by value."""
    TODO = "ToDo"
    IN_PROGRESS = "InProgress"
    DONE = "Done"


class TaskBase(BaseModel):
    """Base task model."""
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    due_date: date = Field(validation_alias=AliasChoices("due_date", "dueDate"))


class TaskCreate(TaskBase):
    """Model for creating a new task."""
    pass


class TaskInDB(BaseModel):
    """Task model as stored in database."""
    id: str
    user_id: str
    title: str
    description: str
    status: TaskStatus = TaskStatus.TODO
    due_date: date


class TaskResponse(BaseModel):
    """Task model for API responses (no owner)."""
    id: str
    title: str
    description: str
    status: TaskStatus
    due_date: date


class UpdateTaskStatusRequest(BaseModel):
    """Request to move a task to another status."""
    new_status: TaskStatus = Field(validation_alias=AliasChoices("new_status", "newStatus"))
