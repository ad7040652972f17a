"""
Input checks that run before anything is persisted.
"""
from datetime import date

from pydantic import ValidationError

from task_tracker.errors import InvalidInput
from task_tracker.models.task import TaskCreate
from task_tracker.models.user import UserCreate


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def validate_sign_up(email: str, password: str) -> UserCreate:
    """Require a well-formed email and a password of at least 6 characters."""
    try:
        return UserCreate(email=email, password=password)
    except ValidationError as e:
        raise InvalidInput(_describe(e)) from e


def validate_due_date(task: TaskCreate, today: date) -> TaskCreate:
    """Reject tasks due before today."""
    if task.due_date < today:
        raise InvalidInput("due_date: Date must not be in the past")
    return task
