"""
Firestore database service.

Two stores share one client: UserStore owns the ``users`` collection and
TaskStore owns the ``tasks`` collection. Every TaskStore read or write other
than creation is filtered by the owning user's id.

The client is synchronous; each store call runs its driver work in a worker
thread so the event loop keeps serving requests and the scheduler meanwhile.
"""
import asyncio
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from google.api_core.exceptions import GoogleAPICallError, RetryError
from google.cloud import firestore
from google.oauth2 import service_account
from pydantic import ValidationError

from task_tracker.config import Settings
from task_tracker.errors import InvalidIdentifier, PersistenceError
from task_tracker.models.task import TaskCreate, TaskInDB, TaskStatus
from task_tracker.models.user import UserInDB

logger = logging.getLogger(__name__)

USERS = "users"
TASKS = "tasks"

T = TypeVar("T")


def create_firestore_client(settings: Settings) -> firestore.Client:
    """Build the Firestore client shared by all stores."""
    if settings.google_application_credentials:
        credentials = service_account.Credentials.from_service_account_file(
            settings.google_application_credentials
        )
        return firestore.Client(
            project=settings.gcp_project_id,
            credentials=credentials,
            database=settings.firestore_database,
        )
    # Use default credentials (for local development with gcloud auth)
    return firestore.Client(
        project=settings.gcp_project_id,
        database=settings.firestore_database,
    )


@contextmanager
def _driver_errors(action: str) -> Iterator[None]:
    """Surface driver failures as PersistenceError."""
    try:
        yield
    except (GoogleAPICallError, RetryError) as e:
        raise PersistenceError(f"Error while {action}: {e}") from e


async def _offload(action: str, fn: Callable[..., T], *args: Any) -> T:
    with _driver_errors(action):
        return await asyncio.to_thread(fn, *args)


def parse_task_id(task_id: str) -> str:
    """Return the canonical form of a task id, or raise InvalidIdentifier."""
    try:
        return str(uuid.UUID(str(task_id)))
    except ValueError as e:
        raise InvalidIdentifier(f"Error parsing task id: {task_id}") from e


def _to_user(data: Dict[str, Any]) -> UserInDB:
    try:
        return UserInDB(**data)
    except (ValidationError, TypeError) as e:
        raise PersistenceError(f"Malformed user record {data.get('id')!r}: {e}") from e


def _to_task(data: Dict[str, Any]) -> TaskInDB:
    # ValidationError is a ValueError, as is an unknown status value.
    try:
        data["status"] = TaskStatus(data.get("status"))
        return TaskInDB(**data)
    except (ValueError, TypeError) as e:
        raise PersistenceError(f"Malformed task record {data.get('id')!r}: {e}") from e


class UserStore:
    """Credential store: user identity records keyed by id, unique by email."""

    def __init__(self, db: firestore.Client):
        self.db = db

    # ==================== User Operations ====================

    async def create_user(self, email: str, password_hash: str) -> UserInDB:
        """Create a new user. A taken email is rejected as a persistence failure."""
        user_data = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password_hash": password_hash,
            "created_at": datetime.now(timezone.utc),
        }
        await _offload("creating the user", self._insert_unique, user_data)
        return UserInDB(**user_data)

    async def get_user_by_email(self, email: str) -> Optional[UserInDB]:
        """Get user by email."""
        data = await _offload("fetching the user", self._find_by_email, email)
        return _to_user(data) if data is not None else None

    async def update_user_email(self, user_id: str, email: str) -> bool:
        """Change a user's email. Returns False if the user does not exist."""
        return await _offload("updating the user", self._set_email, user_id, email)

    async def delete_user(self, user_id: str) -> Optional[UserInDB]:
        """Delete a user and return the removed record."""
        data = await _offload("deleting the user", self._pop, user_id)
        return _to_user(data) if data is not None else None

    async def list_users(self) -> List[UserInDB]:
        """List all users. Records that cannot be decoded are logged and skipped."""
        docs = await _offload("listing users", self._all)
        users = []
        for data in docs:
            try:
                users.append(_to_user(data))
            except PersistenceError as e:
                logger.warning("Skipping user record: %s", e.detail)
        return users

    # Driver work, run in a worker thread.

    def _insert_unique(self, user_data: Dict[str, Any]) -> None:
        email = user_data["email"]
        if self._find_by_email(email) is not None:
            raise PersistenceError(f"Email {email} is already registered")
        self.db.collection(USERS).document(user_data["id"]).set(user_data)

    def _set_email(self, user_id: str, email: str) -> bool:
        doc_ref = self.db.collection(USERS).document(user_id)
        if not doc_ref.get().exists:
            return False

        holder = self._find_by_email(email)
        if holder is not None and holder.get("id") != user_id:
            raise PersistenceError(f"Email {email} is already registered")

        doc_ref.update({"email": email})
        return True

    def _pop(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc_ref = self.db.collection(USERS).document(user_id)
        doc = doc_ref.get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        doc_ref.delete()
        return data

    def _all(self) -> List[Dict[str, Any]]:
        return [doc.to_dict() for doc in self.db.collection(USERS).stream()]

    def _find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        query = self.db.collection(USERS).where("email", "==", email).limit(1)
        for doc in query.stream():
            return doc.to_dict()
        return None


class TaskStore:
    """Task store. Reads and writes are always scoped to the owner's id."""

    def __init__(self, db: firestore.Client):
        self.db = db

    # ==================== Task Operations ====================

    async def create_task(self, task: TaskCreate, owner_id: str) -> List[TaskInDB]:
        """Create a task for the owner and return the owner's refreshed task list."""
        task_id = str(uuid.uuid4())
        task_data = {
            "id": task_id,
            "user_id": owner_id,
            "title": task.title,
            "description": task.description,
            "status": TaskStatus.TODO.value,
            "due_date": task.due_date.isoformat(),
        }
        await _offload("creating the task", self._put, task_id, task_data)
        return await self.list_tasks(owner_id)

    async def get_task(self, task_id: str, owner_id: str) -> Optional[TaskInDB]:
        """Get one of the owner's tasks by ID."""
        task_id = parse_task_id(task_id)
        data = await _offload("fetching the task", self._owned_data, task_id, owner_id)
        return _to_task(data) if data is not None else None

    async def list_tasks(self, owner_id: str) -> List[TaskInDB]:
        """List all tasks owned by the user."""
        docs = await _offload("listing tasks", self._owned_by, owner_id)
        return [_to_task(data) for data in docs]

    async def update_task_status(
        self, task_id: str, owner_id: str, new_status: TaskStatus
    ) -> Optional[List[TaskInDB]]:
        """Update task status. Returns None when the owner has no such task."""
        task_id = parse_task_id(task_id)
        found = await _offload(
            "updating the task",
            self._update_owned,
            task_id,
            owner_id,
            {"status": TaskStatus(new_status).value},
        )
        if not found:
            return None
        return await self.list_tasks(owner_id)

    async def delete_task(self, task_id: str, owner_id: str) -> Optional[List[TaskInDB]]:
        """Delete a task. Returns None when the owner has no such task."""
        task_id = parse_task_id(task_id)
        found = await _offload("deleting the task", self._delete_owned, task_id, owner_id)
        if not found:
            return None
        return await self.list_tasks(owner_id)

    async def delete_tasks_for_owner(self, owner_id: str) -> int:
        """Delete every task the user owns and return how many were removed."""
        return await _offload("deleting the user's tasks", self._delete_all_owned, owner_id)

    async def list_tasks_due_on(self, owner_id: str, due_date: date) -> List[TaskInDB]:
        """Tasks of the owner due on the given date that are not done yet."""
        docs = await _offload("fetching due tasks", self._due_on, owner_id, due_date.isoformat())
        return [_to_task(data) for data in docs]

    # Driver work, run in a worker thread.

    def _put(self, task_id: str, task_data: Dict[str, Any]) -> None:
        self.db.collection(TASKS).document(task_id).set(task_data)

    def _owned_by(self, owner_id: str) -> List[Dict[str, Any]]:
        query = self.db.collection(TASKS).where("user_id", "==", owner_id)
        return [doc.to_dict() for doc in query.stream()]

    def _owned_data(self, task_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
        doc = self._find_owned(task_id, owner_id)
        return doc.to_dict() if doc is not None else None

    def _update_owned(self, task_id: str, owner_id: str, fields: Dict[str, Any]) -> bool:
        doc = self._find_owned(task_id, owner_id)
        if doc is None:
            return False
        doc.reference.update(fields)
        return True

    def _delete_owned(self, task_id: str, owner_id: str) -> bool:
        doc = self._find_owned(task_id, owner_id)
        if doc is None:
            return False
        doc.reference.delete()
        return True

    def _delete_all_owned(self, owner_id: str) -> int:
        query = self.db.collection(TASKS).where("user_id", "==", owner_id)
        deleted = 0
        for doc in query.stream():
            doc.reference.delete()
            deleted += 1
        return deleted

    def _due_on(self, owner_id: str, due_date: str) -> List[Dict[str, Any]]:
        query = (
            self.db.collection(TASKS)
            .where("user_id", "==", owner_id)
            .where("due_date", "==", due_date)
            .where("status", "!=", TaskStatus.DONE.value)
        )
        return [doc.to_dict() for doc in query.stream()]

    def _find_owned(self, task_id: str, owner_id: str):
        query = (
            self.db.collection(TASKS)
            .where("id", "==", task_id)
            .where("user_id", "==", owner_id)
            .limit(1)
        )
        for doc in query.stream():
            return doc
        return None
