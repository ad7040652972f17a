"""
Account routes for the signed-in user.
"""
import logging

from fastapi import APIRouter, Depends, Response, status

from task_tracker.auth.dependencies import get_current_user, get_task_store, get_user_store
from task_tracker.errors import PersistenceError
from task_tracker.models.user import UserInDB, UserUpdate
from task_tracker.services.firestore import TaskStore, UserStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put("")
async def update_user(
    request: UserUpdate,
    current_user: UserInDB = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    """
    Change the account email.

    Tokens embed the email, so tokens issued for the old address stop resolving.
    """
    if not await users.update_user_email(current_user.id, request.email):
        raise PersistenceError("User not found")
    return Response(status_code=status.HTTP_200_OK)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    current_user: UserInDB = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
    tasks: TaskStore = Depends(get_task_store),
):
    """
    Delete the account and every task it owns.
    """
    user = await users.delete_user(current_user.id)
    if user is None:
        raise PersistenceError("User not found")

    try:
        removed = await tasks.delete_tasks_for_owner(user.id)
    except PersistenceError as e:
        raise PersistenceError(f"Error while deleting the user's tasks: {e.detail}") from e

    logger.info("Deleted user %s and %d task(s)", user.id, removed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
