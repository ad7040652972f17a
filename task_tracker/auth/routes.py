"""
Authentication routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from task_tracker.auth.dependencies import get_auth_service
from task_tracker.auth.service import AuthService
from task_tracker.errors import Unauthenticated
from task_tracker.models.user import UserCreate

router = APIRouter()

basic = HTTPBasic(auto_error=False)


@router.post("/sign-up", status_code=status.HTTP_201_CREATED)
async def sign_up(
    request: UserCreate,
    auth: AuthService = Depends(get_auth_service),
):
    """
    Register a new user.
    """
    await auth.sign_up(request.email, request.password)
    return Response(status_code=status.HTTP_201_CREATED)


@router.post("/sign-in", response_model=str)
async def sign_in(
    credentials: Optional[HTTPBasicCredentials] = Depends(basic),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Exchange HTTP Basic credentials (email / password) for a session token.
    """
    if credentials is None or not credentials.password:
        raise Unauthenticated("Missing credentials")

    return await auth.sign_in(credentials.username, credentials.password)
