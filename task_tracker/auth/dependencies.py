"""
Authentication dependencies for FastAPI.

Protected routes declare ``current_user: UserInDB = Depends(get_current_user)``
and receive the resolved, store-backed user as an argument. The components
themselves are built once in ``create_app`` and read from ``app.state``.
"""
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from task_tracker.auth.service import AuthService
from task_tracker.auth.utils import TokenCodec
from task_tracker.config import Settings
from task_tracker.errors import InvalidSignature, PersistenceError, Unauthenticated
from task_tracker.models.user import UserInDB
from task_tracker.services.firestore import TaskStore, UserStore

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme; a missing header is handled by SessionVerifier.
security = HTTPBearer(auto_error=False)


class SessionVerifier:
    """
    Resolve a bearer token to a stored user.

    Extract -> Verify -> Resolve -> Accept. Every failure, including a store
    error during the lookup, ends in Unauthenticated.
    """

    def __init__(self, tokens: TokenCodec, users: UserStore):
        self.tokens = tokens
        self.users = users

    async def authenticate(self, token: Optional[str]) -> UserInDB:
        if not token:
            raise Unauthenticated("Missing bearer token")

        try:
            email = self.tokens.verify(token)
        except InvalidSignature as e:
            logger.info("Rejected session token: %s", e.detail)
            raise Unauthenticated("Could not validate credentials") from e

        try:
            user = await self.users.get_user_by_email(email)
        except PersistenceError as e:
            logger.error("User lookup failed during token validation: %s", e)
            raise Unauthenticated("Could not validate credentials") from e

        if user is None:
            logger.info("Session token refers to an unknown user")
            raise Unauthenticated("Could not validate credentials")

        return user


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_store(request: Request) -> UserStore:
    return request.app.state.users


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.tasks


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_session_verifier(request: Request) -> SessionVerifier:
    return request.app.state.verifier


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: SessionVerifier = Depends(get_session_verifier),
) -> UserInDB:
    """
    Dependency to get the current authenticated user from the bearer token.
    """
    token = credentials.credentials if credentials else None
    return await verifier.authenticate(token)
