"""
Sign-up and sign-in orchestration.
"""
import logging

from task_tracker.auth.utils import PasswordHasher, TokenCodec
from task_tracker.errors import PersistenceError, Unauthenticated
from task_tracker.services.firestore import UserStore
from task_tracker.validators import validate_sign_up

logger = logging.getLogger(__name__)


class AuthService:
    """Registers users and exchanges credentials for session tokens."""

    def __init__(self, users: UserStore, hasher: PasswordHasher, tokens: TokenCodec):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens

    async def sign_up(self, email: str, password: str) -> None:
        """
        Register a user.

        Raises InvalidInput for a malformed email or a short password and
        PersistenceError when the store rejects the write (a taken email
        included).
        """
        new_user = validate_sign_up(email, password)
        password_hash = self.hasher.hash(new_user.password)
        user = await self.users.create_user(email=new_user.email, password_hash=password_hash)
        logger.info("User %s signed up", user.id)

    async def sign_in(self, email: str, password: str) -> str:
        """
        Check credentials and issue a session token.

        NOTE: an unknown email and a wrong password produce different messages.
        """
        try:
            user = await self.users.get_user_by_email(email)
        except PersistenceError as e:
            logger.error("Sign-in lookup failed: %s", e)
            raise Unauthenticated(f"Something went wrong while signing in: {e.detail}") from e

        if user is None:
            raise Unauthenticated("User not found")

        if not self.hasher.verify(password, user.password_hash):
            raise Unauthenticated("Incorrect username or password")

        return self.tokens.issue(user.email)
