"""
Authentication utilities: password hashing and session tokens.
"""
import hashlib
import hmac
import logging

from jose import JWTError, jwt
from passlib.context import CryptContext

from task_tracker.errors import InvalidSignature
from task_tracker.models.user import TokenClaims

logger = logging.getLogger(__name__)


class PasswordHasher:
    """
    Hash and verify passwords with a server-side secret.

    The password is keyed with the secret through HMAC-SHA256 before it reaches
    passlib, so a leaked hash cannot be checked without the secret as well.
    """

    def __init__(self, secret: str, schemes: tuple = ("pbkdf2_sha256",)):
        self._secret = secret.encode("utf-8")
        self._context = CryptContext(schemes=list(schemes), deprecated="auto")

    def _peppered(self, password: str) -> str:
        return hmac.new(self._secret, password.encode("utf-8"), hashlib.sha256).hexdigest()

    def hash(self, password: str) -> str:
        return self._context.hash(self._peppered(password))

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a password. Errors from the hashing library count as a mismatch."""
        try:
            return self._context.verify(self._peppered(password), password_hash)
        except Exception as e:
            logger.error("Password verification failed: %s", e, exc_info=True)
            return False


class TokenCodec:
    """
    Signed session tokens carrying the user's email.

    Tokens have no expiry claim: a token stays valid until the signing secret
    changes.
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self._secret = secret
        self._algorithm = algorithm

    def issue(self, email: str) -> str:
        claims = TokenClaims(email=email)
        return jwt.encode(claims.model_dump(), self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> str:
        """Return the email embedded in a token, or raise InvalidSignature."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as e:
            raise InvalidSignature(f"Invalid token: {e}") from e

        email = payload.get("email") if isinstance(payload, dict) else None
        if not isinstance(email, str) or not email:
            raise InvalidSignature("Invalid token: missing email claim")
        return email
