"""
User data models.
"""
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field
from pydantic.networks import validate_email


def _well_formed_email(value: str) -> str:
    # Validate only; the address is kept exactly as given since lookups by
    # email are case-sensitive.
    validate_email(value)
    return value


EmailAddress = Annotated[str, AfterValidator(_well_formed_email)]


class UserBase(BaseModel):
    """Base user model."""
    email: EmailAddress


class UserCreate(UserBase):
    """Model for signing up a new user."""
    password: str = Field(min_length=6)


class UserUpdate(UserBase):
    """Model for changing the account email."""
    pass


class UserInDB(BaseModel):
    """User model as stored in database."""
    id: str
    email: str
    password_hash: str
    created_at: datetime


class TokenClaims(BaseModel):
    """Data encoded in the session token."""
    email: str
