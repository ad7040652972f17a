# tests/conftest.py

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from task_tracker.auth.dependencies import SessionVerifier
from task_tracker.auth.service import AuthService
from task_tracker.auth.utils import PasswordHasher, TokenCodec
from task_tracker.config import Settings
from task_tracker.main import create_app
from task_tracker.services.firestore import TaskStore, UserStore

from .fakes import FakeFirestore, FakeMailer


@pytest.fixture()
def settings() -> Settings:
    """
    Settings built from explicit values only, so the developer's environment
    and .env file cannot leak into tests.
    """
    return Settings(
        _env_file=None,
        gcp_project_id="test-project",
        hash_secret="test-hash-secret",
        jwt_secret="test-jwt-secret",
        smtp_username="reminders@example.com",
        smtp_password="smtp-password",
        scheduler_enabled=False,
    )


@pytest.fixture()
def db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture()
def users(db: FakeFirestore) -> UserStore:
    return UserStore(db)


@pytest.fixture()
def tasks(db: FakeFirestore) -> TaskStore:
    return TaskStore(db)


@pytest.fixture()
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(settings.hash_secret)


@pytest.fixture()
def tokens(settings: Settings) -> TokenCodec:
    return TokenCodec(settings.jwt_secret, settings.jwt_algorithm)


@pytest.fixture()
def auth_service(users: UserStore, hasher: PasswordHasher, tokens: TokenCodec) -> AuthService:
    return AuthService(users, hasher, tokens)


@pytest.fixture()
def verifier(tokens: TokenCodec, users: UserStore) -> SessionVerifier:
    return SessionVerifier(tokens, users)


@pytest.fixture()
def client(settings: Settings, db: FakeFirestore, mailer: FakeMailer) -> TestClient:
    return TestClient(create_app(settings, db=db, mailer=mailer))


def basic_auth(email: str, password: str) -> dict[str, str]:
    raw = base64.b64encode(f"{email}:{password}".encode()).decode()
    return {"Authorization": f"Basic {raw}"}


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def sign_up_and_in(client: TestClient, email: str, password: str = "secret123") -> dict[str, str]:
    """Register through the API and return bearer headers for the new user."""
    resp = client.post("/auth/sign-up", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.post("/auth/sign-in", headers=basic_auth(email, password))
    assert resp.status_code == 200, resp.text
    return bearer(resp.json())
