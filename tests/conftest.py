"""
Pytest configuration and fixtures for the finance auth service tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest

# Set test environment before importing app modules
os.environ["AUTH_JWT_SECRET"] = "test-secret-key-for-unit-tests-only"
os.environ["CREDENTIAL_STORE"] = "memory"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"

from finance_auth.application.services.auth_service import AuthService
from finance_auth.core.app_factory import create_application
from finance_auth.core.config import Settings
from finance_auth.core.container import ApplicationContainer
from finance_auth.infrastructure.persistence.memory import InMemoryCredentialStore
from finance_auth.infrastructure.persistence.sqlite import SQLiteCredentialStore
from finance_auth.services.email_service import EmailService
from finance_auth.services.token_service import TokenService

TEST_SECRET = "test-secret-key-for-unit-tests-only"


class RecordingNotifier:
    """Notification gateway that keeps every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []

    def send_verification_email(self, to_email: str, token: str) -> bool:
        self.sent.append(("verification", to_email, token))
        return True

    def send_two_factor_code(self, to_email: str, code: str) -> bool:
        self.sent.append(("two_factor", to_email, code))
        return True

    def send_password_reset_email(self, to_email: str, token: str) -> bool:
        self.sent.append(("password_reset", to_email, token))
        return True

    def last(self, kind: str) -> str:
        matches = [secret for sent_kind, _, secret in self.sent if sent_kind == kind]
        assert matches, f"no {kind} notification was sent"
        return matches[-1]


class FakeClock:
    """Controllable UTC clock starting at the real current time."""

    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture(params=["memory", "sqlite"])
def credential_store(request, tmp_path):
    """Each credential store backend in turn."""
    if request.param == "memory":
        backend = InMemoryCredentialStore()
    else:
        backend = SQLiteCredentialStore(tmp_path / "auth.db")
    yield backend
    backend.close()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(jwt_secret=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_service(store, token_service, notifier, clock) -> AuthService:
    return AuthService(store, token_service, notifier, clock=clock)


@pytest.fixture
def two_factor_service(store, token_service, notifier, clock) -> AuthService:
    return AuthService(store, token_service, notifier, two_factor_required=True, clock=clock)


@pytest.fixture
def app(store, token_service, auth_service):
    container = ApplicationContainer(
        settings=Settings(),
        credential_store=store,
        token_service=token_service,
        email_service=EmailService(),
        auth_service=auth_service,
    )
    return create_application(container=container)
