"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure the test environment (no .env, APP_ENV=test)
  - Provide a controllable clock, in-memory wiring and a TestClient
  - Provide user factories (active, pending password setup)

Collaborators:
  - pytest: Test framework
  - postflow.container: build_container() with the memory backend

Notes:
  - Every test gets its own container; nothing leaks between apps
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from postflow.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from postflow.api.main import create_app  # noqa: E402
from postflow.container import build_container  # noqa: E402
from postflow.crosscutting.config import Settings  # noqa: E402
from postflow.identity.passwords import hash_password  # noqa: E402
from postflow.identity.users import UserRole  # noqa: E402

os.environ.setdefault("APP_ENV", "test")

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Admin123"
USER_PASSWORD = "User1234"


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """R: Mutable UTC clock; advance() moves time forward."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)

    def timestamp(self) -> float:
        return self._now.timestamp()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Settings / Container / App
# ============================================================================


def make_settings(**overrides) -> Settings:
    values = dict(
        app_env="test",
        auth_store_backend="memory",
        jwt_secret="test-access-secret",
        jwt_refresh_secret="test-refresh-secret",
        rate_limit_enabled=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def container(settings, clock):
    return build_container(settings, clock=clock)


@pytest.fixture
def app(container):
    return create_app(container=container)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# User factories
# ============================================================================


class UserFactory:
    """R: Creates users directly in the container's repository."""

    def __init__(self, container):
        self._users = container.users

    def active(
        self,
        email: str = "user@example.com",
        password: str = USER_PASSWORD,
        role: UserRole = UserRole.USER,
        name: str = "Test User",
    ):
        return self._users.create_user(
            email=email,
            name=name,
            role=role,
            password_hash=hash_password(password),
            password_reset=False,
        )

    def admin(self, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD):
        return self.active(email=email, password=password, role=UserRole.ADMIN, name="Admin User")

    def pending(self, email: str = "new@example.com", name: str = "New User"):
        return self._users.create_user(
            email=email, name=name, role=UserRole.USER, password_hash=None
        )


@pytest.fixture
def users(container) -> UserFactory:
    return UserFactory(container)


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client, email: str, password: str) -> dict:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()
