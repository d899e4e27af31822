"""
Name: Dependency Container

Responsibilities:
  - Build repositories, codec and services from Settings
  - Select the storage backend (postgres / memory)

Collaborators:
  - api/main.py: create_app() stores the container on app.state.container
  - identity/access_control.py: reads it per request

Notes:
  - No process-wide globals: every app (and every test) gets its own wiring
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .application.user_management import UserManagementService
from .crosscutting.config import Settings
from .crosscutting.rate_limit import RateLimitDependency, build_auth_rate_limiters
from .domain.repositories import RefreshTokenRepository, UserRepository
from .identity.auth_service import AuthService
from .identity.tokens import Clock, TokenCodec, TokenSettings, utc_now
from .infrastructure.repositories import (
    InMemoryRefreshTokenRepository,
    InMemoryUserRepository,
    PostgresRefreshTokenRepository,
    PostgresUserRepository,
)


@dataclass
class AuthContainer:
    settings: Settings
    users: UserRepository
    refresh_tokens: RefreshTokenRepository
    codec: TokenCodec
    auth_service: AuthService
    user_management: UserManagementService
    auth_limiter: RateLimitDependency
    refresh_limiter: RateLimitDependency


def _build_repositories(settings: Settings, clock: Clock):
    if settings.auth_store_backend == "memory":
        refresh_tokens = InMemoryRefreshTokenRepository(clock=clock)
        users = InMemoryUserRepository(refresh_tokens=refresh_tokens, clock=clock)
        return users, refresh_tokens
    return PostgresUserRepository(), PostgresRefreshTokenRepository()


def build_container(
    settings: Settings,
    *,
    clock: Clock = utc_now,
    users: Optional[UserRepository] = None,
    refresh_tokens: Optional[RefreshTokenRepository] = None,
) -> AuthContainer:
    """
    R: Wire the auth stack.

    Explicit `users` / `refresh_tokens` override the configured backend.
    """
    if users is None or refresh_tokens is None:
        default_users, default_tokens = _build_repositories(settings, clock)
        users = users if users is not None else default_users
        refresh_tokens = (
            refresh_tokens if refresh_tokens is not None else default_tokens
        )

    codec = TokenCodec(TokenSettings.from_settings(settings), clock=clock)
    auth_limiter, refresh_limiter = build_auth_rate_limiters(settings)
    return AuthContainer(
        settings=settings,
        users=users,
        refresh_tokens=refresh_tokens,
        codec=codec,
        auth_service=AuthService(
            users=users, refresh_tokens=refresh_tokens, codec=codec
        ),
        user_management=UserManagementService(users),
        auth_limiter=auth_limiter,
        refresh_limiter=refresh_limiter,
    )
