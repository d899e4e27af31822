"""
Name: Dev Seed Admin (local only)

Responsibilities:
  - Ensure a development admin exists when DEV_SEED_ADMIN is enabled
  - Optionally reset its password (DEV_SEED_ADMIN_FORCE_RESET)

Collaborators:
  - api/main.py: called from the lifespan hook
  - domain/repositories.py: UserRepository port
  - identity/passwords.py: hashing (injected)

Constraints:
  - Refuses to run outside local/development/test environments
  - Idempotent: an existing admin is left untouched unless force_reset
"""

from __future__ import annotations

from typing import Callable, Final

from ..crosscutting.config import Settings
from ..crosscutting.logger import logger
from ..domain.repositories import UserRepository
from ..identity.users import UserRole, normalize_email

_ALLOWED_ENVS: Final[frozenset[str]] = frozenset({"local", "development", "test"})


def _assert_allowed_environment(settings: Settings) -> None:
    env = (settings.app_env or "").strip().lower()
    if env not in _ALLOWED_ENVS:
        raise RuntimeError(
            f"FATAL: DEV_SEED_ADMIN is enabled but APP_ENV is '{env}'. "
            f"Seeding is only allowed in {sorted(_ALLOWED_ENVS)}."
        )


def ensure_dev_admin(
    settings: Settings,
    *,
    user_repo: UserRepository,
    password_hasher: Callable[[str], str],
) -> bool:
    """
    Ensure a development admin user exists if configured.

    Returns:
        True if a user was created or reset, False otherwise
    """
    if not settings.dev_seed_admin:
        return False

    _assert_allowed_environment(settings)

    email = normalize_email(settings.dev_seed_admin_email)
    password = settings.dev_seed_admin_password
    if not email or not password:
        raise ValueError("Dev seed admin is enabled but email/password are empty")

    existing = user_repo.get_user_by_email(email)
    if existing is None:
        user = user_repo.create_user(
            email=email,
            name=settings.dev_seed_admin_name,
            role=UserRole.ADMIN,
            password_hash=password_hasher(password),
            password_reset=False,
        )
        logger.info("Dev seed admin created", extra={"user_id": str(user.id)})
        return True

    if settings.dev_seed_admin_force_reset:
        user_repo.update_user(
            existing.id,
            password_hash=password_hasher(password),
            password_reset=False,
            role=UserRole.ADMIN,
        )
        logger.warning("Dev seed admin reset", extra={"user_id": str(existing.id)})
        return True

    logger.info("Dev seed admin already present", extra={"user_id": str(existing.id)})
    return False
