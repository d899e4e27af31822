"""
Name: User Management (admin use cases)

Responsibilities:
  - Provision users without a password (they bootstrap via create-password)
  - List users with role/search filters and pagination
  - Change roles and delete users (refresh tokens cascade)

Collaborators:
  - domain/repositories.py: UserRepository
  - api/user_routes.py: admin-only HTTP surface

Constraints:
  - An administrator cannot delete their own account
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from ..crosscutting.error_responses import (
    self_deletion_not_allowed,
    user_exists,
    user_not_found,
)
from ..crosscutting.logger import logger
from ..domain.repositories import UserRepository
from ..identity.users import User, UserRole, normalize_email


@dataclass(frozen=True)
class UserPage:
    users: List[User]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


class UserManagementService:
    def __init__(self, users: UserRepository):
        self._users = users

    def create_user(self, *, email: str, name: str, role: UserRole) -> User:
        """R: New users start with no password and password_reset=True."""
        normalized = normalize_email(email)
        if self._users.get_user_by_email(normalized):
            raise user_exists()
        try:
            user = self._users.create_user(
                email=normalized,
                name=name.strip(),
                role=role,
                password_hash=None,
                password_reset=True,
            )
        except ValueError as exc:
            raise user_exists() from exc

        logger.info(
            "User provisioned", extra={"user_id": str(user.id), "role": role.value}
        )
        return user

    def list_users(
        self,
        *,
        role: Optional[UserRole] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> UserPage:
        users = self._users.list_users()
        if role is not None:
            users = [u for u in users if u.role == role]
        if search:
            needle = search.strip().lower()
            users = [
                u for u in users if needle in u.email.lower() or needle in u.name.lower()
            ]
        start = (page - 1) * limit
        return UserPage(
            users=users[start : start + limit],
            page=page,
            limit=limit,
            total=len(users),
        )

    def update_role(self, user_id: UUID, role: UserRole) -> User:
        updated = self._users.update_user(user_id, role=role)
        if updated is None:
            raise user_not_found()
        logger.info(
            "User role updated", extra={"user_id": str(user_id), "role": role.value}
        )
        return updated

    def delete_user(self, *, actor_id: UUID, user_id: UUID) -> None:
        if actor_id == user_id:
            raise self_deletion_not_allowed()
        if not self._users.delete_user(user_id):
            raise user_not_found()
        logger.info("User deleted", extra={"user_id": str(user_id)})
