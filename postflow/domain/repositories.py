"""
Name: Domain Repository Interfaces (Protocols)

Responsibilities:
  - Define persistence contracts for users and refresh tokens (ports)
  - Keep identity logic independent from PostgreSQL / in-memory storage

Collaborators:
  - identity/users.py: User
  - domain/entities.py: RefreshTokenRecord
  - infrastructure/repositories: postgres and in-memory implementations

Constraints:
  - Pure interfaces only: no side effects, no SQL
  - Deleting a user removes that user's refresh tokens

Notes:
  - typing.Protocol for structural subtyping
"""

from datetime import datetime
from typing import List, Optional, Protocol
from uuid import UUID

from ..identity.users import User, UserRole
from .entities import RefreshTokenRecord


class UserRepository(Protocol):
    """R: User persistence used by login, the request gate and admin routes."""

    def get_user_by_email(self, email: str) -> Optional[User]:
        """R: Lookup by normalized (trimmed, lower-cased) email."""
        ...

    def get_user_by_id(self, user_id: UUID) -> Optional[User]: ...

    def list_users(self) -> List[User]: ...

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        password_hash: Optional[str] = None,
        password_reset: bool = True,
    ) -> User:
        """R: Insert a user. Raises ValueError if the email is taken."""
        ...

    def update_user(
        self,
        user_id: UUID,
        *,
        name: Optional[str] = None,
        password_hash: Optional[str] = None,
        password_reset: Optional[bool] = None,
        role: Optional[UserRole] = None,
    ) -> Optional[User]:
        """R: Patch the given fields; returns None if the user does not exist."""
        ...

    def delete_user(self, user_id: UUID) -> bool:
        """R: Delete the user and cascade to refresh tokens."""
        ...


class RefreshTokenRepository(Protocol):
    """
    R: Refresh-token store.

    Implementations must provide:
      - Lookup that treats (and removes) expired rows as absent
      - Deletes that report affected rows (single-use consumption)
    """

    def put(
        self, token: str, user_id: UUID, expires_at: datetime
    ) -> RefreshTokenRecord: ...

    def find_valid(self, token: str, user_id: UUID) -> Optional[RefreshTokenRecord]:
        """
        R: Return the record if token and owner match and expires_at > now.

        An expired record is deleted and reported as absent.
        """
        ...

    def delete_by_token(self, token: str) -> int:
        """R: Delete the record with this token; returns affected rows (0 or 1)."""
        ...

    def delete_all_for_user(self, user_id: UUID) -> int: ...

    def delete_expired(self) -> int: ...

    def list_tokens(self) -> List[RefreshTokenRecord]:
        """R: All stored tokens, newest first (admin diagnostics)."""
        ...
