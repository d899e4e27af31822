"""
Name: In-Memory Identity Repositories

Responsibilities:
  - Store users and refresh tokens in memory (tests / local dev)
  - Mirror the PostgreSQL semantics: unique emails, unique tokens,
    user deletion cascading to refresh tokens

Collaborators:
  - domain.repositories.UserRepository / RefreshTokenRepository (contracts)
  - container.py: selected when AUTH_STORE_BACKEND=memory

Constraints:
  - Thread-safe: a Lock protects each internal dict
  - Returned records are copies, callers cannot mutate stored state
"""

from __future__ import annotations

from dataclasses import replace
from threading import Lock
from typing import Callable, Dict, List, Optional
from uuid import UUID, uuid4

from ...domain.entities import RefreshTokenRecord
from ...identity.tokens import utc_now
from ...identity.users import User, UserRole, normalize_email


class InMemoryRefreshTokenRepository:
    """R: Thread-safe refresh-token store keyed by token string."""

    def __init__(self, clock: Callable = utc_now) -> None:
        self._lock = Lock()
        self._clock = clock
        self._tokens: Dict[str, RefreshTokenRecord] = {}

    def put(self, token: str, user_id: UUID, expires_at) -> RefreshTokenRecord:
        record = RefreshTokenRecord(
            id=uuid4(),
            token=token,
            user_id=user_id,
            expires_at=expires_at,
            created_at=self._clock(),
        )
        with self._lock:
            if token in self._tokens:
                raise ValueError("refresh token already stored")
            self._tokens[token] = record
        return record

    def find_valid(self, token: str, user_id: UUID) -> Optional[RefreshTokenRecord]:
        with self._lock:
            record = self._tokens.get(token)
            if record is None or record.user_id != user_id:
                return None
            if record.is_expired(self._clock()):
                del self._tokens[token]
                return None
            return record

    def delete_by_token(self, token: str) -> int:
        with self._lock:
            return 1 if self._tokens.pop(token, None) is not None else 0

    def delete_all_for_user(self, user_id: UUID) -> int:
        with self._lock:
            doomed = [t for t, r in self._tokens.items() if r.user_id == user_id]
            for token in doomed:
                del self._tokens[token]
            return len(doomed)

    def delete_expired(self) -> int:
        now = self._clock()
        with self._lock:
            doomed = [t for t, r in self._tokens.items() if r.is_expired(now)]
            for token in doomed:
                del self._tokens[token]
            return len(doomed)

    def list_tokens(self) -> List[RefreshTokenRecord]:
        with self._lock:
            records = list(self._tokens.values())
        return sorted(records, key=lambda r: r.created_at, reverse=True)


class InMemoryUserRepository:
    """
    R: Thread-safe user store.

    Deleting a user also clears that user's tokens from `refresh_tokens`
    (the ON DELETE CASCADE of the SQL schema).
    """

    def __init__(
        self,
        refresh_tokens: InMemoryRefreshTokenRepository | None = None,
        clock: Callable = utc_now,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._users: Dict[UUID, User] = {}
        self._refresh_tokens = refresh_tokens

    def get_user_by_email(self, email: str) -> Optional[User]:
        normalized = normalize_email(email)
        with self._lock:
            for user in self._users.values():
                if user.email == normalized:
                    return replace(user)
        return None

    def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def list_users(self) -> List[User]:
        with self._lock:
            users = [replace(u) for u in self._users.values()]
        return sorted(users, key=lambda u: u.created_at, reverse=True)

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        password_hash: Optional[str] = None,
        password_reset: bool = True,
    ) -> User:
        normalized = normalize_email(email)
        now = self._clock()
        user = User(
            id=uuid4(),
            email=normalized,
            name=name,
            role=role,
            password_hash=password_hash,
            password_reset=password_reset,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if any(u.email == normalized for u in self._users.values()):
                raise ValueError(f"email already registered: {normalized}")
            self._users[user.id] = user
        return replace(user)

    def update_user(
        self,
        user_id: UUID,
        *,
        name: Optional[str] = None,
        password_hash: Optional[str] = None,
        password_reset: Optional[bool] = None,
        role: Optional[UserRole] = None,
    ) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            changes = {"updated_at": self._clock()}
            if name is not None:
                changes["name"] = name
            if password_hash is not None:
                changes["password_hash"] = password_hash
            if password_reset is not None:
                changes["password_reset"] = password_reset
            if role is not None:
                changes["role"] = role
            updated = replace(user, **changes)
            self._users[user_id] = updated
            return replace(updated)

    def delete_user(self, user_id: UUID) -> bool:
        with self._lock:
            removed = self._users.pop(user_id, None) is not None
        if removed and self._refresh_tokens is not None:
            self._refresh_tokens.delete_all_for_user(user_id)
        return removed
