"""
Name: Auth Protocol Handler

Responsibilities:
  - Login: credentials -> {password setup required | rejected | authenticated}
  - Password bootstrap for admin-provisioned users
  - Refresh-token rotation (single use: consume old, issue + store new)
  - Logout (one token) and logout-all (every token of a user)
  - Profile read/update for the authenticated user

Collaborators:
  - identity/tokens.py: TokenCodec
  - identity/passwords.py: Argon2 hashing
  - domain/repositories.py: UserRepository, RefreshTokenRepository
  - crosscutting/error_responses.py: taxonomy errors (AppHTTPException)

Constraints:
  - Single-session policy: login and password bootstrap drop every prior
    refresh token of the user
  - Unknown email and wrong password are indistinguishable to the caller
  - Refresh rejection is always INVALID_REFRESH_TOKEN (403), whatever the cause

Notes:
  - Rotation consumes the old token with a delete that must report exactly
    one row; a concurrent second use of the same token loses and gets 403
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union
from uuid import UUID

from ..crosscutting.error_responses import (
    invalid_credentials,
    invalid_refresh_token,
    password_already_set,
    user_not_found,
    validation_error,
)
from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_auth_event
from ..domain.repositories import RefreshTokenRepository, UserRepository
from .passwords import burn_verification, hash_password, verify_password
from .tokens import TokenCodec, TokenPair
from .users import User, normalize_email

PROFILE_PASSWORD_MIN_LENGTH = 6


@dataclass(frozen=True)
class AuthenticatedSession:
    """R: Successful login/bootstrap/refresh: the user plus a fresh token pair."""

    user: User
    tokens: TokenPair


@dataclass(frozen=True)
class PasswordSetupRequired:
    """R: Login short-circuit for users that must set a password first."""

    user: User


LoginResult = Union[AuthenticatedSession, PasswordSetupRequired]


class AuthService:
    """
    R: Server side of the dual-token protocol.

    Args:
        users: User repository
        refresh_tokens: Refresh-token store
        codec: Token codec (access + refresh)
        password_hasher / password_verifier: injectable for tests
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        refresh_tokens: RefreshTokenRepository,
        codec: TokenCodec,
        password_hasher: Callable[[str], str] = hash_password,
        password_verifier: Callable[[str, str], bool] = verify_password,
    ):
        self._users = users
        self._refresh_tokens = refresh_tokens
        self._codec = codec
        self._hash = password_hasher
        self._verify = password_verifier

    @property
    def codec(self) -> TokenCodec:
        return self._codec

    # ------------------------------------------------------------------
    # Session issuance
    # ------------------------------------------------------------------
    def _start_session(self, user: User, *, event: str) -> AuthenticatedSession:
        revoked = self._refresh_tokens.delete_all_for_user(user.id)
        tokens = self._codec.issue_pair(user)
        self._refresh_tokens.put(tokens.refresh_token, user.id, tokens.refresh_expires_at)

        record_auth_event(event, "success")
        logger.info(
            "Session started",
            extra={"event": event, "user_id": str(user.id), "revoked_tokens": revoked},
        )
        return AuthenticatedSession(user=user, tokens=tokens)

    def login(self, email: str, password: str) -> LoginResult:
        normalized = normalize_email(email)
        user = self._users.get_user_by_email(normalized)

        if user is None:
            burn_verification(password)
            record_auth_event("login", "rejected")
            logger.warning("Login failed: unknown email", extra={"email": normalized})
            raise invalid_credentials()

        if user.needs_password_setup:
            # R: No password comparison at all for users in setup state
            record_auth_event("login", "password_setup_required")
            logger.info(
                "Login requires password setup", extra={"user_id": str(user.id)}
            )
            return PasswordSetupRequired(user=user)

        if not self._verify(password, user.password_hash):
            record_auth_event("login", "rejected")
            logger.warning("Login failed: wrong password", extra={"user_id": str(user.id)})
            raise invalid_credentials()

        return self._start_session(user, event="login")

    def create_password(self, user_id: UUID, password: str) -> AuthenticatedSession:
        """R: Set the first (or reset) password, then behave like a successful login."""
        user = self._users.get_user_by_id(user_id)
        if user is None:
            raise user_not_found()
        if user.password_hash and not user.password_reset:
            raise password_already_set()

        updated = self._users.update_user(
            user_id,
            password_hash=self._hash(password),
            password_reset=False,
        )
        if updated is None:
            raise user_not_found()
        return self._start_session(updated, event="create_password")

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------
    def _reject_refresh(self, reason: str, *, user_id: Optional[UUID] = None):
        record_auth_event("refresh", "rejected")
        logger.warning(
            "Refresh rejected",
            extra={"reason": reason, "user_id": str(user_id) if user_id else None},
        )
        return invalid_refresh_token()

    def refresh(self, refresh_token: str) -> AuthenticatedSession:
        if not refresh_token or not refresh_token.strip():
            raise validation_error(
                "Refresh token is required",
                [{"field": "refreshToken", "message": "Refresh token is required"}],
            )

        check = self._codec.verify_refresh_token(refresh_token)
        if not check.is_valid:
            # R: Purge any stored copy of a token that no longer verifies
            self._refresh_tokens.delete_by_token(refresh_token)
            raise self._reject_refresh(check.reason)

        user_id = check.claims.user_id
        if self._refresh_tokens.find_valid(refresh_token, user_id) is None:
            raise self._reject_refresh("not stored", user_id=user_id)

        user = self._users.get_user_by_id(user_id)
        if user is None:
            self._refresh_tokens.delete_by_token(refresh_token)
            raise self._reject_refresh("user deleted", user_id=user_id)

        if self._refresh_tokens.delete_by_token(refresh_token) != 1:
            raise self._reject_refresh("already consumed", user_id=user_id)

        tokens = self._codec.issue_pair(user)
        self._refresh_tokens.put(tokens.refresh_token, user.id, tokens.refresh_expires_at)
        record_auth_event("refresh", "success")
        logger.info("Refresh token rotated", extra={"user_id": str(user.id)})
        return AuthenticatedSession(user=user, tokens=tokens)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------
    def logout(self, refresh_token: Optional[str]) -> int:
        """R: Idempotent: unknown or missing tokens still succeed."""
        removed = self._refresh_tokens.delete_by_token(refresh_token) if refresh_token else 0
        record_auth_event("logout", "success")
        logger.info("Logout", extra={"removed_tokens": removed})
        return removed

    def logout_all(self, user_id: UUID) -> int:
        removed = self._refresh_tokens.delete_all_for_user(user_id)
        record_auth_event("logout_all", "success")
        logger.info(
            "Logout from all devices",
            extra={"user_id": str(user_id), "removed_tokens": removed},
        )
        return removed

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------
    def get_profile(self, user_id: UUID) -> User:
        user = self._users.get_user_by_id(user_id)
        if user is None:
            raise user_not_found()
        return user

    def update_profile(
        self,
        user_id: UUID,
        *,
        name: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        if name is None and password is None:
            raise validation_error("No valid fields to update")

        errors = []
        if name is not None:
            name = name.strip()
            if not name:
                errors.append({"field": "name", "message": "Name cannot be empty"})
        if password is not None and len(password) < PROFILE_PASSWORD_MIN_LENGTH:
            errors.append(
                {
                    "field": "password",
                    "message": (
                        f"Password must be at least {PROFILE_PASSWORD_MIN_LENGTH} "
                        "characters long"
                    ),
                }
            )
        if errors:
            raise validation_error("Validation failed", errors)

        updated = self._users.update_user(
            user_id,
            name=name,
            password_hash=self._hash(password) if password is not None else None,
            password_reset=False if password is not None else None,
        )
        if updated is None:
            raise user_not_found()
        logger.info(
            "Profile updated",
            extra={
                "user_id": str(user_id),
                "name_changed": name is not None,
                "password_changed": password is not None,
            },
        )
        return updated

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def prune_expired_tokens(self) -> int:
        removed = self._refresh_tokens.delete_expired()
        if removed:
            logger.info("Pruned expired refresh tokens", extra={"removed_tokens": removed})
        return removed
