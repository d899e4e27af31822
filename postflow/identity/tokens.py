"""
Name: Token Codec (JWT)

Responsibilities:
  - Issue signed access tokens (short-lived, self-contained claims)
  - Issue signed refresh tokens (long-lived, unique per issuance)
  - Verify tokens into a tagged result (VALID / EXPIRED / INVALID)

Collaborators:
  - PyJWT: HS256 signing and verification
  - crosscutting/config.py: secrets and lifetimes
  - identity/auth_service.py, identity/access_control.py: callers

Constraints:
  - Access and refresh tokens carry a `typ` claim and are checked against it
  - Refresh verification never distinguishes expiry from tampering
  - Pure: no I/O, time comes from the injected clock

Notes:
  - Expiry is compared against the injected clock instead of PyJWT's wall
    clock so issuance and verification always agree on "now"
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

import jwt

from .users import User, UserRole

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_ACCESS_REQUIRED_CLAIMS = ["sub", "email", "role", "typ", "iat", "exp"]
_REFRESH_REQUIRED_CLAIMS = ["sub", "typ", "jti", "iat", "exp"]
_DECODE_OPTIONS = {"verify_exp": False, "verify_iat": False, "verify_nbf": False}

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenSettings:
    access_secret: str
    refresh_secret: str
    access_ttl_seconds: int = 300
    refresh_ttl_days: int = 7

    @classmethod
    def from_settings(cls, settings) -> "TokenSettings":
        return cls(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.get_refresh_secret(),
            access_ttl_seconds=settings.jwt_access_ttl_seconds,
            refresh_ttl_days=settings.jwt_refresh_ttl_days,
        )


class TokenStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenClaims:
    """R: Verified claims. email/role/name are only present on access tokens."""

    user_id: UUID
    token_type: str
    issued_at: int
    expires_at: int
    email: Optional[str] = None
    role: Optional[UserRole] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class TokenCheck:
    """R: Tagged verification result; `reason` is for logs only."""

    status: TokenStatus
    claims: Optional[TokenClaims] = None
    reason: str = ""

    @property
    def is_valid(self) -> bool:
        return self.status is TokenStatus.VALID


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_at: datetime


def _invalid(reason: str) -> TokenCheck:
    return TokenCheck(status=TokenStatus.INVALID, reason=reason)


class TokenCodec:
    """
    R: Issues and verifies the access/refresh token pair.

    Args:
        settings: TokenSettings with secrets and lifetimes
        clock: Returns the current UTC datetime (injectable for tests)
    """

    def __init__(self, settings: TokenSettings, clock: Clock = utc_now):
        if not settings.access_secret or not settings.refresh_secret:
            raise ValueError("JWT secrets must not be empty")
        self._settings = settings
        self._clock = clock

    @property
    def access_ttl_seconds(self) -> int:
        return self._settings.access_ttl_seconds

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self._settings.refresh_ttl_days)

    def now(self) -> datetime:
        return self._clock()

    def _timestamp(self) -> int:
        return int(self._clock().timestamp())

    def issue_access_token(self, user: User) -> str:
        """R: Sign {sub, email, role, name, typ=access} valid for the access TTL."""
        issued_at = self._timestamp()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "name": user.name,
            "typ": ACCESS_TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + self._settings.access_ttl_seconds,
        }
        return jwt.encode(payload, self._settings.access_secret, algorithm=JWT_ALGORITHM)

    def issue_refresh_token(self, user: User) -> tuple[str, datetime]:
        """
        R: Sign {sub, typ=refresh, jti} valid for the refresh TTL.

        Returns:
            (token, expires_at) where expires_at is what the store must persist
        """
        issued_at = self._timestamp()
        expires_at = issued_at + int(self.refresh_ttl.total_seconds())
        payload = {
            "sub": str(user.id),
            "typ": REFRESH_TOKEN_TYPE,
            "jti": secrets.token_hex(16),
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(
            payload, self._settings.refresh_secret, algorithm=JWT_ALGORITHM
        )
        return token, datetime.fromtimestamp(expires_at, tz=timezone.utc)

    def issue_pair(self, user: User) -> TokenPair:
        refresh_token, refresh_expires_at = self.issue_refresh_token(user)
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=refresh_token,
            expires_in=self._settings.access_ttl_seconds,
            refresh_expires_at=refresh_expires_at,
        )

    def _decode(self, token: str, secret: str, required: list[str]) -> dict:
        return jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={**_DECODE_OPTIONS, "require": required},
        )

    def verify_access_token(self, token: str) -> TokenCheck:
        """R: VALID with claims, EXPIRED, or INVALID (signature/format/type)."""
        if not token:
            return _invalid("empty token")
        try:
            payload = self._decode(
                token, self._settings.access_secret, _ACCESS_REQUIRED_CLAIMS
            )
        except jwt.InvalidTokenError as exc:
            return _invalid(f"{type(exc).__name__}: {exc}")

        if payload.get("typ") != ACCESS_TOKEN_TYPE:
            return _invalid("wrong token type")
        try:
            claims = TokenClaims(
                user_id=UUID(str(payload["sub"])),
                token_type=ACCESS_TOKEN_TYPE,
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
                email=payload["email"],
                role=UserRole.parse(payload["role"]),
                name=payload.get("name"),
            )
        except (TypeError, ValueError) as exc:
            return _invalid(f"malformed claims: {exc}")

        if claims.expires_at <= self._timestamp():
            return TokenCheck(status=TokenStatus.EXPIRED, reason="expired")
        return TokenCheck(status=TokenStatus.VALID, claims=claims)

    def verify_refresh_token(self, token: str) -> TokenCheck:
        """R: VALID with claims, otherwise INVALID (expiry included)."""
        if not token:
            return _invalid("empty token")
        try:
            payload = self._decode(
                token, self._settings.refresh_secret, _REFRESH_REQUIRED_CLAIMS
            )
        except jwt.InvalidTokenError as exc:
            return _invalid(f"{type(exc).__name__}: {exc}")

        if payload.get("typ") != REFRESH_TOKEN_TYPE:
            return _invalid("wrong token type")
        try:
            claims = TokenClaims(
                user_id=UUID(str(payload["sub"])),
                token_type=REFRESH_TOKEN_TYPE,
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (TypeError, ValueError) as exc:
            return _invalid(f"malformed claims: {exc}")

        if claims.expires_at <= self._timestamp():
            return _invalid("expired")
        return TokenCheck(status=TokenStatus.VALID, claims=claims)

    def seconds_remaining(self, claims: TokenClaims) -> int:
        """R: Seconds until the token expires (negative once expired)."""
        return claims.expires_at - self._timestamp()
