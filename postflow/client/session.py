"""
Name: Client Session + Session Stores

Responsibilities:
  - Hold the client's tokens, user snapshot and access-token expiry
  - Persist the session so a restart can rehydrate without re-login

Collaborators:
  - api_client.py: reads/writes the session
  - PyJWT: reads `exp` from the access token (signature not checked client-side)

Constraints:
  - FileSessionStore writes atomically and with owner-only permissions
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Protocol

import jwt

from ..crosscutting.logger import logger


def access_token_expiry(token: str) -> float:
    """R: `exp` claim of an access token as epoch seconds (unverified read)."""
    claims = jwt.decode(token, options={"verify_signature": False})
    return float(claims["exp"])


@dataclass(frozen=True)
class ClientSession:
    access_token: str
    refresh_token: str
    expires_at: float
    user: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_tokens(
        cls, access_token: str, refresh_token: str, user: dict[str, Any] | None = None
    ) -> "ClientSession":
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=access_token_expiry(access_token),
            user=dict(user or {}),
        )

    def with_access_token(self, access_token: str) -> "ClientSession":
        return replace(
            self, access_token=access_token, expires_at=access_token_expiry(access_token)
        )

    def seconds_until_expiry(self, now: float) -> float:
        return self.expires_at - now

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientSession":
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=float(data["expires_at"]),
            user=dict(data.get("user") or {}),
        )


class SessionStore(Protocol):
    def load(self) -> Optional[ClientSession]: ...

    def save(self, session: ClientSession) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    """R: Process-local store (tests, short-lived scripts)."""

    def __init__(self, session: Optional[ClientSession] = None):
        self._session = session

    def load(self) -> Optional[ClientSession]:
        return self._session

    def save(self, session: ClientSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore:
    """R: JSON file store; a corrupt file is treated as no session."""

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[ClientSession]:
        with self._lock:
            if not self._path.exists():
                return None
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
                return ClientSession.from_dict(data)
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(
                    "Discarding unreadable session file",
                    extra={"path": str(self._path), "error": str(exc)},
                )
                self._path.unlink(missing_ok=True)
                return None

    def save(self, session: ClientSession) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".session-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(session.to_dict(), handle)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self._path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise

    def clear(self) -> None:
        with self._lock:
            self._path.unlink(missing_ok=True)
