"""
Name: Domain Entities

Responsibilities:
  - Persistent refresh-token record shape shared by store implementations
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class RefreshTokenRecord:
    """R: A stored refresh token. Only `expires_at` decides validity at lookup."""

    id: UUID
    token: str
    user_id: UUID
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
