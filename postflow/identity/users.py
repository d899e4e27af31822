"""
Name: User Models

Responsibilities:
  - Define user roles and the user entity for authentication
  - Provide the public (hash-free) profile shape
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class UserRole(str, Enum):
    """R: Supported user roles."""

    ADMIN = "ADMIN"
    USER = "USER"

    @classmethod
    def parse(cls, value: str) -> "UserRole":
        """R: Case-insensitive role lookup."""
        return cls((value or "").strip().upper())


@dataclass
class User:
    """R: User record used by authentication flows."""

    id: UUID
    email: str
    name: str
    role: UserRole
    password_hash: Optional[str] = None
    password_reset: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def needs_password_setup(self) -> bool:
        """R: True until the user has set a password through create-password."""
        return not self.password_hash or self.password_reset


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()
