"""
Name: Password Hashing (Argon2)

Responsibilities:
  - Hash and verify passwords with Argon2id
  - Equalize timing for unknown accounts

Notes:
  - verify_password never raises on mismatch or a malformed hash
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

_password_hasher = PasswordHasher()

# R: Burned on unknown emails so response time does not reveal account existence
_DUMMY_HASH = _password_hasher.hash("postflow-timing-equalizer")


def hash_password(password: str) -> str:
    """R: Hash a password using Argon2."""
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """R: Verify password against stored hash."""
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def burn_verification(password: str) -> None:
    """R: Run a verification against a dummy hash and discard the result."""
    verify_password(password, _DUMMY_HASH)
