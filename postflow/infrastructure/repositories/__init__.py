"""Infrastructure repositories"""

from .in_memory import InMemoryRefreshTokenRepository, InMemoryUserRepository
from .postgres import PostgresRefreshTokenRepository, PostgresUserRepository

__all__ = [
    "InMemoryRefreshTokenRepository",
    "InMemoryUserRepository",
    "PostgresRefreshTokenRepository",
    "PostgresUserRepository",
]
