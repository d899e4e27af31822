"""PostgreSQL repositories (psycopg 3 + psycopg_pool)"""

from .refresh_token import PostgresRefreshTokenRepository
from .user import PostgresUserRepository

__all__ = ["PostgresRefreshTokenRepository", "PostgresUserRepository"]
