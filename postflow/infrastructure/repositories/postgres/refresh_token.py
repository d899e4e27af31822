"""
Name: PostgreSQL Refresh-Token Repository

Responsibilities:
  - Persist issued refresh tokens with their absolute expiry
  - Validate by (token, owner, expires_at > now()), pruning expired rows
  - Report affected rows on delete so rotation can detect a lost race

Constraints:
  - The database clock (now()) is authoritative for expiry
"""

from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....domain.entities import RefreshTokenRecord
from ...db.pool import get_pool

_TOKEN_COLUMNS = "id, token, user_id, expires_at, created_at"


def _row_to_record(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row[0],
        token=row[1],
        user_id=row[2],
        expires_at=row[3],
        created_at=row[4],
    )


class PostgresRefreshTokenRepository:
    """R: RefreshTokenRepository backed by the `refresh_tokens` table."""

    def __init__(self, pool_provider: Callable[[], ConnectionPool] = get_pool):
        self._pool_provider = pool_provider

    def _execute_delete(self, query: str, params: tuple | None, action: str) -> int:
        try:
            with self._pool_provider().connection() as conn:
                return conn.execute(query, params).rowcount
        except Exception as e:
            logger.error(f"PostgresRefreshTokenRepository: {action} failed: {e}")
            raise DatabaseError(f"Refresh token {action} failed: {e}", original_error=e)

    def put(self, token: str, user_id: UUID, expires_at: datetime) -> RefreshTokenRecord:
        try:
            with self._pool_provider().connection() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO refresh_tokens (id, token, user_id, expires_at)
                    VALUES (%s, %s, %s, %s)
                    RETURNING {_TOKEN_COLUMNS}
                    """,
                    (uuid4(), token, user_id, expires_at),
                ).fetchone()
        except Exception as e:
            logger.error(f"PostgresRefreshTokenRepository: Insert failed: {e}")
            raise DatabaseError(f"Refresh token insert failed: {e}", original_error=e)

        if not row:
            raise DatabaseError("Refresh token insert failed: no row returned")
        return _row_to_record(row)

    def find_valid(self, token: str, user_id: UUID) -> Optional[RefreshTokenRecord]:
        try:
            with self._pool_provider().connection() as conn:
                row = conn.execute(
                    f"""
                    SELECT {_TOKEN_COLUMNS}, expires_at > now() AS is_live
                    FROM refresh_tokens
                    WHERE token = %s AND user_id = %s
                    """,
                    (token, user_id),
                ).fetchone()
                if row and not row[5]:
                    conn.execute("DELETE FROM refresh_tokens WHERE id = %s", (row[0],))
                    return None
        except Exception as e:
            logger.error(f"PostgresRefreshTokenRepository: Lookup failed: {e}")
            raise DatabaseError(f"Refresh token lookup failed: {e}", original_error=e)

        return _row_to_record(row) if row else None

    def delete_by_token(self, token: str) -> int:
        return self._execute_delete(
            "DELETE FROM refresh_tokens WHERE token = %s", (token,), "delete"
        )

    def delete_all_for_user(self, user_id: UUID) -> int:
        return self._execute_delete(
            "DELETE FROM refresh_tokens WHERE user_id = %s", (user_id,), "delete"
        )

    def delete_expired(self) -> int:
        return self._execute_delete(
            "DELETE FROM refresh_tokens WHERE expires_at <= now()", None, "prune"
        )

    def list_tokens(self) -> List[RefreshTokenRecord]:
        try:
            with self._pool_provider().connection() as conn:
                rows = conn.execute(
                    f"SELECT {_TOKEN_COLUMNS} FROM refresh_tokens ORDER BY created_at DESC"
                ).fetchall()
        except Exception as e:
            logger.error(f"PostgresRefreshTokenRepository: List failed: {e}")
            raise DatabaseError(f"Refresh token listing failed: {e}", original_error=e)
        return [_row_to_record(row) for row in rows]
