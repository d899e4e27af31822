"""
Name: PostgreSQL User Repository

Responsibilities:
  - Load users for authentication by email or ID
  - Create, patch and delete users for admin/profile flows
  - Map database rows into User records
"""

from typing import Callable, List, Optional
from uuid import UUID, uuid4

from psycopg import errors as pg_errors
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....identity.users import User, UserRole, normalize_email
from ...db.pool import get_pool

_USER_COLUMNS = (
    "id, email, name, role, password_hash, password_reset, created_at, updated_at"
)


def _row_to_user(row) -> User:
    try:
        role = UserRole.parse(row[3])
    except ValueError as exc:
        raise DatabaseError(f"Invalid user role in database: {row[3]}") from exc

    return User(
        id=row[0],
        email=row[1],
        name=row[2],
        role=role,
        password_hash=row[4],
        password_reset=row[5],
        created_at=row[6],
        updated_at=row[7],
    )


class PostgresUserRepository:
    """R: UserRepository backed by the `users` table."""

    def __init__(self, pool_provider: Callable[[], ConnectionPool] = get_pool):
        self._pool_provider = pool_provider

    def _fetch_one(self, query: str, params: tuple, action: str) -> Optional[User]:
        try:
            with self._pool_provider().connection() as conn:
                row = conn.execute(query, params).fetchone()
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"PostgresUserRepository: {action} failed: {e}")
            raise DatabaseError(f"User {action} failed: {e}", original_error=e)
        return _row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._fetch_one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s",
            (normalize_email(email),),
            "lookup",
        )

    def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        return self._fetch_one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
            "lookup",
        )

    def list_users(self) -> List[User]:
        try:
            with self._pool_provider().connection() as conn:
                rows = conn.execute(
                    f"SELECT {_USER_COLUMNS} FROM users ORDER BY created_at DESC"
                ).fetchall()
        except Exception as e:
            logger.error(f"PostgresUserRepository: List users failed: {e}")
            raise DatabaseError(f"User listing failed: {e}", original_error=e)
        return [_row_to_user(row) for row in rows]

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
        try:
            with self._pool_provider().connection() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO users (id, email, name, role, password_hash, password_reset)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}
                    """,
                    (uuid4(), normalized, name, role.value, password_hash, password_reset),
                ).fetchone()
        except pg_errors.UniqueViolation as e:
            raise ValueError(f"email already registered: {normalized}") from e
        except Exception as e:
            logger.error(f"PostgresUserRepository: Create user failed: {e}")
            raise DatabaseError(f"User creation failed: {e}", original_error=e)

        if not row:
            raise DatabaseError("User creation failed: no row returned")
        return _row_to_user(row)

    def update_user(
        self,
        user_id: UUID,
        *,
        name: Optional[str] = None,
        password_hash: Optional[str] = None,
        password_reset: Optional[bool] = None,
        role: Optional[UserRole] = None,
    ) -> Optional[User]:
        assignments = ["updated_at = now()"]
        params: list = []
        if name is not None:
            assignments.append("name = %s")
            params.append(name)
        if password_hash is not None:
            assignments.append("password_hash = %s")
            params.append(password_hash)
        if password_reset is not None:
            assignments.append("password_reset = %s")
            params.append(password_reset)
        if role is not None:
            assignments.append("role = %s")
            params.append(role.value)
        params.append(user_id)

        return self._fetch_one(
            f"""
            UPDATE users
            SET {", ".join(assignments)}
            WHERE id = %s
            RETURNING {_USER_COLUMNS}
            """,
            tuple(params),
            "update",
        )

    def delete_user(self, user_id: UUID) -> bool:
        """R: refresh_tokens rows go with it (ON DELETE CASCADE)."""
        try:
            with self._pool_provider().connection() as conn:
                cur = conn.execute("DELETE FROM users WHERE id = %s", (user_id,))
                return cur.rowcount > 0
        except Exception as e:
            logger.error(f"PostgresUserRepository: Delete user failed: {e}")
            raise DatabaseError(f"User deletion failed: {e}", original_error=e)
