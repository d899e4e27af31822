"""
Name: PostgreSQL Repository Tests (offline)

Responsibilities:
  - Pool lifecycle (init, get, close)
  - Row mapping and SQL shape for users and refresh tokens
  - Error translation (UniqueViolation -> ValueError, others -> DatabaseError)

Notes:
  - Uses a mocked ConnectionPool; no real database
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from psycopg import errors as pg_errors

from postflow.crosscutting.exceptions import DatabaseError
from postflow.identity.users import UserRole
from postflow.infrastructure.repositories import (
    PostgresRefreshTokenRepository,
    PostgresUserRepository,
)

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _pool_with(conn: MagicMock) -> MagicMock:
    pool = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    return pool


def _user_row(user_id=None, role="ADMIN"):
    return (
        user_id or uuid4(),
        "admin@example.com",
        "Admin",
        role,
        "hash",
        False,
        NOW,
        NOW,
    )


class TestPoolLifecycle:
    def test_init_get_close(self):
        from postflow.infrastructure.db.pool import close_pool, get_pool, init_pool

        close_pool()
        with patch("postflow.infrastructure.db.pool.ConnectionPool") as MockPool:
            mock_pool = MagicMock()
            MockPool.return_value = mock_pool

            assert init_pool("postgresql://test", min_size=1, max_size=2) is mock_pool
            assert get_pool() is mock_pool
            with pytest.raises(RuntimeError, match="already initialized"):
                init_pool("postgresql://test", min_size=1, max_size=2)

            close_pool()
            mock_pool.close.assert_called_once()

        with pytest.raises(RuntimeError, match="not initialized"):
            get_pool()


class TestPostgresUserRepository:
    def test_get_user_by_email_maps_row(self):
        user_id = uuid4()
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = _user_row(user_id, "admin")
        repo = PostgresUserRepository(pool_provider=lambda: _pool_with(conn))

        user = repo.get_user_by_email("  Admin@Example.com ")

        assert user.id == user_id
        assert user.role is UserRole.ADMIN
        assert conn.execute.call_args.args[1] == ("admin@example.com",)

    def test_missing_user_returns_none(self):
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = None
        repo = PostgresUserRepository(pool_provider=lambda: _pool_with(conn))

        assert repo.get_user_by_id(uuid4()) is None

    def test_unknown_role_in_row_is_database_error(self):
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = _user_row(role="GUEST")
        repo = PostgresUserRepository(pool_provider=lambda: _pool_with(conn))

        with pytest.raises(DatabaseError):
            repo.get_user_by_id(uuid4())

    def test_duplicate_email_is_value_error(self):
        conn = MagicMock()
        conn.execute.side_effect = pg_errors.UniqueViolation("duplicate key")
        repo = PostgresUserRepository(pool_provider=lambda: _pool_with(conn))

        with pytest.raises(ValueError, match="already registered"):
            repo.create_user(email="a@b.co", name="A", role=UserRole.USER)

    def test_update_user_only_sets_given_fields(self):
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = _user_row()
        repo = PostgresUserRepository(pool_provider=lambda: _pool_with(conn))
        user_id = uuid4()

        repo.update_user(user_id, role=UserRole.USER)

        query, params = conn.execute.call_args.args
        assert "role = %s" in query
        assert "name = %s" not in query
        assert params == ("USER", user_id)

    def test_delete_user_uses_rowcount(self):
        conn = MagicMock()
        conn.execute.return_value.rowcount = 0
        repo = PostgresUserRepository(pool_provider=lambda: _pool_with(conn))

        assert repo.delete_user(uuid4()) is False


class TestPostgresRefreshTokenRepository:
    def test_find_valid_returns_live_record(self):
        token_id, user_id = uuid4(), uuid4()
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = (
            token_id, "tok", user_id, NOW + timedelta(days=7), NOW, True,
        )
        repo = PostgresRefreshTokenRepository(pool_provider=lambda: _pool_with(conn))

        record = repo.find_valid("tok", user_id)

        assert record.id == token_id
        assert record.user_id == user_id

    def test_find_valid_deletes_expired_record(self):
        token_id = uuid4()
        conn = MagicMock()
        conn.execute.return_value.fetchone.return_value = (
            token_id, "tok", uuid4(), NOW, NOW - timedelta(days=7), False,
        )
        repo = PostgresRefreshTokenRepository(pool_provider=lambda: _pool_with(conn))

        assert repo.find_valid("tok", uuid4()) is None
        delete_call = conn.execute.call_args_list[-1]
        assert delete_call.args[0].startswith("DELETE FROM refresh_tokens")
        assert delete_call.args[1] == (token_id,)

    def test_delete_by_token_reports_rowcount(self):
        conn = MagicMock()
        conn.execute.return_value.rowcount = 1
        repo = PostgresRefreshTokenRepository(pool_provider=lambda: _pool_with(conn))

        assert repo.delete_by_token("tok") == 1

    def test_failures_become_database_errors(self):
        conn = MagicMock()
        conn.execute.side_effect = RuntimeError("connection lost")
        repo = PostgresRefreshTokenRepository(pool_provider=lambda: _pool_with(conn))

        with pytest.raises(DatabaseError, match="connection lost"):
            repo.delete_expired()
