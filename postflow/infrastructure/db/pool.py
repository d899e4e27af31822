"""
Name: PostgreSQL Connection Pool

Responsibilities:
  - Own the process-wide psycopg_pool.ConnectionPool (init / get / close)
  - Apply the session settings every pooled connection needs
  - Cheap liveness probe for /healthz

Collaborators:
  - api/main.py: lifespan opens and closes the pool, healthz pings it
  - infrastructure/repositories/postgres: get_pool() is their default provider
  - scripts/prune_refresh_tokens.py

Constraints:
  - init_pool() twice without close_pool() is an error
  - Connections are validated on checkout (stale sockets after DB restarts)
"""

import threading
from typing import Optional

from psycopg_pool import ConnectionPool

from ...crosscutting.logger import logger

APPLICATION_NAME = "postflow-auth"

_lock = threading.Lock()
_pool: Optional[ConnectionPool] = None


def _connection_kwargs(statement_timeout_ms: int) -> dict:
    kwargs = {"application_name": APPLICATION_NAME}
    if statement_timeout_ms > 0:
        kwargs["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"
    return kwargs


def init_pool(
    database_url: str,
    min_size: int,
    max_size: int,
    statement_timeout_ms: int = 0,
) -> ConnectionPool:
    global _pool

    with _lock:
        if _pool is not None:
            raise RuntimeError("Connection pool already initialized")
        _pool = ConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            kwargs=_connection_kwargs(statement_timeout_ms),
            check=ConnectionPool.check_connection,
            name=APPLICATION_NAME,
            open=True,
        )
    logger.info(
        "Connection pool opened",
        extra={
            "min_size": min_size,
            "max_size": max_size,
            "statement_timeout_ms": statement_timeout_ms,
        },
    )
    return _pool


def get_pool() -> ConnectionPool:
    pool = _pool
    if pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    return pool


def close_pool() -> None:
    """R: Idempotent; a never-opened pool is a no-op."""
    global _pool

    with _lock:
        pool, _pool = _pool, None
    if pool is not None:
        pool.close()
        logger.info("Connection pool closed")


def ping() -> bool:
    """R: True when a pooled connection answers SELECT 1."""
    with get_pool().connection() as conn:
        conn.execute("SELECT 1")
    return True
