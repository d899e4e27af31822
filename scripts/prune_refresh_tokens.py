"""
Name: Refresh Token Pruning Script

Responsibilities:
  - Delete expired refresh tokens from PostgreSQL

Notes:
  - Safe to run from cron; the API also prunes once at startup
"""

from __future__ import annotations

import os
import sys

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from postflow.crosscutting.config import get_settings  # noqa: E402
from postflow.crosscutting.logger import logger  # noqa: E402
from postflow.infrastructure.db.pool import close_pool, init_pool  # noqa: E402
from postflow.infrastructure.repositories import (  # noqa: E402
    PostgresRefreshTokenRepository,
)


def main() -> None:
    settings = get_settings()
    if not settings.database_url:
        raise SystemExit("DATABASE_URL is required to prune refresh tokens.")

    init_pool(settings.database_url, min_size=1, max_size=1)
    try:
        removed = PostgresRefreshTokenRepository().delete_expired()
    finally:
        close_pool()

    logger.info("Expired refresh tokens pruned", extra={"count": removed})
    print(f"Removed {removed} expired refresh token(s)")


if __name__ == "__main__":
    main()
