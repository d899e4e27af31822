"""
Name: Internal Exceptions

Responsibilities:
  - Typed internal errors that are later mapped to HTTP responses
  - Generate error_id for correlation with logs

Collaborators:
  - infrastructure/repositories/postgres: raises DatabaseError
  - api/exception_handlers.py: maps DatabaseError to 500 INTERNAL_ERROR
"""

from __future__ import annotations

from uuid import uuid4


class PostflowError(Exception):
    """R: Base for internal errors (error_code + error_id + message)."""

    error_code: str = "POSTFLOW_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)


class DatabaseError(PostflowError):
    """Database failures (connection, query, timeout, pool)."""

    error_code: str = "DATABASE_ERROR"
