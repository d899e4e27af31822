"""
Name: Client Errors + Retry Classification

Responsibilities:
  - ApiError built from RFC 7807 error bodies (reads `code` or `error.code`)
  - SessionExpiredError for responses that end the local session
  - Classify refresh failures as transient (retry) or permanent (fail fast)

Collaborators:
  - api_client.py: raises these
  - monitor.py: uses is_transient_error as the tenacity retry predicate
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from tenacity import RetryCallState

from ..crosscutting.logger import logger

# R: HTTP status codes that indicate transient errors (retry-able)
TRANSIENT_HTTP_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# R: HTTP status codes that indicate permanent errors (no retry)
PERMANENT_HTTP_CODES: frozenset[int] = frozenset({400, 401, 403, 404})


class ApiError(Exception):
    """R: Non-2xx response from the API."""

    def __init__(
        self,
        status_code: int,
        code: Optional[str],
        message: str,
        body: Optional[dict[str, Any]] = None,
    ):
        super().__init__(f"{status_code} {code or 'UNKNOWN'}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message
        self.body = body or {}

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        nested = body.get("error") if isinstance(body.get("error"), dict) else {}
        code = body.get("code") or nested.get("code")
        message = (
            body.get("detail")
            or nested.get("message")
            or body.get("message")
            or response.reason_phrase
        )
        return cls(response.status_code, code, message, body)


class SessionExpiredError(ApiError):
    """R: The server no longer accepts this session; local state was cleared."""


def is_transient_error(exception: BaseException) -> bool:
    """
    R: Determine if a refresh failure is worth retrying.

    Transient: network/timeouts, 429, 5xx.
    Permanent: session rejections and every other 4xx.
    """
    if isinstance(exception, SessionExpiredError):
        return False
    if isinstance(exception, ApiError):
        if exception.status_code in PERMANENT_HTTP_CODES:
            return False
        return exception.status_code in TRANSIENT_HTTP_CODES
    return isinstance(exception, httpx.TransportError)


def log_retry(retry_state: RetryCallState) -> None:
    """R: before_sleep hook: log attempt number, wait and last error."""
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Refresh attempt {retry_state.attempt_number} failed, retrying",
        extra={
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(wait_time, 2),
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )
