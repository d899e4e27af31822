"""
Name: HTTP Middleware

Responsibilities:
  - Bind the request context (X-Request-Id in or generated, client IP)
  - Echo X-Request-Id, log one line per request, record HTTP metrics
  - Reject declared bodies above MAX_BODY_BYTES with 413 PAYLOAD_TOO_LARGE

Collaborators:
  - context.py: bind_request() / reset_context()
  - metrics.py: record_request_metrics()
  - error_responses.py: RFC 7807 body for the 413

Constraints:
  - RequestContextMiddleware wraps everything else so every log line of
    the request carries its id
"""

import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .context import bind_request, reset_context
from .error_responses import app_exception_handler, payload_too_large
from .logger import logger
from .metrics import record_request_metrics

REQUEST_ID_HEADER = "X-Request-Id"
_MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request) -> Optional[str]:
    value = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if not value or len(value) > _MAX_REQUEST_ID_LENGTH:
        return None
    return value


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else ""


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _incoming_request_id(request) or uuid.uuid4().hex
        request.state.request_id = request_id
        token = bind_request(
            request_id, request.method, request.url.path, _client_ip(request)
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error while serving request",
                extra={"duration_ms": _elapsed_ms(started)},
            )
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            elapsed = time.perf_counter() - started
            record_request_metrics(
                endpoint=request.url.path,
                method=request.method,
                status_code=response.status_code,
                latency_seconds=elapsed,
            )
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
            return response
        finally:
            reset_context(token)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class BodyLimitMiddleware(BaseHTTPMiddleware):
    """R: Enforce the Content-Length ceiling before the body is read."""

    def __init__(self, app, max_body_bytes: int):
        super().__init__(app)
        self._limit = max_body_bytes

    def _declared_length(self, request: Request) -> int:
        raw = request.headers.get("content-length", "")
        return int(raw) if raw.isdigit() else 0

    async def dispatch(self, request: Request, call_next) -> Response:
        declared = self._declared_length(request)
        if declared <= self._limit:
            return await call_next(request)

        logger.warning(
            "Rejected oversized request body",
            extra={"content_length": declared, "limit_bytes": self._limit},
        )
        return await app_exception_handler(
            request, payload_too_large(f"{self._limit} bytes")
        )
