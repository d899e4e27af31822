"""
Name: FastAPI Exception Handlers

Responsibilities:
  - Convert AppHTTPException, request validation failures, internal errors
    and unexpected exceptions into RFC 7807 responses
  - Centralized logging of errors with correlation IDs

Collaborators:
  - api/main.py: Registers these handlers
  - crosscutting/error_responses.py: problem document + taxonomy
  - crosscutting/exceptions.py: DatabaseError

Constraints:
  - Body validation failures are 400 VALIDATION_ERROR (not FastAPI's 422)
  - Submitted values are never echoed back (they may be passwords)
  - Internal error details are hidden unless expose_errors is set
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..crosscutting.error_responses import (
    PROBLEM_JSON_MEDIA_TYPE,
    AppHTTPException,
    ErrorCode,
    app_exception_handler,
    build_problem,
)
from ..crosscutting.exceptions import DatabaseError
from ..crosscutting.logger import logger


def _problem_response(
    request: Request, status_code: int, code: ErrorCode, detail: str, errors=None
):
    problem = build_problem(
        request, status_code=status_code, code=code, detail=detail, errors=errors
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(mode="json", exclude_none=True),
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body/query validation failures."""
    errors = [
        {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.info("Request validation failed", extra={"fields": [e["field"] for e in errors]})
    return _problem_response(
        request, 400, ErrorCode.VALIDATION_ERROR, "Validation failed", errors
    )


def register_exception_handlers(app, *, expose_errors: bool = False) -> None:
    """
    Register all exception handlers on the FastAPI app.

    Usage:
        register_exception_handlers(app, expose_errors=not settings.is_production())
    """

    async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
        logger.error(
            "Database error",
            extra={"error_id": exc.error_id, "error_message": exc.message},
        )
        detail = exc.message if expose_errors else "Internal server error"
        return _problem_response(
            request,
            500,
            ErrorCode.INTERNAL_ERROR,
            detail,
            [{"error_id": exc.error_id}],
        )

    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"error_type": type(exc).__name__},
        )
        detail = str(exc) if expose_errors else "Internal server error"
        return _problem_response(request, 500, ErrorCode.INTERNAL_ERROR, detail)

    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
