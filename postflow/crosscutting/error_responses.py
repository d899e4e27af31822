"""
Standardized error response catalog for API consistency.

All HTTP error responses follow the RFC 7807 Problem Details format, extended
with `success: false` and a nested `error` object so clients can read the
taxonomy code from either `body.code` or `body.error.code`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

ERROR_TYPE_BASE_URL = "https://api.postflow.local/errors"


class ErrorCode(str, Enum):
    """Application error codes for client-side handling."""

    # 4xx Client Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCESS_TOKEN_REQUIRED = "ACCESS_TOKEN_REQUIRED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PASSWORD_ALREADY_SET = "PASSWORD_ALREADY_SET"
    USER_EXISTS = "USER_EXISTS"
    SELF_DELETION_NOT_ALLOWED = "SELF_DELETION_NOT_ALLOWED"
    RATE_LIMITED = "RATE_LIMITED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # 5xx Server Errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorBody(BaseModel):
    """Nested error object (`body.error`)."""

    code: ErrorCode
    message: str
    details: list[dict[str, Any]] | None = None


class ErrorDetail(BaseModel):
    """RFC 7807 Problem Details response."""

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    code: ErrorCode
    instance: str | None = None
    errors: list[dict[str, Any]] | None = None
    success: bool = False
    error: ErrorBody | None = None


PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"

# R: Reusable OpenAPI response entry for RFC 7807 errors
_OPENAPI_ERROR_CONTENT = {
    PROBLEM_JSON_MEDIA_TYPE: {
        "schema": {"$ref": "#/components/schemas/ErrorDetail"},
    }
}


def _openapi_error(description: str) -> dict[str, Any]:
    return {
        "description": f"{description} (RFC 7807 Problem Details)",
        "model": ErrorDetail,
        "content": _OPENAPI_ERROR_CONTENT,
    }


OPENAPI_ERROR_RESPONSES = {
    "400": _openapi_error("Bad Request"),
    "401": _openapi_error("Unauthorized"),
    "403": _openapi_error("Forbidden"),
    "404": _openapi_error("Not Found"),
    "409": _openapi_error("Conflict"),
    "429": _openapi_error("Too Many Requests"),
    "default": _openapi_error("Error response"),
}


class AppHTTPException(HTTPException):
    """Application-specific HTTP exception with error code."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        errors: list[dict[str, Any]] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code
        self.errors = errors


# Pre-defined error factories
def validation_error(
    detail: str, errors: list[dict[str, Any]] | None = None
) -> AppHTTPException:
    return AppHTTPException(400, ErrorCode.VALIDATION_ERROR, detail, errors)


def invalid_credentials() -> AppHTTPException:
    return AppHTTPException(
        401, ErrorCode.INVALID_CREDENTIALS, "Invalid email or password"
    )


def access_token_required() -> AppHTTPException:
    return AppHTTPException(
        401, ErrorCode.ACCESS_TOKEN_REQUIRED, "Access token is required"
    )


def token_expired() -> AppHTTPException:
    return AppHTTPException(401, ErrorCode.TOKEN_EXPIRED, "Access token has expired")


def invalid_token() -> AppHTTPException:
    return AppHTTPException(401, ErrorCode.INVALID_TOKEN, "Invalid access token")


def invalid_refresh_token() -> AppHTTPException:
    return AppHTTPException(
        403, ErrorCode.INVALID_REFRESH_TOKEN, "Invalid or expired refresh token"
    )


def insufficient_permissions() -> AppHTTPException:
    return AppHTTPException(
        403, ErrorCode.INSUFFICIENT_PERMISSIONS, "Insufficient permissions"
    )


def user_not_found(status_code: int = 404) -> AppHTTPException:
    return AppHTTPException(status_code, ErrorCode.USER_NOT_FOUND, "User not found")


def password_already_set() -> AppHTTPException:
    return AppHTTPException(
        400,
        ErrorCode.PASSWORD_ALREADY_SET,
        "Password already set. Use login instead.",
    )


def user_exists() -> AppHTTPException:
    return AppHTTPException(409, ErrorCode.USER_EXISTS, "User already exists")


def self_deletion_not_allowed() -> AppHTTPException:
    return AppHTTPException(
        400, ErrorCode.SELF_DELETION_NOT_ALLOWED, "Cannot delete your own account"
    )


def rate_limited(retry_after: int = 60, detail: str | None = None) -> AppHTTPException:
    return AppHTTPException(
        429,
        ErrorCode.RATE_LIMITED,
        detail or f"Too many requests. Retry after {retry_after}s",
        headers={"Retry-After": str(retry_after)},
    )


def payload_too_large(max_size: str) -> AppHTTPException:
    return AppHTTPException(
        413, ErrorCode.PAYLOAD_TOO_LARGE, f"Payload exceeds maximum size of {max_size}"
    )


def build_problem(
    request: Request,
    *,
    status_code: int,
    code: ErrorCode,
    detail: str,
    errors: list[dict[str, Any]] | None = None,
) -> ErrorDetail:
    """R: Build the problem document shared by every error handler."""
    return ErrorDetail(
        type=f"{ERROR_TYPE_BASE_URL}/{code.value.lower()}",
        title=code.value.replace("_", " ").title(),
        status=status_code,
        detail=detail,
        code=code,
        instance=str(request.url),
        errors=errors,
        error=ErrorBody(code=code, message=detail, details=errors),
    )


async def app_exception_handler(
    request: Request, exc: AppHTTPException
) -> JSONResponse:
    """Handler for AppHTTPException."""
    error = build_problem(
        request,
        status_code=exc.status_code,
        code=exc.code,
        detail=exc.detail,
        errors=exc.errors,
    )
    headers = getattr(exc, "headers", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=error.model_dump(mode="json", exclude_none=True),
        headers=headers,
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )
