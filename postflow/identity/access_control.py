"""
Name: Request Gate (Bearer + Role guards)

Responsibilities:
  - Extract the bearer access token from the Authorization header
  - Map verification results onto the 401 taxonomy
    (ACCESS_TOKEN_REQUIRED / TOKEN_EXPIRED / INVALID_TOKEN / USER_NOT_FOUND)
  - Re-load the user so deleted accounts are rejected immediately
  - Role allow-lists (case-insensitive) -> 403 INSUFFICIENT_PERMISSIONS
  - Pre-emptive renewal: X-New-Access-Token when < threshold seconds remain

Collaborators:
  - container.py: AuthContainer (codec, user repository, settings)
  - identity/tokens.py: TokenCodec / TokenStatus
  - crosscutting/context.py: user_id for log correlation

Notes:
  - FastAPI dependencies; the user is attached to request.state.user
"""

from typing import Optional

from fastapi import Depends, Header, Request, Response

from ..crosscutting.context import bind_user
from ..crosscutting.error_responses import (
    access_token_required,
    insufficient_permissions,
    invalid_token,
    token_expired,
    user_not_found,
)
from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_auth_event
from .tokens import TokenStatus
from .users import User

NEW_ACCESS_TOKEN_HEADER = "X-New-Access-Token"


def get_container(request: Request):
    """R: The AuthContainer wired into this app (see api/main.py)."""
    return request.app.state.container


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_current_user(
    request: Request,
    response: Response,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    container=Depends(get_container),
) -> User:
    """R: Authenticate the request or raise the matching 401."""
    token = _extract_bearer_token(authorization)
    if not token:
        record_auth_event("gate", "missing_token")
        raise access_token_required()

    codec = container.codec
    check = codec.verify_access_token(token)
    if check.status is TokenStatus.EXPIRED:
        record_auth_event("gate", "expired")
        raise token_expired()
    if check.status is not TokenStatus.VALID:
        record_auth_event("gate", "invalid")
        logger.warning("Rejected access token", extra={"reason": check.reason})
        raise invalid_token()

    user = container.users.get_user_by_id(check.claims.user_id)
    if user is None:
        record_auth_event("gate", "user_not_found")
        raise user_not_found(status_code=401)

    remaining = codec.seconds_remaining(check.claims)
    if remaining < container.settings.auto_refresh_threshold_seconds:
        response.headers[NEW_ACCESS_TOKEN_HEADER] = codec.issue_access_token(user)
        record_auth_event("gate", "renewed")
        logger.info(
            "Issued pre-emptive access token",
            extra={"user_id": str(user.id), "remaining_seconds": remaining},
        )

    request.state.user = user
    bind_user(str(user.id))
    return user


def require_user():
    """R: Dependency factory for any authenticated user."""
    return get_current_user


def require_roles(*roles: str):
    """
    R: Dependency factory restricting access to the given roles.

    Matching is case-insensitive ("admin" allows ADMIN).
    """
    allowed = {role.upper() for role in roles}

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role.value.upper() not in allowed:
            record_auth_event("gate", "forbidden")
            logger.warning(
                "Insufficient permissions",
                extra={"role": user.role.value, "required": sorted(allowed)},
            )
            raise insufficient_permissions()
        return user

    return dependency
