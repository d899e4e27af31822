"""
Name: Auth Routes (dual-token JWT)

Responsibilities:
  - /auth/login, /auth/create-password, /auth/refresh-token
  - /auth/logout, /auth/logout-all
  - /auth/profile (GET/PUT), /auth/validate
  - /auth/debug/refresh-tokens (admin, opt-in)

Collaborators:
  - identity/auth_service.py: protocol logic
  - identity/access_control.py: bearer + role guards
  - crosscutting/rate_limit.py: auth and refresh limiters (via the container)
"""

from typing import Union

from fastapi import APIRouter, Depends, Request

from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES
from ..identity.access_control import get_container, require_roles, require_user
from ..identity.auth_service import AuthService, PasswordSetupRequired
from ..identity.users import User, UserRole
from .schemas import (
    CreatePasswordRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    PasswordSetupResponse,
    ProfileResponse,
    RefreshTokenDebugEntry,
    RefreshTokenDebugResponse,
    RefreshTokenRequest,
    TokenPairResponse,
    UpdateProfileRequest,
    ValidateResponse,
    to_user_response,
)

TOKEN_PREVIEW_LENGTH = 20


def auth_rate_limit(request: Request, container=Depends(get_container)) -> None:
    container.auth_limiter(request)


def refresh_rate_limit(request: Request, container=Depends(get_container)) -> None:
    container.refresh_limiter(request)


def get_auth_service(container=Depends(get_container)) -> AuthService:
    return container.auth_service


router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(auth_rate_limit)],
    responses=OPENAPI_ERROR_RESPONSES,
)

debug_router = APIRouter(prefix="/auth/debug", tags=["auth-debug"])


@router.post("/login", response_model=Union[LoginResponse, PasswordSetupResponse])
def login(req: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = service.login(req.email, req.password)
    if isinstance(result, PasswordSetupRequired):
        return PasswordSetupResponse(
            message="Please set your password to continue",
            user_id=result.user.id,
            user=to_user_response(result.user),
        )

    tokens = result.tokens
    return LoginResponse(
        message="Login successful",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        user=to_user_response(result.user),
    )


@router.post("/create-password", response_model=LoginResponse)
def create_password(
    req: CreatePasswordRequest, service: AuthService = Depends(get_auth_service)
):
    session = service.create_password(req.user_id, req.password)
    tokens = session.tokens
    return LoginResponse(
        message="Password created successfully",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        user=to_user_response(session.user),
    )


@router.post(
    "/refresh-token",
    response_model=TokenPairResponse,
    dependencies=[Depends(refresh_rate_limit)],
)
def refresh_token(
    req: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)
):
    session = service.refresh(req.refresh_token)
    tokens = session.tokens
    return TokenPairResponse(
        message="Token refreshed successfully",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


@router.post("/logout", response_model=MessageResponse, response_model_exclude_none=True)
def logout(req: LogoutRequest, service: AuthService = Depends(get_auth_service)):
    service.logout(req.refresh_token)
    return MessageResponse(message="Logout successful", code="LOGOUT_SUCCESS")


@router.post("/logout-all", response_model=MessageResponse, response_model_exclude_none=True)
def logout_all(
    user: User = Depends(require_user()),
    service: AuthService = Depends(get_auth_service),
):
    service.logout_all(user.id)
    return MessageResponse(
        message="Logged out from all devices", code="LOGOUT_ALL_SUCCESS"
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user: User = Depends(require_user()),
    service: AuthService = Depends(get_auth_service),
):
    return ProfileResponse(user=to_user_response(service.get_profile(user.id)))


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    req: UpdateProfileRequest,
    user: User = Depends(require_user()),
    service: AuthService = Depends(get_auth_service),
):
    updated = service.update_profile(user.id, name=req.name, password=req.password)
    return ProfileResponse(
        message="Profile updated successfully", user=to_user_response(updated)
    )


@router.get("/validate", response_model=ValidateResponse)
def validate(user: User = Depends(require_user())):
    return ValidateResponse(user=to_user_response(user))


@debug_router.get("/refresh-tokens", response_model=RefreshTokenDebugResponse)
def list_refresh_tokens(
    _admin: User = Depends(require_roles(UserRole.ADMIN.value)),
    container=Depends(get_container),
):
    now = container.codec.now()
    records = container.refresh_tokens.list_tokens()
    return RefreshTokenDebugResponse(
        count=len(records),
        tokens=[
            RefreshTokenDebugEntry(
                id=record.id,
                user_id=record.user_id,
                token_preview=f"{record.token[:TOKEN_PREVIEW_LENGTH]}...",
                created_at=record.created_at,
                expires_at=record.expires_at,
                is_expired=record.is_expired(now),
            )
            for record in records
        ],
    )
