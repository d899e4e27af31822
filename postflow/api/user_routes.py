"""
Name: User Admin Routes

Responsibilities:
  - Admin-only user provisioning, listing, role changes and deletion
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..application.user_management import UserManagementService
from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES, validation_error
from ..identity.access_control import get_container, require_roles
from ..identity.users import User, UserRole
from .schemas import (
    CreateUserRequest,
    MessageResponse,
    Pagination,
    ProfileResponse,
    UpdateRoleRequest,
    UserCreatedResponse,
    UsersListResponse,
    to_user_response,
)

router = APIRouter(prefix="/users", tags=["users"], responses=OPENAPI_ERROR_RESPONSES)

require_admin = require_roles(UserRole.ADMIN.value)


def get_user_management(container=Depends(get_container)) -> UserManagementService:
    return container.user_management


@router.post("", response_model=UserCreatedResponse, status_code=201)
def create_user(
    req: CreateUserRequest,
    _admin: User = Depends(require_admin),
    service: UserManagementService = Depends(get_user_management),
):
    user = service.create_user(email=req.email, name=req.name, role=req.role)
    return UserCreatedResponse(user=to_user_response(user))


@router.get("", response_model=UsersListResponse)
def list_users(
    role: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    _admin: User = Depends(require_admin),
    service: UserManagementService = Depends(get_user_management),
):
    role_filter = None
    if role:
        try:
            role_filter = UserRole.parse(role)
        except ValueError:
            raise validation_error(
                "Validation failed",
                [{"field": "role", "message": "Role must be either ADMIN or USER"}],
            ) from None

    result = service.list_users(role=role_filter, search=search, page=page, limit=limit)
    return UsersListResponse(
        users=[to_user_response(user) for user in result.users],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
            has_next_page=result.has_next_page,
            has_prev_page=result.has_prev_page,
        ),
    )


@router.patch("/{user_id}/role", response_model=ProfileResponse)
def update_user_role(
    user_id: UUID,
    req: UpdateRoleRequest,
    _admin: User = Depends(require_admin),
    service: UserManagementService = Depends(get_user_management),
):
    user = service.update_role(user_id, req.role)
    return ProfileResponse(message="User role updated successfully", user=to_user_response(user))


@router.delete("/{user_id}", response_model=MessageResponse, response_model_exclude_none=True)
def delete_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    service: UserManagementService = Depends(get_user_management),
):
    service.delete_user(actor_id=admin.id, user_id=user_id)
    return MessageResponse(message="User deleted successfully")
