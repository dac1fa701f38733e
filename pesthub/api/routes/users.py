"""User management routes.

The generated password is returned once, in-band, for manual hand-off.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from pesthub.api.rate_limit import limiter
from pesthub.auth import require_capability
from pesthub.core.models import Principal
from pesthub.rbac import can_manage_users, display_name

router = APIRouter(prefix="/api/users", tags=["Users"])

_manage_users = require_capability(can_manage_users, "Insufficient permissions", "manage_users")


class CreateUserRequest(BaseModel):
    name: str | None = Field(default=None, max_length=256)
    email: str | None = Field(default=None, max_length=320)
    role: str | None = Field(default=None, max_length=64)


class UserIdRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId", max_length=128)


@router.get("", summary="List the users the caller can manage")
async def list_users(request: Request, caller: Principal = Depends(_manage_users)):
    users = await request.app.state.users.list_users(caller)
    return {
        "users": [
            {**profile.public_dict(), "role_display": display_name(profile.role)}
            for profile in users
        ],
        "total": len(users),
    }


@router.post("/create", summary="Create a user with a generated password")
@limiter.limit("20/minute")
async def create_user(
    request: Request,
    req: CreateUserRequest,
    caller: Principal = Depends(
        require_capability(
            can_manage_users, "Insufficient permissions to create users", "create_user"
        )
    ),
):
    created = await request.app.state.users.create_user(caller, req.name, req.email, req.role)
    return {
        "success": True,
        "message": "User created successfully",
        "user": created.to_dict(),
    }


@router.delete("/delete", summary="Delete a user")
async def delete_user(
    request: Request,
    req: UserIdRequest,
    caller: Principal = Depends(_manage_users),
):
    await request.app.state.users.delete_user(caller, req.user_id)
    return {"message": "User deleted successfully"}


@router.post("/reset-password", summary="Reset a user's password")
async def reset_password(
    request: Request,
    req: UserIdRequest,
    caller: Principal = Depends(
        require_capability(
            can_manage_users,
            "Insufficient permissions to reset user passwords",
            "reset_password",
        )
    ),
):
    reset = await request.app.state.users.reset_password(caller, req.user_id)
    return {
        "success": True,
        "message": "Password reset successfully",
        "email": reset.email,
        "password": reset.password,
    }
