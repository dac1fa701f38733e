"""Sign-in and self-inspection routes."""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from pesthub.api.rate_limit import limiter
from pesthub.auth import require_principal
from pesthub.auth_providers.user_account import issue_jwt
from pesthub.config import settings
from pesthub.core.models import Principal
from pesthub.exceptions import InvalidInput, Unauthenticated
from pesthub.rbac import (
    can_manage_branding,
    can_manage_locations,
    can_manage_materials,
    can_manage_users,
    display_name,
    is_elevated,
    roles_creatable_by,
)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

_audit_logger = logging.getLogger("pesthub.audit")


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=256)


@router.post("/login", summary="Exchange email and password for a session token")
@limiter.limit("10/minute")
async def login(request: Request, req: LoginRequest):
    # Tokens issued here only verify under the local provider.
    provider = os.environ.get("PH_AUTH_PROVIDER", settings.auth_provider).lower()
    if provider != "local":
        raise InvalidInput(f"Password login is not available with the {provider} auth provider")

    identity = request.app.state.identity
    verify = getattr(identity, "verify_credentials", None)
    if verify is None:
        raise InvalidInput(f"Password login is not available with the {identity.name} backend")

    user = await verify(req.email.strip().lower(), req.password)
    if user is None:
        _audit_logger.warning(
            "Failed login for %s",
            req.email,
            extra={"event_category": "audit", "action": "login_failed", "target": req.email},
        )
        raise Unauthenticated("Invalid email or password")

    return {
        "user_id": user.id,
        "email": user.email,
        "token": issue_jwt(user.id, user.email),
        "token_type": "bearer",
    }


@router.get("/me", summary="The caller's profile and capabilities")
async def me(principal: Principal = Depends(require_principal)):
    role = principal.role
    return {
        "id": principal.id,
        "name": principal.name,
        "email": principal.email,
        "role": role.value,
        "role_display": display_name(role),
        "capabilities": {
            "manage_users": can_manage_users(role),
            "creatable_roles": [r.value for r in roles_creatable_by(role)],
            "elevated": is_elevated(role),
            "manage_materials": can_manage_materials(role),
            "manage_locations": can_manage_locations(role),
            "manage_branding": can_manage_branding(role),
        },
    }
