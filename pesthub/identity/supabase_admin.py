"""Supabase Auth identity backend.

Uses the service-role client of :class:`SupabaseDatabase` to reach the
Auth admin API. Profiles are created by the ``auth.users`` trigger from
``user_metadata`` and removed by the cascading foreign key.
"""

from __future__ import annotations

import logging

from pesthub.identity.base import (
    DuplicateEmailError,
    IdentityError,
    IdentityServiceError,
    IdentityUser,
    IdentityValidationError,
)
from pesthub.rbac import Role
from pesthub.storage.supabase_db import SupabaseDatabase

logger = logging.getLogger("pesthub.identity.supabase")

_DUPLICATE_MARKERS = ("already been registered", "user already registered")


def _translate(exc: Exception, action: str) -> IdentityError:
    """Map a Supabase Auth failure onto the identity error signals."""
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None)
    message = str(getattr(exc, "message", "") or exc)
    if code == "email_exists" or any(m in message.lower() for m in _DUPLICATE_MARKERS):
        return DuplicateEmailError("A user with this email address already exists")
    if status == 422:
        return IdentityValidationError(message or "Invalid user data provided")
    logger.error("Supabase Auth %s failed: %s", action, message)
    return IdentityServiceError(f"Failed to {action}")


class SupabaseIdentityService:
    """Identity service backed by the Supabase Auth admin API."""

    name = "supabase"

    def __init__(self, db: SupabaseDatabase) -> None:
        self._db = db

    @property
    def _admin(self):
        return self._db.client.auth.admin

    async def create_user(self, email: str, password: str, name: str, role: Role) -> IdentityUser:
        from supabase_auth.errors import AuthError

        try:
            response = await self._admin.create_user(
                {
                    "email": email,
                    "password": password,
                    "user_metadata": {"name": name, "role": role.value},
                    "email_confirm": True,
                }
            )
        except AuthError as exc:
            raise _translate(exc, "create user") from exc
        return IdentityUser(id=response.user.id, email=response.user.email)

    async def delete_user(self, user_id: str) -> None:
        from supabase_auth.errors import AuthError

        try:
            await self._admin.delete_user(user_id)
        except AuthError as exc:
            raise _translate(exc, "delete user") from exc

    async def update_password(self, user_id: str, password: str) -> None:
        from supabase_auth.errors import AuthError

        try:
            await self._admin.update_user_by_id(user_id, {"password": password})
        except AuthError as exc:
            raise _translate(exc, "update password") from exc

    async def get_user(self, user_id: str) -> IdentityUser | None:
        from supabase_auth.errors import AuthError

        try:
            response = await self._admin.get_user_by_id(user_id)
        except AuthError as exc:
            if getattr(exc, "status", None) == 404:
                return None
            raise _translate(exc, "fetch user") from exc
        if response is None or response.user is None:
            return None
        return IdentityUser(id=response.user.id, email=response.user.email)
