"""User management: creation, deletion, password resets and the directory.

Every operation takes the calling :class:`Principal` explicitly and runs
its checks in a fixed order, so the error a caller sees for a given
request never changes between runs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from pesthub.config import settings
from pesthub.core.models import Principal, Profile
from pesthub.exceptions import (
    Conflict,
    Forbidden,
    InternalError,
    InvalidInput,
    NotFound,
    TargetNotFound,
)
from pesthub.guards import (
    ensure_can_manage,
    ensure_capability,
    ensure_not_protected,
    ensure_not_self,
)
from pesthub.identity.base import (
    DuplicateEmailError,
    IdentityError,
    IdentityService,
    IdentityValidationError,
)
from pesthub.notifications import WelcomeNotifier
from pesthub.passwords import generate_secure_password
from pesthub.rbac import Role, can_manage_users, filter_manageable, roles_creatable_by

logger = logging.getLogger("pesthub.services.users")
_audit_logger = logging.getLogger("pesthub.audit")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    """Structural check only: ``local@domain.tld`` with no whitespace."""
    return bool(EMAIL_PATTERN.match(email))


def _audit(action: str, caller: Principal, target: str) -> None:
    _audit_logger.info(
        "%s: %s by %s",
        action,
        target,
        caller.id,
        extra={
            "event_category": "audit",
            "action": action,
            "actor": caller.id,
            "target": target,
        },
    )


@dataclass
class CreatedUser:
    id: str
    email: str
    name: str
    role: Role
    password: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "password": self.password,
        }


@dataclass
class PasswordReset:
    email: str
    password: str


class UserManagementService:
    """Role-scoped user administration on top of an identity service."""

    def __init__(self, db, identity: IdentityService, notifier: WelcomeNotifier) -> None:
        self._db = db
        self._identity = identity
        self._notifier = notifier

    async def _target_profile(self, user_id: str) -> Profile:
        target = await self._db.get_profile(user_id)
        if target is None:
            raise TargetNotFound()
        return target

    async def create_user(
        self,
        caller: Principal,
        name: str | None,
        email: str | None,
        role: str | None,
    ) -> CreatedUser:
        """Create an account with a generated one-time password.

        The password is returned to the caller for manual hand-off. The
        welcome notification is best effort and never fails the creation.
        """
        ensure_capability(
            caller,
            can_manage_users,
            "Insufficient permissions to create users",
            action="create_user",
        )

        name = (name or "").strip()
        email = (email or "").strip()
        role_value = (role or "").strip()
        if not name or not email or not role_value:
            raise InvalidInput("Name, email, and role are required")

        new_role = Role.parse(role_value)
        if new_role not in roles_creatable_by(caller.role):
            raise Forbidden(f"Insufficient permissions to create users with role '{role_value}'")

        if not is_valid_email(email):
            raise InvalidInput("Invalid email format")
        email = email.lower()

        password = generate_secure_password(settings.password_length)
        try:
            account = await self._identity.create_user(email, password, name, new_role)
        except DuplicateEmailError as exc:
            raise Conflict("A user with this email address already exists") from exc
        except IdentityValidationError as exc:
            raise InvalidInput(str(exc) or "Invalid user data provided") from exc
        except IdentityError as exc:
            logger.error("Error creating user %s: %s", email, exc)
            raise InternalError("Failed to create user. Please try again.") from exc

        _audit("create_user", caller, account.id)

        try:
            await self._notifier.send_welcome(email, name)
        except Exception:
            logger.warning("Failed to send welcome notification to %s", email, exc_info=True)

        return CreatedUser(
            id=account.id,
            email=account.email or email,
            name=name,
            role=new_role,
            password=password,
        )

    async def delete_user(self, caller: Principal, user_id: str | None) -> None:
        """Delete an account.

        Order after authentication: capability, user id present, self-target,
        target exists, sentinel administrator, role hierarchy.
        """
        ensure_capability(
            caller, can_manage_users, "Insufficient permissions", action="delete_user"
        )
        if not user_id:
            raise InvalidInput("User ID is required")
        ensure_not_self(caller, user_id)
        target = await self._target_profile(user_id)
        ensure_not_protected(target)
        ensure_can_manage(
            caller, target, "delete_user", "You don't have permission to delete this user"
        )

        try:
            await self._identity.delete_user(user_id)
        except IdentityError as exc:
            logger.error("Error deleting user %s: %s", user_id, exc)
            raise InternalError("Failed to delete user") from exc

        _audit("delete_user", caller, user_id)

    async def reset_password(self, caller: Principal, user_id: str | None) -> PasswordReset:
        """Replace a user's password with a generated one and return it."""
        ensure_capability(
            caller,
            can_manage_users,
            "Insufficient permissions to reset user passwords",
            action="reset_password",
        )
        if not user_id:
            raise InvalidInput("User ID is required")
        target = await self._target_profile(user_id)
        ensure_can_manage(
            caller,
            target,
            "reset_password",
            "You don't have permission to reset this user's password",
        )

        try:
            account = await self._identity.get_user(user_id)
        except IdentityError as exc:
            raise InternalError("Failed to reset password. Please try again.") from exc
        if account is None:
            raise NotFound("User not found")
        if not account.email:
            raise InvalidInput("User email not found")

        password = generate_secure_password(settings.password_length)
        try:
            await self._identity.update_password(user_id, password)
        except IdentityError as exc:
            logger.error("Error updating password for %s: %s", user_id, exc)
            raise InternalError("Failed to reset password. Please try again.") from exc

        _audit("reset_password", caller, user_id)
        return PasswordReset(email=account.email, password=password)

    async def list_users(self, caller: Principal) -> list[Profile]:
        """Return the profiles *caller* may manage."""
        ensure_capability(
            caller, can_manage_users, "Insufficient permissions", action="list_users"
        )
        return filter_manageable(caller.role, await self._db.list_profiles())
