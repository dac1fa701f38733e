"""Local identity backend: credentials in the SQLite ``auth_users`` table.

Passwords are hashed with PBKDF2-SHA256 (stdlib, no C dependency). Used in
development and tests; production uses Supabase Auth.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

import aiosqlite

from pesthub.core.models import Profile
from pesthub.identity.base import (
    DuplicateEmailError,
    IdentityServiceError,
    IdentityUser,
    IdentityValidationError,
)
from pesthub.rbac import ASSIGNABLE_ROLES, Role
from pesthub.storage.database import Database

logger = logging.getLogger("pesthub.identity.local")

_PBKDF2_ITERATIONS = 260_000


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-SHA256."""
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS)
    return f"pbkdf2:sha256:{_PBKDF2_ITERATIONS}${salt}${dk.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against PBKDF2-SHA256 hash."""
    try:
        parts = password_hash.split("$")
        if len(parts) != 3:
            return False
        prefix_and_iterations, salt, stored_hash = parts
        iterations = int(prefix_and_iterations.split(":")[-1])
        dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
        return hmac.compare_digest(dk.hex(), stored_hash)
    except (ValueError, IndexError):
        return False


class LocalIdentityService:
    """Identity service backed by :class:`Database`."""

    name = "local"

    def __init__(self, db: Database) -> None:
        self._db = db

    async def create_user(self, email: str, password: str, name: str, role: Role) -> IdentityUser:
        if role not in ASSIGNABLE_ROLES:
            raise IdentityValidationError(f"Unsupported role '{role}'")
        if await self._db.get_auth_user_by_email(email):
            raise DuplicateEmailError("A user with this email address already exists")

        user_id = secrets.token_hex(16)
        profile = Profile(id=user_id, name=name, email=email, role=role)
        try:
            await self._db.insert_auth_user(user_id, email, hash_password(password), profile)
        except aiosqlite.IntegrityError as exc:
            raise DuplicateEmailError("A user with this email address already exists") from exc
        except aiosqlite.Error as exc:
            raise IdentityServiceError(f"Failed to create user: {exc}") from exc
        return IdentityUser(id=user_id, email=email)

    async def delete_user(self, user_id: str) -> None:
        try:
            await self._db.delete_auth_user(user_id)
        except aiosqlite.Error as exc:
            raise IdentityServiceError(f"Failed to delete user: {exc}") from exc

    async def update_password(self, user_id: str, password: str) -> None:
        try:
            updated = await self._db.update_auth_password(user_id, hash_password(password))
        except aiosqlite.Error as exc:
            raise IdentityServiceError(f"Failed to update password: {exc}") from exc
        if not updated:
            raise IdentityServiceError(f"No credentials for user {user_id}")

    async def get_user(self, user_id: str) -> IdentityUser | None:
        row = await self._db.get_auth_user(user_id)
        if row is None:
            return None
        return IdentityUser(id=row["id"], email=row["email"])

    async def verify_credentials(self, email: str, password: str) -> IdentityUser | None:
        """Return the account when *password* matches, else None."""
        row = await self._db.get_auth_user_by_email(email.strip().lower())
        if row is None or not verify_password(password, row["password_hash"]):
            return None
        return IdentityUser(id=row["id"], email=row["email"])
