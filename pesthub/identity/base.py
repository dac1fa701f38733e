"""Identity service protocol and error signals.

The identity service owns credentials: it creates, deletes and updates
accounts. It never decides who may do so; callers check permissions first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from pesthub.rbac import Role


class IdentityError(Exception):
    """Base class for identity service failures."""


class DuplicateEmailError(IdentityError):
    """The email address is already registered."""


class IdentityValidationError(IdentityError):
    """The identity service rejected the supplied data."""


class IdentityServiceError(IdentityError):
    """Any other identity service failure (outage, unexpected response)."""


@dataclass
class IdentityUser:
    """An account as known to the identity service."""

    id: str
    email: str | None


@runtime_checkable
class IdentityService(Protocol):
    """Protocol that all identity backends must implement."""

    name: str

    async def create_user(self, email: str, password: str, name: str, role: Role) -> IdentityUser:
        """Create credentials plus the matching profile."""
        ...

    async def delete_user(self, user_id: str) -> None:
        """Delete credentials; the profile goes with them."""
        ...

    async def update_password(self, user_id: str, password: str) -> None: ...

    async def get_user(self, user_id: str) -> IdentityUser | None: ...
