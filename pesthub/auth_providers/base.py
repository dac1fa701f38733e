"""Base authentication provider protocol and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass
class AuthResult:
    """Result of an authentication attempt.

    ``identity`` is the user id the session belongs to. Roles are not taken
    from tokens; they are read from the caller's profile.
    """

    authenticated: bool
    identity: str = ""
    provider: str = ""
    email: str | None = None
    claims: dict = field(default_factory=dict)
    error: str | None = None


@runtime_checkable
class AuthProvider(Protocol):
    """Protocol that all auth providers must implement."""

    name: str

    async def authenticate(self, token: str) -> AuthResult:
        """Authenticate a bearer token and return an AuthResult."""
        ...
