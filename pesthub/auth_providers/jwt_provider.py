"""Supabase access-token authentication provider."""

from __future__ import annotations

import logging

import jwt

from pesthub.auth_providers.base import AuthResult

logger = logging.getLogger("pesthub.auth_providers.jwt")


class SupabaseJWTProvider:
    """Authenticate via Supabase JWT access tokens (HS256, audience ``authenticated``)."""

    name = "supabase"

    def __init__(self, jwt_secret: str) -> None:
        self._jwt_secret = jwt_secret

    async def authenticate(self, token: str) -> AuthResult:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                audience="authenticated",
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            return AuthResult(
                authenticated=False,
                provider=self.name,
                error=f"JWT validation failed: {e}",
            )
        return AuthResult(
            authenticated=True,
            identity=payload["sub"],
            provider=self.name,
            email=payload.get("email"),
            claims=payload,
        )
