"""Locally issued session tokens (HS256 JWT) for the ``local`` auth provider."""

from __future__ import annotations

import logging
import os
import time

import jwt

from pesthub.auth_providers.base import AuthResult
from pesthub.config import settings

logger = logging.getLogger("pesthub.auth_providers.user_account")

# JWT config
_JWT_ALGORITHM = "HS256"
_JWT_EXPIRY_SECONDS = 12 * 3600  # one working day


def _get_jwt_secret() -> str:
    secret = os.environ.get("PH_JWT_SECRET", settings.jwt_secret)
    if not secret:
        logger.warning("PH_JWT_SECRET not set; using insecure default (dev only)")
        return "ph-dev-secret-do-not-use-in-production"
    return secret


def issue_jwt(user_id: str, email: str | None, expires_in: int = _JWT_EXPIRY_SECONDS) -> str:
    """Issue a session token for a user."""
    now = time.time()
    payload = {
        "sub": user_id,
        "email": email,
        "iat": int(now),
        "exp": int(now + expires_in),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=_JWT_ALGORITHM)


def decode_jwt(token: str) -> dict | None:
    """Decode and validate a session token. Returns claims or None."""
    try:
        return jwt.decode(
            token,
            _get_jwt_secret(),
            algorithms=[_JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError:
        return None


class UserAccountProvider:
    """Authenticate via tokens issued by the local login endpoint."""

    name = "local"

    async def authenticate(self, token: str) -> AuthResult:
        claims = decode_jwt(token)
        if claims is None:
            return AuthResult(
                authenticated=False,
                provider=self.name,
                error="Invalid or expired token",
            )
        return AuthResult(
            authenticated=True,
            identity=claims["sub"],
            provider=self.name,
            email=claims.get("email"),
            claims=claims,
        )
