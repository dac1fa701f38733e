"""Session resolution and endpoint authorization for PestHub.

The auth backend is selected with ``PH_AUTH_PROVIDER``:
- ``local`` (default): tokens issued by ``POST /api/auth/login``.
- ``supabase``: Supabase access tokens, verified with
  ``PH_SUPABASE_JWT_SECRET``.

Clients supply credentials via ``Authorization: Bearer <token>``.

Endpoints compose three dependencies, each building on the previous one:

* :func:`require_session`: who is calling (401 otherwise).
* :func:`require_principal`: the caller's profile and role (404 otherwise).
* :func:`require_capability`: a role predicate from :mod:`pesthub.rbac`
  (403 otherwise).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

from fastapi import Depends, Request

from pesthub.auth_providers.base import AuthResult
from pesthub.auth_providers.factory import create_provider
from pesthub.config import settings
from pesthub.core.models import Principal
from pesthub.exceptions import ProfileNotFound, Unauthenticated
from pesthub.guards import ensure_capability
from pesthub.rbac import Role

_audit_logger = logging.getLogger("pesthub.audit")


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def _log_auth_failure(request: Request, reason: str, error: str | None = None) -> None:
    _audit_logger.warning(
        "Auth failure (%s): %s %s from %s",
        reason,
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
        extra={
            "event_category": "audit",
            "action": "auth_failure",
            "reason": reason,
            "path": request.url.path,
            "error": error,
        },
    )


async def require_session(request: Request) -> AuthResult:
    """FastAPI dependency that enforces authentication.

    The :class:`AuthResult` is attached to ``request.state.auth`` and
    returned. No profile lookup happens here.

    Raises:
        Unauthenticated: no bearer token, or the token is not valid.
    """
    token = _extract_token(request)
    if token is None:
        _log_auth_failure(request, "no_token")
        raise Unauthenticated()

    # Read config from os.environ so monkeypatch works in tests.
    provider = create_provider(
        os.environ.get("PH_AUTH_PROVIDER", settings.auth_provider).lower(),
        supabase_jwt_secret=os.environ.get(
            "PH_SUPABASE_JWT_SECRET", settings.supabase_jwt_secret
        ),
    )
    result = await provider.authenticate(token)
    if not result.authenticated:
        _log_auth_failure(request, "invalid_token", result.error)
        raise Unauthenticated("Invalid or expired session")

    request.state.auth = result
    return result


async def require_principal(
    request: Request, session: AuthResult = Depends(require_session)
) -> Principal:
    """Resolve the authenticated caller's profile into a :class:`Principal`.

    Raises:
        ProfileNotFound: the session is valid but no profile row exists.
    """
    profile = await request.app.state.db.get_profile(session.identity)
    if profile is None:
        _log_auth_failure(request, "profile_not_found")
        raise ProfileNotFound()
    principal = profile.to_principal()
    request.state.principal = principal
    return principal


def require_capability(
    predicate: Callable[[Role], bool],
    detail: str,
    action: str = "capability_check",
):
    """Dependency factory: require the caller's role to satisfy *predicate*.

    Usage::

        @router.post("/users/create")
        async def create(
            caller: Principal = Depends(
                require_capability(can_manage_users, "Insufficient permissions")
            ),
        ): ...
    """

    async def _check(principal: Principal = Depends(require_principal)) -> Principal:
        ensure_capability(principal, predicate, detail, action)
        return principal

    return _check
