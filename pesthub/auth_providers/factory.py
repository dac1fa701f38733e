"""Factory for creating auth providers based on configuration."""

from __future__ import annotations

from pesthub.auth_providers.base import AuthProvider


def create_provider(provider_name: str, *, supabase_jwt_secret: str | None = None) -> AuthProvider:
    """Create an auth provider by name."""
    if provider_name == "local":
        from pesthub.auth_providers.user_account import UserAccountProvider

        return UserAccountProvider()

    if provider_name == "supabase":
        if not supabase_jwt_secret:
            msg = "supabase_jwt_secret required for supabase auth provider"
            raise ValueError(msg)
        from pesthub.auth_providers.jwt_provider import SupabaseJWTProvider

        return SupabaseJWTProvider(supabase_jwt_secret)

    msg = f"Unknown auth provider: {provider_name}"
    raise ValueError(msg)
