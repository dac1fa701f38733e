"""Centralized configuration for PestHub.

Uses Pydantic BaseSettings with environment variable loading and validation.
All PH_* environment variables are validated at import time.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    storage: str = Field(default="sqlite", description="Storage backend: sqlite or supabase")
    db_path: str = Field(default="pesthub.db", description="SQLite database path")

    # Auth
    auth_provider: str = Field(default="local", description="Auth provider: local or supabase")
    jwt_secret: str = Field(default="", description="HS256 secret for locally issued tokens")
    supabase_jwt_secret: str | None = Field(default=None, description="Supabase JWT secret")

    # Supabase
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_key: str | None = Field(default=None, description="Supabase service role key")

    # Access control
    system_admin_name: str = Field(
        default="System Administrator",
        description="Profile name of the undeletable administrator account",
    )
    password_length: int = Field(default=12, ge=8, le=128, description="Generated password length")
    welcome_notifications: bool = Field(
        default=True, description="Attempt a welcome notification after user creation"
    )

    # Share links
    share_default_days: int = Field(default=7, ge=1, description="Default share link lifetime")
    share_revoke_requires_owner: bool = Field(
        default=False,
        description="Restrict share link revocation to its creator or an elevated role",
    )

    # Logging
    log_format: str = Field(default="text", description="Log format: text or json")
    log_level: str = Field(default="INFO", description="Python log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind host")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    # CORS
    cors_origins: str = Field(default="*", description="Comma-separated CORS origins")

    # Rate limiting
    rate_limit: str = Field(
        default="100/minute",
        description="Default rate limit (e.g., 100/minute). Set to 'none' to disable.",
    )

    model_config = {"env_prefix": "PH_", "case_sensitive": False, "extra": "ignore"}

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        v = v.lower()
        if v not in ("sqlite", "supabase"):
            msg = f"PH_STORAGE must be 'sqlite' or 'supabase', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("auth_provider")
    @classmethod
    def validate_auth_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("local", "supabase"):
            msg = f"PH_AUTH_PROVIDER must be 'local' or 'supabase', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"PH_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        import logging

        v = v.upper()
        if not hasattr(logging, v):
            msg = f"PH_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def cors_origin_list(self) -> list[str]:
        """Return parsed list of CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Singleton, validated at import time.
settings = Settings()
