"""Tests for Settings validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pesthub.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("PH_STORAGE", "PH_AUTH_PROVIDER", "PH_SHARE_REVOKE_REQUIRES_OWNER"):
            monkeypatch.delenv(name, raising=False)
        s = Settings()
        assert s.storage == "sqlite"
        assert s.auth_provider == "local"
        assert s.system_admin_name == "System Administrator"
        assert s.share_default_days == 7
        assert s.share_revoke_requires_owner is False
        assert s.password_length == 12

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PH_STORAGE", "SUPABASE")
        monkeypatch.setenv("PH_SHARE_DEFAULT_DAYS", "14")
        s = Settings()
        assert s.storage == "supabase"
        assert s.share_default_days == 14

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("PH_STORAGE", "postgres"),
            ("PH_AUTH_PROVIDER", "oidc"),
            ("PH_LOG_FORMAT", "xml"),
            ("PH_LOG_LEVEL", "LOUD"),
            ("PH_SHARE_DEFAULT_DAYS", "0"),
            ("PH_PASSWORD_LENGTH", "4"),
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch, var, value):
        monkeypatch.setenv(var, value)
        with pytest.raises(ValidationError):
            Settings()

    def test_cors_origin_list(self, monkeypatch):
        monkeypatch.setenv("PH_CORS_ORIGINS", "https://a.example, https://b.example ,")
        assert Settings().cors_origin_list == ["https://a.example", "https://b.example"]
