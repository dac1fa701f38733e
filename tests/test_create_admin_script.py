"""Tests for scripts/create_admin_user.py."""

from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest

from pesthub.guards import is_system_administrator
from pesthub.identity.local import verify_password
from pesthub.rbac import Role
from pesthub.storage.database import Database

_SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "create_admin_user.py"


@pytest.fixture
def script():
    spec = importlib.util.spec_from_file_location("create_admin_user", _SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestCreateAdminScript:
    async def test_seeds_protected_admin(self, script, tmp_path, monkeypatch, capsys):
        db_path = tmp_path / "seed.db"
        monkeypatch.setenv("PH_STORAGE", "sqlite")
        monkeypatch.setenv("PH_DB_PATH", str(db_path))

        assert await script.create_admin("Root@Example.com", "Initial-Pass-1") == 0
        assert "password: Initial-Pass-1" in capsys.readouterr().out

        db = Database(db_path)
        await db.connect()
        try:
            row = await db.get_auth_user_by_email("root@example.com")
            assert verify_password("Initial-Pass-1", row["password_hash"])
            profile = await db.get_profile(row["id"])
            assert profile.role is Role.ADMIN
            assert is_system_administrator(profile)
        finally:
            await db.close()

    async def test_duplicate_email_fails(self, script, tmp_path, monkeypatch):
        monkeypatch.setenv("PH_STORAGE", "sqlite")
        monkeypatch.setenv("PH_DB_PATH", str(tmp_path / "seed.db"))
        assert await script.create_admin("root@example.com", None) == 0
        assert await script.create_admin("root@example.com", None) == 1
