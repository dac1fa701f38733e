"""Shared fixtures for PestHub tests."""

from __future__ import annotations

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pesthub.api.app import _db, app, limiter
from pesthub.auth_providers.user_account import issue_jwt
from pesthub.core.models import Principal, Profile
from pesthub.identity.local import LocalIdentityService
from pesthub.rbac import Role
from pesthub.storage.database import Database

TEST_PASSWORD = "Field-Test-42!"
TEST_JWT_SECRET = "pesthub-test-secret-key-0123456789"


@pytest.fixture(autouse=True)
def _auth_env(monkeypatch):
    """Pin the local auth provider and a known signing secret."""
    monkeypatch.setenv("PH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("PH_AUTH_PROVIDER", "local")
    monkeypatch.delenv("PH_SHARE_REVOKE_REQUIRES_OWNER", raising=False)


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh SQLite database for each test."""
    database = Database(tmp_path / "test.db")
    await database.connect()
    yield database
    await database.close()


async def seed_user(
    db,
    role: Role,
    name: str | None = None,
    email: str | None = None,
) -> Principal:
    """Create an account with credentials and return its principal."""
    email = email or f"{role.value}-{uuid4().hex[:8]}@example.com"
    name = name or f"{role.value.title()} {uuid4().hex[:4]}"
    user = await LocalIdentityService(db).create_user(email, TEST_PASSWORD, name, role)
    return Principal(id=user.id, role=role, name=name, email=user.email)


async def seed_profile(db, role: str, name: str = "Odd Role") -> Principal:
    """Insert a bare profile, e.g. one carrying an unrecognized role string."""
    user_id = uuid4().hex
    await db.db.execute(
        "INSERT INTO profiles (id, name, email, role, created_at) VALUES (?, ?, ?, ?, ?)",
        (user_id, name, f"{user_id[:8]}@example.com", role, "2024-01-01T00:00:00+00:00"),
    )
    await db.db.commit()
    profile = await db.get_profile(user_id)
    assert isinstance(profile, Profile)
    return profile.to_principal()


def auth_headers(principal: Principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_jwt(principal.id, principal.email)}"}


@pytest_asyncio.fixture
async def client(tmp_path):
    """HTTP test client wired to a fresh database."""
    _db.db_path = tmp_path / "api_test.db"
    await _db.connect()

    # Disable rate limiter for tests
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await _db.close()


@pytest_asyncio.fixture
async def users(client):
    """One account per real role, plus the protected administrator."""
    return {
        "admin": await seed_user(_db, Role.ADMIN, name="System Administrator"),
        "admin2": await seed_user(_db, Role.ADMIN, name="Second Admin"),
        "manager": await seed_user(_db, Role.MANAGER),
        "manager2": await seed_user(_db, Role.MANAGER),
        "supervisor": await seed_user(_db, Role.SUPERVISOR),
        "supervisor2": await seed_user(_db, Role.SUPERVISOR),
        "technician": await seed_user(_db, Role.TECHNICIAN),
        "technician2": await seed_user(_db, Role.TECHNICIAN),
    }
