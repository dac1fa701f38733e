"""Tests for auth providers, session resolution and the login endpoints."""

from __future__ import annotations

import time

import jwt
import pytest
from conftest import TEST_JWT_SECRET, TEST_PASSWORD, auth_headers, seed_profile, seed_user

from pesthub.api.app import _db
from pesthub.auth_providers.factory import create_provider
from pesthub.auth_providers.jwt_provider import SupabaseJWTProvider
from pesthub.auth_providers.user_account import UserAccountProvider, decode_jwt, issue_jwt
from pesthub.rbac import Role

SUPABASE_SECRET = "supabase-test-secret-key-1234567890"


def _supabase_token(sub: str, secret: str = SUPABASE_SECRET, **overrides) -> str:
    payload = {
        "sub": sub,
        "email": "someone@example.com",
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **overrides,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class TestFactory:
    def test_local(self):
        assert isinstance(create_provider("local"), UserAccountProvider)

    def test_supabase(self):
        provider = create_provider("supabase", supabase_jwt_secret="s")
        assert isinstance(provider, SupabaseJWTProvider)

    def test_supabase_requires_secret(self):
        with pytest.raises(ValueError, match="supabase_jwt_secret"):
            create_provider("supabase")

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown auth provider"):
            create_provider("ldap")


class TestLocalTokens:
    def test_round_trip(self):
        claims = decode_jwt(issue_jwt("user-1", "u@example.com"))
        assert claims["sub"] == "user-1"
        assert claims["email"] == "u@example.com"

    def test_expired_token_rejected(self):
        assert decode_jwt(issue_jwt("user-1", None, expires_in=-10)) is None

    def test_wrong_secret_rejected(self):
        forged = jwt.encode(
            {"sub": "user-1", "exp": int(time.time()) + 60}, "other", algorithm="HS256"
        )
        assert decode_jwt(forged) is None

    async def test_provider_result(self):
        result = await UserAccountProvider().authenticate(issue_jwt("user-1", "u@example.com"))
        assert result.authenticated is True
        assert result.identity == "user-1"
        assert result.provider == "local"

    async def test_provider_rejects_garbage(self):
        result = await UserAccountProvider().authenticate("not-a-jwt")
        assert result.authenticated is False
        assert result.error


class TestSupabaseProvider:
    async def test_valid(self):
        result = await SupabaseJWTProvider(SUPABASE_SECRET).authenticate(_supabase_token("abc"))
        assert result.authenticated is True
        assert result.identity == "abc"
        assert result.provider == "supabase"

    async def test_wrong_audience(self):
        token = _supabase_token("abc", aud="anon")
        result = await SupabaseJWTProvider(SUPABASE_SECRET).authenticate(token)
        assert result.authenticated is False

    async def test_expired(self):
        token = _supabase_token("abc", exp=int(time.time()) - 10)
        result = await SupabaseJWTProvider(SUPABASE_SECRET).authenticate(token)
        assert result.authenticated is False
        assert "JWT validation failed" in result.error


# ---------------------------------------------------------------------------
# Session resolution through the API
# ---------------------------------------------------------------------------


class TestSessionResolution:
    async def test_no_token_is_401(self, client):
        resp = await client.get("/api/auth/me")
        assert resp.status_code == 401
        body = resp.json()
        assert body["error"] == "unauthenticated"
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_non_bearer_scheme_is_401(self, client):
        resp = await client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    async def test_invalid_token_is_401(self, client):
        resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    async def test_session_without_profile_is_404(self, client):
        headers = {"Authorization": f"Bearer {issue_jwt('ghost', 'ghost@example.com')}"}
        resp = await client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 404
        assert resp.json()["error"] == "profile_not_found"

    async def test_me_reports_capabilities(self, client):
        supervisor = await seed_user(_db, Role.SUPERVISOR, name="Sue")
        resp = await client.get("/api/auth/me", headers=auth_headers(supervisor))
        assert resp.status_code == 200
        data = resp.json()
        assert data["role"] == "supervisor"
        assert data["role_display"] == "Supervisor"
        assert data["capabilities"] == {
            "manage_users": True,
            "creatable_roles": ["technician"],
            "elevated": True,
            "manage_materials": False,
            "manage_locations": False,
            "manage_branding": False,
        }

    async def test_unknown_profile_role_grants_nothing(self, client):
        odd = await seed_profile(_db, "Contractor")
        resp = await client.get("/api/auth/me", headers=auth_headers(odd))
        assert resp.status_code == 200
        data = resp.json()
        assert data["role"] == "unknown"
        assert data["capabilities"]["manage_users"] is False
        assert data["capabilities"]["creatable_roles"] == []

    async def test_role_comes_from_profile_not_token(self, client):
        tech = await seed_user(_db, Role.TECHNICIAN)
        forged_claims = {
            "sub": tech.id,
            "role": "admin",
            "exp": int(time.time()) + 60,
        }
        token = jwt.encode(forged_claims, TEST_JWT_SECRET, algorithm="HS256")
        resp = await client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    async def test_supabase_provider(self, client, monkeypatch):
        monkeypatch.setenv("PH_AUTH_PROVIDER", "supabase")
        monkeypatch.setenv("PH_SUPABASE_JWT_SECRET", SUPABASE_SECRET)
        manager = await seed_user(_db, Role.MANAGER)

        resp = await client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {_supabase_token(manager.id)}"},
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "manager"

        local = await client.get("/api/auth/me", headers=auth_headers(manager))
        assert local.status_code == 401


class TestLogin:
    async def test_login_success(self, client):
        tech = await seed_user(_db, Role.TECHNICIAN, email="terry@example.com")
        resp = await client.post(
            "/api/auth/login", json={"email": "Terry@Example.com", "password": TEST_PASSWORD}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == tech.id
        assert data["email"] == "terry@example.com"

        me = await client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"}
        )
        assert me.json()["id"] == tech.id

    async def test_wrong_password(self, client):
        await seed_user(_db, Role.TECHNICIAN, email="terry@example.com")
        resp = await client.post(
            "/api/auth/login", json={"email": "terry@example.com", "password": "wrong"}
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid email or password"

    async def test_unknown_email(self, client):
        resp = await client.post(
            "/api/auth/login", json={"email": "nobody@example.com", "password": "x"}
        )
        assert resp.status_code == 401

    async def test_missing_fields_is_400(self, client):
        resp = await client.post("/api/auth/login", json={"email": "a@example.com"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    async def test_login_refused_under_supabase_provider(self, client, monkeypatch):
        await seed_user(_db, Role.TECHNICIAN, email="terry@example.com")
        monkeypatch.setenv("PH_AUTH_PROVIDER", "supabase")
        resp = await client.post(
            "/api/auth/login", json={"email": "terry@example.com", "password": TEST_PASSWORD}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"
        assert "supabase auth provider" in resp.json()["message"]
        assert "token" not in resp.json()
