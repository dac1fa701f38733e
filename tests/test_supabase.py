"""Tests for the Supabase storage and identity adapters using a mocked client."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from supabase_auth.errors import AuthApiError

from pesthub.core.models import PestFinding, Profile, ShareToken
from pesthub.identity.base import (
    DuplicateEmailError,
    IdentityServiceError,
    IdentityValidationError,
)
from pesthub.identity.supabase_admin import SupabaseIdentityService
from pesthub.rbac import Role
from pesthub.storage.supabase_db import SupabaseDatabase

# ---------------------------------------------------------------------------
# Helpers: build a mock Supabase async client
# ---------------------------------------------------------------------------


class MockResponse:
    """Mimics a Supabase API response."""

    def __init__(self, data=None, count=None):
        self.data = data or []
        self.count = count


def _make_chain():
    chain = MagicMock()
    for method in ("eq", "order", "limit"):
        getattr(chain, method).return_value = chain
    chain.execute = AsyncMock(return_value=MockResponse())
    return chain


def _make_mock_table():
    """Create a mock table builder that supports chaining."""
    table = MagicMock()
    for method in ("insert", "select", "update", "delete", "upsert"):
        setattr(table, method, MagicMock(return_value=_make_chain()))
    return table


def _make_mock_client():
    """Create a mock Supabase async client with per-table mocks."""
    client = MagicMock()
    tables: dict[str, MagicMock] = {}

    def get_table(name):
        if name not in tables:
            tables[name] = _make_mock_table()
        return tables[name]

    client.table = MagicMock(side_effect=get_table)
    client._tables = tables  # expose for test assertions

    admin = MagicMock()
    admin.create_user = AsyncMock()
    admin.delete_user = AsyncMock()
    admin.update_user_by_id = AsyncMock()
    admin.get_user_by_id = AsyncMock()
    client.auth.admin = admin
    return client


def _table(client, name):
    return client._tables.setdefault(name, _make_mock_table())


def _returns(client, table, method, data, count=None):
    chain = getattr(_table(client, table), method).return_value
    chain.execute = AsyncMock(return_value=MockResponse(data=data, count=count))
    return chain


@pytest.fixture
def mock_client():
    return _make_mock_client()


@pytest.fixture
def db(mock_client):
    sdb = SupabaseDatabase(url="https://test.supabase.co", key="test-key")
    sdb._client = mock_client
    return sdb


# ---------------------------------------------------------------------------
# Connection lifecycle
# ---------------------------------------------------------------------------


class TestConnection:
    async def test_close_clears_client(self, db):
        await db.close()
        assert db._client is None

    def test_client_property_raises_when_not_connected(self):
        with pytest.raises(RuntimeError, match="not connected"):
            _ = SupabaseDatabase(url="https://x.supabase.co", key="k").client

    def test_reads_credentials_from_env(self, monkeypatch):
        monkeypatch.setenv("PH_SUPABASE_URL", "https://env.supabase.co")
        monkeypatch.setenv("PH_SUPABASE_KEY", "env-key")
        sdb = SupabaseDatabase()
        assert sdb.url == "https://env.supabase.co"
        assert sdb.key == "env-key"


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    async def test_get_profile_missing(self, db):
        assert await db.get_profile("nope") is None

    async def test_get_profile_parses_role(self, db, mock_client):
        _returns(
            mock_client,
            "profiles",
            "select",
            [{"id": "u1", "name": "Sue", "email": "sue@example.com", "role": "Supervisor"}],
        )
        profile = await db.get_profile("u1")
        assert profile.role is Role.SUPERVISOR
        _table(mock_client, "profiles").select.return_value.eq.assert_called_with("id", "u1")

    async def test_unrecognized_role_is_unknown(self, db, mock_client):
        _returns(mock_client, "profiles", "select", [{"id": "u1", "role": "owner"}])
        assert (await db.get_profile("u1")).role is Role.UNKNOWN

    async def test_insert_profile(self, db, mock_client):
        await db.insert_profile(Profile(id="u2", name="Ty", role=Role.TECHNICIAN))
        row = _table(mock_client, "profiles").insert.call_args[0][0]
        assert row["role"] == "technician"

    async def test_list_profiles_ordered_by_name(self, db, mock_client):
        chain = _returns(
            mock_client, "profiles", "select", [{"id": "a", "role": "admin"}, {"id": "b"}]
        )
        profiles = await db.list_profiles()
        assert [p.id for p in profiles] == ["a", "b"]
        chain.order.assert_called_with("name")

    async def test_profile_count(self, db, mock_client):
        _returns(mock_client, "profiles", "select", [], count=7)
        assert await db.get_profile_count() == 7


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TestReports:
    async def test_insert_report_filters_columns(self, db, mock_client):
        _returns(
            mock_client,
            "reports",
            "insert",
            [{"id": 5, "title": "Dock", "author_id": "u1", "status": "draft"}],
        )
        report = await db.insert_report("u1", {"title": "Dock", "bogus": 1})
        row = _table(mock_client, "reports").insert.call_args[0][0]
        assert row == {"title": "Dock", "author_id": "u1"}
        assert report.id == 5

    async def test_update_missing_report(self, db):
        assert await db.update_report(9, {"title": "x"}) is None

    async def test_replace_pest_findings(self, db, mock_client):
        await db.replace_pest_findings(
            3, [PestFinding(finding_type="captured", target_pest="mouse")]
        )
        table = _table(mock_client, "pest_findings")
        table.delete.return_value.eq.assert_called_with("report_id", 3)
        rows = table.insert.call_args[0][0]
        assert rows[0]["report_id"] == 3
        assert rows[0]["target_pest"] == "mouse"

    async def test_replace_materials_dedupes(self, db, mock_client):
        await db.replace_report_materials(3, [2, 1, 2])
        rows = _table(mock_client, "report_materials").insert.call_args[0][0]
        assert rows == [
            {"report_id": 3, "material_id": 1},
            {"report_id": 3, "material_id": 2},
        ]

    async def test_delete_report_reports_success(self, db, mock_client):
        _returns(mock_client, "reports", "delete", [{"id": 3}])
        assert await db.delete_report(3) is True

    async def test_list_reports_newest_first(self, db, mock_client):
        chain = _returns(
            mock_client,
            "reports",
            "select",
            [
                {"id": 2, "title": "B", "author_id": "u1"},
                {"id": 1, "title": "A", "author_id": "u1"},
            ],
        )
        reports = await db.list_reports()
        assert [r.id for r in reports] == [2, 1]
        chain.order.assert_called_with("updated_at", desc=True)

    async def test_list_comments_for_report(self, db, mock_client):
        chain = _returns(
            mock_client, "comments", "select", [{"id": 4, "content": "Gap", "author_id": "u1"}]
        )
        comments = await db.list_comments(3)
        assert [c.content for c in comments] == ["Gap"]
        chain.eq.assert_called_with("report_id", 3)
        chain.order.assert_called_with("created_at", desc=True)

    async def test_list_comments_unfiltered(self, db, mock_client):
        chain = _returns(mock_client, "comments", "select", [])
        assert await db.list_comments() == []
        chain.eq.assert_not_called()


class TestLocations:
    async def test_insert_location(self, db, mock_client):
        _returns(mock_client, "locations", "insert", [{"id": 8}])
        assert await db.insert_location("Mill", "2 Weir Rd", status="scheduled") == 8
        row = _table(mock_client, "locations").insert.call_args[0][0]
        assert row == {"name": "Mill", "address": "2 Weir Rd", "unit": None, "status": "scheduled"}

    async def test_list_locations_by_name(self, db, mock_client):
        chain = _returns(mock_client, "locations", "select", [{"id": 1, "name": "Annex"}])
        locations = await db.list_locations()
        assert locations[0].name == "Annex"
        chain.order.assert_called_with("name")


# ---------------------------------------------------------------------------
# Share tokens and snapshots
# ---------------------------------------------------------------------------


class TestShareTokens:
    async def test_insert_and_get(self, db, mock_client):
        share = ShareToken(token="abc", report_id=1, created_by="u1")
        await db.insert_share_token(share)
        row = _table(mock_client, "report_share_tokens").insert.call_args[0][0]
        assert row["expires_at"] is None
        assert row["revoked"] is False

        _returns(
            mock_client,
            "report_share_tokens",
            "select",
            [
                {
                    "token": "abc",
                    "report_id": 1,
                    "expires_at": "2024-06-01T12:00:00",
                    "revoked": False,
                    "created_by": "u1",
                    "created_at": "2024-05-25T12:00:00+00:00",
                }
            ],
        )
        loaded = await db.get_share_token("abc")
        assert loaded.expires_at.tzinfo is not None

    async def test_revoke_unknown(self, db):
        assert await db.revoke_share_token("zzz") is False

    async def test_snapshot_missing(self, db):
        assert await db.get_report_snapshot(1) is None

    async def test_snapshot_combines_sources(self, db, mock_client):
        _returns(
            mock_client,
            "report_details",
            "select",
            [
                {
                    "id": 1,
                    "title": "Hotel",
                    "status": "completed",
                    "location_name": "Grand",
                    "author_id": "u1",
                    "author_name": "Terry",
                }
            ],
        )
        _returns(mock_client, "reports", "select", [{"id": 1, "customer_name": "Mr Grand"}])
        _returns(mock_client, "profiles", "select", [{"id": "u1", "license_number": "LIC-9"}])
        _returns(mock_client, "company_settings", "select", [{"logo_url": "https://l/x.png"}])

        snapshot = await db.get_report_snapshot(1)
        assert snapshot.location_name == "Grand"
        assert snapshot.license_number == "LIC-9"
        assert snapshot.customer_name == "Mr Grand"
        assert snapshot.logo_url == "https://l/x.png"


# ---------------------------------------------------------------------------
# Identity (Supabase Auth admin API)
# ---------------------------------------------------------------------------


class TestSupabaseIdentity:
    async def test_create_user_sends_metadata(self, db, mock_client):
        mock_client.auth.admin.create_user.return_value = SimpleNamespace(
            user=SimpleNamespace(id="new-id", email="sam@example.com")
        )
        identity = SupabaseIdentityService(db)
        user = await identity.create_user("sam@example.com", "Pw1!aaaa", "Sam", Role.SUPERVISOR)

        assert user.id == "new-id"
        attrs = mock_client.auth.admin.create_user.call_args[0][0]
        assert attrs["user_metadata"] == {"name": "Sam", "role": "supervisor"}
        assert attrs["email_confirm"] is True

    async def test_duplicate_email(self, db, mock_client):
        mock_client.auth.admin.create_user.side_effect = AuthApiError(
            "A user with this email address has already been registered", 422, "email_exists"
        )
        with pytest.raises(DuplicateEmailError):
            await SupabaseIdentityService(db).create_user("a@b.co", "pw", "A", Role.TECHNICIAN)

    async def test_validation_error(self, db, mock_client):
        mock_client.auth.admin.create_user.side_effect = AuthApiError(
            "Password should be at least 6 characters", 422, "weak_password"
        )
        with pytest.raises(IdentityValidationError, match="Password should be"):
            await SupabaseIdentityService(db).create_user("a@b.co", "pw", "A", Role.TECHNICIAN)

    async def test_service_error(self, db, mock_client):
        mock_client.auth.admin.delete_user.side_effect = AuthApiError(
            "Database error", 500, "unexpected_failure"
        )
        with pytest.raises(IdentityServiceError):
            await SupabaseIdentityService(db).delete_user("u1")

    async def test_update_password(self, db, mock_client):
        await SupabaseIdentityService(db).update_password("u1", "NewPass1!")
        mock_client.auth.admin.update_user_by_id.assert_awaited_once_with(
            "u1", {"password": "NewPass1!"}
        )

    async def test_get_user_not_found(self, db, mock_client):
        mock_client.auth.admin.get_user_by_id.side_effect = AuthApiError(
            "User not found", 404, "user_not_found"
        )
        assert await SupabaseIdentityService(db).get_user("ghost") is None

    async def test_get_user(self, db, mock_client):
        mock_client.auth.admin.get_user_by_id.return_value = SimpleNamespace(
            user=SimpleNamespace(id="u1", email="u1@example.com")
        )
        user = await SupabaseIdentityService(db).get_user("u1")
        assert user.email == "u1@example.com"
