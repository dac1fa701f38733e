"""Async SQLite storage layer for PestHub.

Uses aiosqlite for async access. Repository pattern for clean separation.
Designed for dev/testing; production runs against Supabase with the same
interface (see supabase_db.py).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from pesthub.core.models import (
    Comment,
    Location,
    Material,
    PestFinding,
    Profile,
    Report,
    ReportSnapshot,
    ShareToken,
)
from pesthub.exceptions import InternalError

DEFAULT_DB_PATH = Path(os.environ.get("PH_DB_PATH", "pesthub.db"))

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS auth_users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    email TEXT,
    role TEXT NOT NULL DEFAULT 'technician',
    license_number TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS locations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    address TEXT NOT NULL DEFAULT '',
    unit TEXT,
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    location_id INTEGER,
    unit TEXT,
    author_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft',
    comments TEXT,
    time_in TEXT,
    time_out TEXT,
    technician_signature_url TEXT,
    customer_signature_url TEXT,
    customer_name TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_reports_author
    ON reports (author_id);

CREATE TABLE IF NOT EXISTS pest_findings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    report_id INTEGER NOT NULL,
    finding_type TEXT NOT NULL,
    target_pest TEXT NOT NULL,
    location_detail TEXT NOT NULL DEFAULT '',
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_pest_findings_report
    ON pest_findings (report_id);

CREATE TABLE IF NOT EXISTS report_materials (
    report_id INTEGER NOT NULL,
    material_id INTEGER NOT NULL,
    PRIMARY KEY (report_id, material_id)
);

CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content TEXT NOT NULL,
    author_id TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'general',
    priority TEXT NOT NULL DEFAULT 'medium',
    location_detail TEXT,
    report_id INTEGER,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS materials (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT,
    material_group TEXT NOT NULL DEFAULT '',
    in_stock INTEGER NOT NULL DEFAULT 1,
    usage_count INTEGER NOT NULL DEFAULT 0,
    last_used TEXT
);

CREATE TABLE IF NOT EXISTS report_share_tokens (
    token TEXT PRIMARY KEY,
    report_id INTEGER NOT NULL,
    expires_at TEXT,
    revoked INTEGER NOT NULL DEFAULT 0,
    created_by TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_share_tokens_report
    ON report_share_tokens (report_id);

CREATE TABLE IF NOT EXISTS company_settings (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    logo_url TEXT
);
"""

#: Columns a report update may touch.
REPORT_COLUMNS: tuple[str, ...] = (
    "title",
    "description",
    "location_id",
    "unit",
    "status",
    "comments",
    "time_in",
    "time_out",
    "technician_signature_url",
    "customer_signature_url",
    "customer_name",
)

COMMENT_COLUMNS: tuple[str, ...] = (
    "content",
    "category",
    "priority",
    "location_detail",
    "report_id",
)

MATERIAL_COLUMNS: tuple[str, ...] = (
    "name",
    "description",
    "material_group",
    "in_stock",
    "usage_count",
    "last_used",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _columns(fields: dict[str, Any], allowed: tuple[str, ...]) -> dict[str, Any]:
    return {k: _to_db(v) for k, v in fields.items() if k in allowed}


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db

    async def _fetchone(self, sql: str, params: tuple = ()) -> aiosqlite.Row | None:
        cursor = await self.db.execute(sql, params)
        return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        cursor = await self.db.execute(sql, params)
        return list(await cursor.fetchall())

    async def _update(self, table: str, key: str, key_value: Any, values: dict[str, Any]) -> bool:
        if not values:
            row = await self._fetchone(f"SELECT 1 FROM {table} WHERE {key} = ?", (key_value,))
            return row is not None
        assignments = ", ".join(f"{col} = ?" for col in values)
        cursor = await self.db.execute(
            f"UPDATE {table} SET {assignments} WHERE {key} = ?",
            (*values.values(), key_value),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    @staticmethod
    async def _inserted(getter, row_id: int | None, kind: str):
        """Re-read a freshly inserted row."""
        row = await getter(row_id) if row_id is not None else None
        if row is None:
            raise InternalError(f"{kind} {row_id} could not be read back after insert")
        return row

    # --- Credentials (local identity provider) ---

    async def insert_auth_user(
        self, user_id: str, email: str, password_hash: str, profile: Profile
    ) -> None:
        """Insert credentials and the matching profile in one transaction."""
        now = _now_iso()
        try:
            await self.db.execute(
                """INSERT INTO auth_users (id, email, password_hash, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (user_id, email, password_hash, now, now),
            )
            await self.db.execute(
                """INSERT INTO profiles (id, name, email, role, license_number, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    profile.id,
                    profile.name,
                    profile.email,
                    profile.role.value,
                    profile.license_number,
                    now,
                ),
            )
        except aiosqlite.Error:
            await self.db.rollback()
            raise
        await self.db.commit()

    async def get_auth_user(self, user_id: str) -> dict[str, Any] | None:
        row = await self._fetchone(
            "SELECT id, email, password_hash FROM auth_users WHERE id = ?", (user_id,)
        )
        return dict(row) if row else None

    async def get_auth_user_by_email(self, email: str) -> dict[str, Any] | None:
        row = await self._fetchone(
            "SELECT id, email, password_hash FROM auth_users WHERE email = ?", (email,)
        )
        return dict(row) if row else None

    async def update_auth_password(self, user_id: str, password_hash: str) -> bool:
        return await self._update(
            "auth_users",
            "id",
            user_id,
            {"password_hash": password_hash, "updated_at": _now_iso()},
        )

    async def delete_auth_user(self, user_id: str) -> bool:
        """Delete credentials; the profile goes with them."""
        cursor = await self.db.execute("DELETE FROM auth_users WHERE id = ?", (user_id,))
        await self.db.execute("DELETE FROM profiles WHERE id = ?", (user_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    # --- Profiles ---

    async def insert_profile(self, profile: Profile) -> None:
        await self.db.execute(
            """INSERT INTO profiles (id, name, email, role, license_number, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                profile.id,
                profile.name,
                profile.email,
                profile.role.value,
                profile.license_number,
                (profile.created_at.isoformat() if profile.created_at else _now_iso()),
            ),
        )
        await self.db.commit()

    async def get_profile(self, user_id: str) -> Profile | None:
        row = await self._fetchone("SELECT * FROM profiles WHERE id = ?", (user_id,))
        if row is None:
            return None
        return Profile(**dict(row))

    async def list_profiles(self) -> list[Profile]:
        rows = await self._fetchall("SELECT * FROM profiles ORDER BY name ASC")
        return [Profile(**dict(r)) for r in rows]

    async def get_profile_count(self) -> int:
        row = await self._fetchone("SELECT COUNT(*) FROM profiles")
        return row[0] if row else 0

    # --- Locations ---

    async def insert_location(
        self,
        name: str,
        address: str = "",
        unit: str | None = None,
        status: str = "active",
    ) -> int:
        cursor = await self.db.execute(
            "INSERT INTO locations (name, address, unit, status) VALUES (?, ?, ?, ?)",
            (name, address, unit, status),
        )
        await self.db.commit()
        return cursor.lastrowid

    async def get_location(self, location_id: int) -> Location | None:
        row = await self._fetchone("SELECT * FROM locations WHERE id = ?", (location_id,))
        return Location(**dict(row)) if row else None

    async def list_locations(self) -> list[Location]:
        rows = await self._fetchall("SELECT * FROM locations ORDER BY name ASC")
        return [Location(**dict(r)) for r in rows]

    # --- Reports ---

    async def insert_report(self, author_id: str, fields: dict[str, Any]) -> Report:
        values = _columns(fields, REPORT_COLUMNS)
        now = _now_iso()
        values.update({"author_id": author_id, "created_at": now, "updated_at": now})
        cols = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        cursor = await self.db.execute(
            f"INSERT INTO reports ({cols}) VALUES ({placeholders})", tuple(values.values())
        )
        await self.db.commit()
        return await self._inserted(self.get_report, cursor.lastrowid, "Report")

    async def get_report(self, report_id: int) -> Report | None:
        row = await self._fetchone("SELECT * FROM reports WHERE id = ?", (report_id,))
        if row is None:
            return None
        return Report(**dict(row))

    async def list_reports(self) -> list[Report]:
        rows = await self._fetchall("SELECT * FROM reports ORDER BY updated_at DESC, id DESC")
        return [Report(**dict(r)) for r in rows]

    async def update_report(self, report_id: int, fields: dict[str, Any]) -> Report | None:
        values = _columns(fields, REPORT_COLUMNS)
        values["updated_at"] = _now_iso()
        if not await self._update("reports", "id", report_id, values):
            return None
        return await self.get_report(report_id)

    async def delete_report(self, report_id: int) -> bool:
        cursor = await self.db.execute("DELETE FROM reports WHERE id = ?", (report_id,))
        await self.db.execute("DELETE FROM pest_findings WHERE report_id = ?", (report_id,))
        await self.db.execute("DELETE FROM report_materials WHERE report_id = ?", (report_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    async def replace_pest_findings(self, report_id: int, findings: list[PestFinding]) -> None:
        now = _now_iso()
        await self.db.execute("DELETE FROM pest_findings WHERE report_id = ?", (report_id,))
        await self.db.executemany(
            """INSERT INTO pest_findings
               (report_id, finding_type, target_pest, location_detail, notes, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (report_id, f.finding_type, f.target_pest, f.location_detail, f.notes, now)
                for f in findings
            ],
        )
        await self.db.commit()

    async def list_pest_findings(self, report_id: int) -> list[PestFinding]:
        rows = await self._fetchall(
            "SELECT * FROM pest_findings WHERE report_id = ? ORDER BY id ASC", (report_id,)
        )
        return [
            PestFinding(
                finding_type=r["finding_type"],
                target_pest=r["target_pest"],
                location_detail=r["location_detail"],
                notes=r["notes"],
            )
            for r in rows
        ]

    async def replace_report_materials(self, report_id: int, material_ids: list[int]) -> None:
        await self.db.execute("DELETE FROM report_materials WHERE report_id = ?", (report_id,))
        await self.db.executemany(
            "INSERT OR IGNORE INTO report_materials (report_id, material_id) VALUES (?, ?)",
            [(report_id, m) for m in material_ids],
        )
        await self.db.commit()

    async def list_report_material_ids(self, report_id: int) -> list[int]:
        rows = await self._fetchall(
            "SELECT material_id FROM report_materials WHERE report_id = ? ORDER BY material_id",
            (report_id,),
        )
        return [r[0] for r in rows]

    # --- Comments ---

    async def insert_comment(self, author_id: str, fields: dict[str, Any]) -> Comment:
        values = _columns(fields, COMMENT_COLUMNS)
        values.update({"author_id": author_id, "created_at": _now_iso()})
        cols = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        cursor = await self.db.execute(
            f"INSERT INTO comments ({cols}) VALUES ({placeholders})", tuple(values.values())
        )
        await self.db.commit()
        return await self._inserted(self.get_comment, cursor.lastrowid, "Comment")

    async def get_comment(self, comment_id: int) -> Comment | None:
        row = await self._fetchone("SELECT * FROM comments WHERE id = ?", (comment_id,))
        if row is None:
            return None
        return Comment(**dict(row))

    async def list_comments(self, report_id: int | None = None) -> list[Comment]:
        if report_id is None:
            rows = await self._fetchall("SELECT * FROM comments ORDER BY created_at DESC, id DESC")
        else:
            rows = await self._fetchall(
                "SELECT * FROM comments WHERE report_id = ? ORDER BY created_at DESC, id DESC",
                (report_id,),
            )
        return [Comment(**dict(r)) for r in rows]

    async def update_comment(self, comment_id: int, fields: dict[str, Any]) -> Comment | None:
        if not await self._update(
            "comments", "id", comment_id, _columns(fields, COMMENT_COLUMNS)
        ):
            return None
        return await self.get_comment(comment_id)

    async def delete_comment(self, comment_id: int) -> bool:
        cursor = await self.db.execute("DELETE FROM comments WHERE id = ?", (comment_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    # --- Materials ---

    async def insert_material(self, fields: dict[str, Any]) -> Material:
        values = _columns(fields, MATERIAL_COLUMNS)
        cols = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        cursor = await self.db.execute(
            f"INSERT INTO materials ({cols}) VALUES ({placeholders})", tuple(values.values())
        )
        await self.db.commit()
        return await self._inserted(self.get_material, cursor.lastrowid, "Material")

    async def get_material(self, material_id: int) -> Material | None:
        row = await self._fetchone("SELECT * FROM materials WHERE id = ?", (material_id,))
        if row is None:
            return None
        return Material(**dict(row))

    async def list_materials(self) -> list[Material]:
        rows = await self._fetchall("SELECT * FROM materials ORDER BY name ASC")
        return [Material(**dict(r)) for r in rows]

    async def update_material(self, material_id: int, fields: dict[str, Any]) -> Material | None:
        if not await self._update(
            "materials", "id", material_id, _columns(fields, MATERIAL_COLUMNS)
        ):
            return None
        return await self.get_material(material_id)

    async def delete_material(self, material_id: int) -> bool:
        cursor = await self.db.execute("DELETE FROM materials WHERE id = ?", (material_id,))
        await self.db.execute(
            "DELETE FROM report_materials WHERE material_id = ?", (material_id,)
        )
        await self.db.commit()
        return cursor.rowcount > 0

    # --- Share tokens ---

    async def insert_share_token(self, share: ShareToken) -> None:
        await self.db.execute(
            """INSERT INTO report_share_tokens
               (token, report_id, expires_at, revoked, created_by, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                share.token,
                share.report_id,
                share.expires_at.isoformat() if share.expires_at else None,
                int(share.revoked),
                share.created_by,
                share.created_at.isoformat(),
            ),
        )
        await self.db.commit()

    async def get_share_token(self, token: str) -> ShareToken | None:
        row = await self._fetchone(
            "SELECT * FROM report_share_tokens WHERE token = ?", (token,)
        )
        if row is None:
            return None
        data = dict(row)
        data["revoked"] = bool(data["revoked"])
        return ShareToken(**data)

    async def revoke_share_token(self, token: str) -> bool:
        return await self._update("report_share_tokens", "token", token, {"revoked": 1})

    # --- Snapshots ---

    async def get_report_snapshot(self, report_id: int) -> ReportSnapshot | None:
        row = await self._fetchone(
            """SELECT r.id AS report_id, r.title, r.status, r.unit, r.description,
                      r.comments, r.updated_at, r.time_in, r.time_out,
                      r.technician_signature_url, r.customer_signature_url,
                      r.customer_name, l.name AS location_name,
                      p.name AS author_name, p.license_number
               FROM reports r
               LEFT JOIN locations l ON l.id = r.location_id
               LEFT JOIN profiles p ON p.id = r.author_id
               WHERE r.id = ?""",
            (report_id,),
        )
        if row is None:
            return None
        return ReportSnapshot(**dict(row), logo_url=await self.get_company_logo())

    async def get_company_logo(self) -> str | None:
        row = await self._fetchone("SELECT logo_url FROM company_settings WHERE id = 1")
        return row["logo_url"] if row else None

    async def set_company_logo(self, logo_url: str | None) -> None:
        await self.db.execute(
            """INSERT INTO company_settings (id, logo_url) VALUES (1, ?)
               ON CONFLICT(id) DO UPDATE SET logo_url = excluded.logo_url""",
            (logo_url,),
        )
        await self.db.commit()
