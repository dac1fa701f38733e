"""Async Supabase storage layer for PestHub.

Uses supabase-py for async access. Same repository interface as database.py.
Designed for production use -- selectable via PH_STORAGE=supabase env var.

Credentials live in Supabase Auth (see identity/supabase_admin.py); the
``profiles`` rows are created by the database trigger on ``auth.users``
and removed by the cascading foreign key.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any

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
from pesthub.storage.database import COMMENT_COLUMNS, MATERIAL_COLUMNS, REPORT_COLUMNS


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_row(fields: dict[str, Any], allowed: tuple[str, ...]) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in allowed:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        row[key] = value
    return row


class SupabaseDatabase:
    """Async Supabase database wrapper with the same interface as Database."""

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
    ) -> None:
        self.url = url or os.environ.get("PH_SUPABASE_URL", "")
        self.key = key or os.environ.get("PH_SUPABASE_KEY", "")
        self._client: object | None = None

    async def connect(self) -> None:
        from supabase import acreate_client

        self._client = await acreate_client(self.url, self.key)

    async def close(self) -> None:
        self._client = None

    @property
    def client(self):
        if self._client is None:
            raise RuntimeError("Supabase client not connected. Call connect() first.")
        return self._client

    async def _select_one(self, table: str, column: str, value: Any) -> dict[str, Any] | None:
        response = await self.client.table(table).select("*").eq(column, value).execute()
        if not response.data:
            return None
        return response.data[0]

    # --- Profiles ---

    async def insert_profile(self, profile: Profile) -> None:
        await (
            self.client.table("profiles")
            .insert(
                {
                    "id": profile.id,
                    "name": profile.name,
                    "email": profile.email,
                    "role": profile.role.value,
                    "license_number": profile.license_number,
                }
            )
            .execute()
        )

    async def get_profile(self, user_id: str) -> Profile | None:
        row = await self._select_one("profiles", "id", user_id)
        return Profile(**row) if row else None

    async def list_profiles(self) -> list[Profile]:
        response = await self.client.table("profiles").select("*").order("name").execute()
        return [Profile(**r) for r in response.data]

    async def get_profile_count(self) -> int:
        response = await self.client.table("profiles").select("id", count="exact").execute()
        return response.count if response.count is not None else 0

    # --- Locations ---

    async def insert_location(
        self,
        name: str,
        address: str = "",
        unit: str | None = None,
        status: str = "active",
    ) -> int:
        response = await (
            self.client.table("locations")
            .insert({"name": name, "address": address, "unit": unit, "status": status})
            .execute()
        )
        return response.data[0]["id"]

    async def get_location(self, location_id: int) -> Location | None:
        row = await self._select_one("locations", "id", location_id)
        return Location(**row) if row else None

    async def list_locations(self) -> list[Location]:
        response = await self.client.table("locations").select("*").order("name").execute()
        return [Location(**r) for r in response.data]

    # --- Reports ---

    async def insert_report(self, author_id: str, fields: dict[str, Any]) -> Report:
        row = _to_row(fields, REPORT_COLUMNS)
        row["author_id"] = author_id
        response = await self.client.table("reports").insert(row).execute()
        return Report(**response.data[0])

    async def get_report(self, report_id: int) -> Report | None:
        row = await self._select_one("reports", "id", report_id)
        return Report(**row) if row else None

    async def list_reports(self) -> list[Report]:
        response = await (
            self.client.table("reports").select("*").order("updated_at", desc=True).execute()
        )
        return [Report(**r) for r in response.data]

    async def update_report(self, report_id: int, fields: dict[str, Any]) -> Report | None:
        row = _to_row(fields, REPORT_COLUMNS)
        row["updated_at"] = _now_iso()
        response = await self.client.table("reports").update(row).eq("id", report_id).execute()
        if not response.data:
            return None
        return Report(**response.data[0])

    async def delete_report(self, report_id: int) -> bool:
        await self.client.table("pest_findings").delete().eq("report_id", report_id).execute()
        await self.client.table("report_materials").delete().eq("report_id", report_id).execute()
        response = await self.client.table("reports").delete().eq("id", report_id).execute()
        return bool(response.data)

    async def replace_pest_findings(self, report_id: int, findings: list[PestFinding]) -> None:
        await self.client.table("pest_findings").delete().eq("report_id", report_id).execute()
        if findings:
            await (
                self.client.table("pest_findings")
                .insert([{"report_id": report_id, **f.model_dump()} for f in findings])
                .execute()
            )

    async def list_pest_findings(self, report_id: int) -> list[PestFinding]:
        response = await (
            self.client.table("pest_findings")
            .select("finding_type, target_pest, location_detail, notes")
            .eq("report_id", report_id)
            .order("id")
            .execute()
        )
        return [PestFinding(**r) for r in response.data]

    async def replace_report_materials(self, report_id: int, material_ids: list[int]) -> None:
        await self.client.table("report_materials").delete().eq("report_id", report_id).execute()
        if material_ids:
            await (
                self.client.table("report_materials")
                .insert(
                    [
                        {"report_id": report_id, "material_id": m}
                        for m in sorted(set(material_ids))
                    ]
                )
                .execute()
            )

    async def list_report_material_ids(self, report_id: int) -> list[int]:
        response = await (
            self.client.table("report_materials")
            .select("material_id")
            .eq("report_id", report_id)
            .order("material_id")
            .execute()
        )
        return [r["material_id"] for r in response.data]

    # --- Comments ---

    async def insert_comment(self, author_id: str, fields: dict[str, Any]) -> Comment:
        row = _to_row(fields, COMMENT_COLUMNS)
        row["author_id"] = author_id
        response = await self.client.table("comments").insert(row).execute()
        return Comment(**response.data[0])

    async def get_comment(self, comment_id: int) -> Comment | None:
        row = await self._select_one("comments", "id", comment_id)
        return Comment(**row) if row else None

    async def list_comments(self, report_id: int | None = None) -> list[Comment]:
        query = self.client.table("comments").select("*")
        if report_id is not None:
            query = query.eq("report_id", report_id)
        response = await query.order("created_at", desc=True).execute()
        return [Comment(**r) for r in response.data]

    async def update_comment(self, comment_id: int, fields: dict[str, Any]) -> Comment | None:
        row = _to_row(fields, COMMENT_COLUMNS)
        if not row:
            return await self.get_comment(comment_id)
        response = await self.client.table("comments").update(row).eq("id", comment_id).execute()
        if not response.data:
            return None
        return Comment(**response.data[0])

    async def delete_comment(self, comment_id: int) -> bool:
        response = await self.client.table("comments").delete().eq("id", comment_id).execute()
        return bool(response.data)

    # --- Materials ---

    async def insert_material(self, fields: dict[str, Any]) -> Material:
        response = await (
            self.client.table("materials").insert(_to_row(fields, MATERIAL_COLUMNS)).execute()
        )
        return Material(**response.data[0])

    async def get_material(self, material_id: int) -> Material | None:
        row = await self._select_one("materials", "id", material_id)
        return Material(**row) if row else None

    async def list_materials(self) -> list[Material]:
        response = await self.client.table("materials").select("*").order("name").execute()
        return [Material(**r) for r in response.data]

    async def update_material(self, material_id: int, fields: dict[str, Any]) -> Material | None:
        row = _to_row(fields, MATERIAL_COLUMNS)
        if not row:
            return await self.get_material(material_id)
        response = await (
            self.client.table("materials").update(row).eq("id", material_id).execute()
        )
        if not response.data:
            return None
        return Material(**response.data[0])

    async def delete_material(self, material_id: int) -> bool:
        await (
            self.client.table("report_materials").delete().eq("material_id", material_id).execute()
        )
        response = await self.client.table("materials").delete().eq("id", material_id).execute()
        return bool(response.data)

    # --- Share tokens ---

    async def insert_share_token(self, share: ShareToken) -> None:
        await (
            self.client.table("report_share_tokens")
            .insert(
                {
                    "token": share.token,
                    "report_id": share.report_id,
                    "expires_at": share.expires_at.isoformat() if share.expires_at else None,
                    "revoked": share.revoked,
                    "created_by": share.created_by,
                    "created_at": share.created_at.isoformat(),
                }
            )
            .execute()
        )

    async def get_share_token(self, token: str) -> ShareToken | None:
        row = await self._select_one("report_share_tokens", "token", token)
        return ShareToken(**row) if row else None

    async def revoke_share_token(self, token: str) -> bool:
        response = await (
            self.client.table("report_share_tokens")
            .update({"revoked": True})
            .eq("token", token)
            .execute()
        )
        return bool(response.data)

    # --- Snapshots ---

    async def get_report_snapshot(self, report_id: int) -> ReportSnapshot | None:
        details = await self._select_one("report_details", "id", report_id)
        if details is None:
            return None
        report = await self._select_one("reports", "id", report_id) or {}
        author = await self._select_one("profiles", "id", details.get("author_id")) or {}
        return ReportSnapshot(
            report_id=report_id,
            title=details["title"],
            status=details["status"],
            location_name=details.get("location_name"),
            unit=details.get("unit"),
            author_name=details.get("author_name"),
            license_number=author.get("license_number"),
            description=details.get("description"),
            comments=details.get("comments"),
            updated_at=details.get("updated_at"),
            time_in=report.get("time_in"),
            time_out=report.get("time_out"),
            technician_signature_url=report.get("technician_signature_url"),
            customer_signature_url=report.get("customer_signature_url"),
            customer_name=report.get("customer_name"),
            logo_url=await self.get_company_logo(),
        )

    async def get_company_logo(self) -> str | None:
        response = await self.client.table("company_settings").select("logo_url").limit(1).execute()
        if not response.data:
            return None
        return response.data[0].get("logo_url")

    async def set_company_logo(self, logo_url: str | None) -> None:
        await (
            self.client.table("company_settings")
            .upsert({"id": 1, "logo_url": logo_url})
            .execute()
        )
