"""Field records: reports, comments, materials and locations.

Reports and comments belong to their author; elevated roles may edit any
of them. Materials, locations and the company logo have no owner and are
administered by role alone. Every signed-in user may read.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from pesthub.core.models import (
    Comment,
    Location,
    Material,
    PestFinding,
    Principal,
    Report,
    ReportDetail,
)
from pesthub.exceptions import InternalError, InvalidInput, NotFound
from pesthub.guards import can_modify, ensure_can_modify, ensure_capability
from pesthub.rbac import can_manage_branding, can_manage_locations, can_manage_materials

logger = logging.getLogger("pesthub.services.records")

_MATERIALS_DENIED = "Only managers and admins can manage materials"
_LOCATIONS_DENIED = "Only managers and admins can manage locations"
_BRANDING_DENIED = "Only managers and admins can update branding"

# Columns stored NOT NULL. Omitting one is fine; sending an explicit null is not.
REPORT_REQUIRED = ("title", "status")
COMMENT_REQUIRED = ("content", "category", "priority")
MATERIAL_REQUIRED = ("name", "material_group", "in_stock", "usage_count")
LOCATION_REQUIRED = ("name", "address", "status")


def reject_nulls(fields: dict[str, Any], required: tuple[str, ...]) -> None:
    for column in required:
        if column in fields and fields[column] is None:
            raise InvalidInput(f"{column} cannot be null")


class RecordService:
    """Guarded reads and writes for field records and company branding."""

    def __init__(self, db) -> None:
        self._db = db

    # --- Reports ---

    async def _report(self, report_id: int) -> Report:
        report = await self._db.get_report(report_id)
        if report is None:
            raise NotFound("Report not found")
        return report

    async def _replace_children(
        self,
        report_id: int,
        pest_findings: list[PestFinding] | None,
        material_ids: list[int] | None,
    ) -> None:
        if pest_findings is not None:
            await self._db.replace_pest_findings(report_id, pest_findings)
        if material_ids is not None:
            await self._db.replace_report_materials(report_id, material_ids)

    async def list_reports(self) -> list[Report]:
        return await self._db.list_reports()

    async def get_report_detail(self, caller: Principal, report_id: int) -> ReportDetail:
        """Load a report with its findings and materials.

        ``can_modify`` tells the client whether the edit form should unlock.
        """
        report = await self._report(report_id)
        return ReportDetail(
            **report.model_dump(),
            pest_findings=await self._db.list_pest_findings(report_id),
            material_ids=await self._db.list_report_material_ids(report_id),
            can_modify=can_modify(caller, report),
        )

    async def create_report(
        self,
        caller: Principal,
        fields: dict[str, Any],
        pest_findings: list[PestFinding] | None = None,
        material_ids: list[int] | None = None,
    ) -> Report:
        """Any signed-in user may file a report; they become its author."""
        if not (fields.get("title") or "").strip():
            raise InvalidInput("Report title is required")
        reject_nulls(fields, REPORT_REQUIRED)
        report = await self._db.insert_report(caller.id, fields)
        await self._replace_children(report.id, pest_findings, material_ids)
        logger.info("Report %s created by %s", report.id, caller.id)
        return report

    async def update_report(
        self,
        caller: Principal,
        report_id: int,
        fields: dict[str, Any],
        pest_findings: list[PestFinding] | None = None,
        material_ids: list[int] | None = None,
    ) -> Report:
        """Update report fields; findings and materials are replaced wholesale when given."""
        report = await self._report(report_id)
        ensure_can_modify(caller, report, "update_report")
        if "title" in fields and not (fields["title"] or "").strip():
            raise InvalidInput("Report title is required")
        reject_nulls(fields, REPORT_REQUIRED)

        updated = await self._db.update_report(report_id, fields)
        if updated is None:
            raise NotFound("Report not found")
        await self._replace_children(report_id, pest_findings, material_ids)
        return updated

    async def delete_report(self, caller: Principal, report_id: int) -> None:
        report = await self._report(report_id)
        ensure_can_modify(caller, report, "delete_report")
        if not await self._db.delete_report(report_id):
            raise NotFound("Report not found")
        logger.info("Report %s deleted by %s", report_id, caller.id)

    # --- Comments ---

    async def _comment(self, comment_id: int) -> Comment:
        comment = await self._db.get_comment(comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        return comment

    async def list_comments(self, report_id: int | None = None) -> list[Comment]:
        return await self._db.list_comments(report_id)

    async def create_comment(self, caller: Principal, fields: dict[str, Any]) -> Comment:
        if not (fields.get("content") or "").strip():
            raise InvalidInput("Comment content is required")
        reject_nulls(fields, COMMENT_REQUIRED)
        if fields.get("report_id") is not None:
            await self._report(fields["report_id"])
        return await self._db.insert_comment(caller.id, fields)

    async def update_comment(
        self, caller: Principal, comment_id: int, fields: dict[str, Any]
    ) -> Comment:
        comment = await self._comment(comment_id)
        ensure_can_modify(caller, comment, "update_comment")
        if "content" in fields and not (fields["content"] or "").strip():
            raise InvalidInput("Comment content is required")
        reject_nulls(fields, COMMENT_REQUIRED)
        updated = await self._db.update_comment(comment_id, fields)
        if updated is None:
            raise NotFound("Comment not found")
        return updated

    async def delete_comment(self, caller: Principal, comment_id: int) -> None:
        comment = await self._comment(comment_id)
        ensure_can_modify(caller, comment, "delete_comment")
        if not await self._db.delete_comment(comment_id):
            raise NotFound("Comment not found")

    # --- Materials ---

    async def list_materials(self) -> list[Material]:
        return await self._db.list_materials()

    async def create_material(self, caller: Principal, fields: dict[str, Any]) -> Material:
        ensure_capability(caller, can_manage_materials, _MATERIALS_DENIED, "create_material")
        if not (fields.get("name") or "").strip():
            raise InvalidInput("Material name is required")
        reject_nulls(fields, MATERIAL_REQUIRED)
        return await self._db.insert_material(fields)

    async def _material(self, caller: Principal, material_id: int, action: str) -> Material:
        # Role is checked before existence.
        ensure_capability(caller, can_manage_materials, _MATERIALS_DENIED, action)
        material = await self._db.get_material(material_id)
        if material is None:
            raise NotFound("Material not found")
        ensure_can_modify(caller, material, action)
        return material

    async def update_material(
        self, caller: Principal, material_id: int, fields: dict[str, Any]
    ) -> Material:
        await self._material(caller, material_id, "update_material")
        if "name" in fields and not (fields["name"] or "").strip():
            raise InvalidInput("Material name is required")
        reject_nulls(fields, MATERIAL_REQUIRED)
        updated = await self._db.update_material(material_id, fields)
        if updated is None:
            raise NotFound("Material not found")
        return updated

    async def delete_material(self, caller: Principal, material_id: int) -> None:
        await self._material(caller, material_id, "delete_material")
        if not await self._db.delete_material(material_id):
            raise NotFound("Material not found")

    # --- Locations ---

    async def list_locations(self) -> list[Location]:
        return await self._db.list_locations()

    async def create_location(self, caller: Principal, fields: dict[str, Any]) -> Location:
        ensure_capability(caller, can_manage_locations, _LOCATIONS_DENIED, "create_location")
        name = (fields.get("name") or "").strip()
        if not name:
            raise InvalidInput("Location name is required")
        reject_nulls(fields, LOCATION_REQUIRED)
        location_id = await self._db.insert_location(
            name,
            (fields.get("address") or "").strip(),
            fields.get("unit"),
            fields.get("status", "active"),
        )
        location = await self._db.get_location(location_id)
        if location is None:
            raise InternalError(f"Location {location_id} could not be read back after insert")
        logger.info("Location %s created by %s", location_id, caller.id)
        return location

    # --- Company branding ---

    async def get_logo(self) -> str | None:
        return await self._db.get_company_logo()

    async def set_logo(self, caller: Principal, logo_url: str | None) -> str | None:
        """Replace the logo shown on reports; ``None`` or blank clears it."""
        ensure_capability(caller, can_manage_branding, _BRANDING_DENIED, "update_branding")
        logo_url = (logo_url or "").strip() or None
        if logo_url is not None:
            parsed = urlparse(logo_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise InvalidInput("Logo URL must be an http(s) URL")
        await self._db.set_company_logo(logo_url)
        logger.info(
            "Company logo %s by %s",
            "updated" if logo_url else "cleared",
            caller.id,
            extra={"action": "update_branding", "actor": caller.id},
        )
        return logo_url
