"""Report routes: author-owned CRUD plus share link issue and revoke."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from pesthub.auth import require_principal, require_session
from pesthub.auth_providers.base import AuthResult
from pesthub.core.models import PestFinding, Principal, Report, ReportStatus

router = APIRouter(prefix="/api/reports", tags=["Reports"])

_CHILD_FIELDS = {"pest_findings", "material_ids"}


class ReportRequest(BaseModel):
    title: str | None = Field(default=None, max_length=512)
    description: str | None = None
    location_id: int | None = None
    unit: str | None = Field(default=None, max_length=128)
    status: ReportStatus | None = None
    comments: str | None = None
    time_in: datetime | None = None
    time_out: datetime | None = None
    technician_signature_url: str | None = Field(default=None, max_length=2048)
    customer_signature_url: str | None = Field(default=None, max_length=2048)
    customer_name: str | None = Field(default=None, max_length=256)
    pest_findings: list[PestFinding] | None = None
    material_ids: list[int] | None = None

    def fields(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude=_CHILD_FIELDS)


class ShareRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    no_expiry: bool = Field(default=False, alias="noExpiry")
    days: int | None = None


def _report_dict(report: Report) -> dict:
    return report.model_dump(mode="json")


@router.get("", summary="List reports")
async def list_reports(request: Request, caller: Principal = Depends(require_principal)):
    reports = await request.app.state.records.list_reports()
    return {"reports": [_report_dict(r) for r in reports], "total": len(reports)}


@router.get("/{report_id}", summary="A report with its pest findings and materials")
async def get_report(
    request: Request,
    report_id: int,
    caller: Principal = Depends(require_principal),
):
    detail = await request.app.state.records.get_report_detail(caller, report_id)
    return detail.model_dump(mode="json")


@router.post("", status_code=201, summary="File a report")
async def create_report(
    request: Request,
    req: ReportRequest,
    caller: Principal = Depends(require_principal),
):
    report = await request.app.state.records.create_report(
        caller, req.fields(), req.pest_findings, req.material_ids
    )
    return _report_dict(report)


@router.patch("/{report_id}", summary="Update a report")
async def update_report(
    request: Request,
    report_id: int,
    req: ReportRequest,
    caller: Principal = Depends(require_principal),
):
    report = await request.app.state.records.update_report(
        caller, report_id, req.fields(), req.pest_findings, req.material_ids
    )
    return _report_dict(report)


@router.delete("/{report_id}", summary="Delete a report")
async def delete_report(
    request: Request,
    report_id: int,
    caller: Principal = Depends(require_principal),
):
    await request.app.state.records.delete_report(caller, report_id)
    return {"success": True}


@router.post("/{report_id}/share", summary="Issue a share link for a report")
async def share_report(
    request: Request,
    report_id: int,
    req: ShareRequest | None = Body(default=None),
    session: AuthResult = Depends(require_session),
):
    req = req or ShareRequest()
    origin = f"{request.url.scheme}://{request.url.netloc}"
    link = await request.app.state.shares.issue(
        session.identity, report_id, origin, no_expiry=req.no_expiry, days=req.days
    )
    return link.to_dict()


@router.post("/share/{token}/revoke", summary="Revoke a share link")
async def revoke_share(
    request: Request,
    token: str,
    session: AuthResult = Depends(require_session),
):
    await request.app.state.shares.revoke(session.identity, token)
    return {"success": True}
