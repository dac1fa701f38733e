"""Company branding: the logo printed on reports and share pages."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from pesthub.auth import require_capability, require_principal
from pesthub.core.models import Principal
from pesthub.rbac import can_manage_branding

router = APIRouter(prefix="/api/settings/branding", tags=["Branding"])

_manage_branding = require_capability(
    can_manage_branding, "Only managers and admins can update branding", "manage_branding"
)


class BrandingRequest(BaseModel):
    logo_url: str | None = Field(default=None, max_length=2048)


@router.get("", summary="Current company logo")
async def get_branding(request: Request, caller: Principal = Depends(require_principal)):
    return {"logo_url": await request.app.state.records.get_logo()}


@router.put("", summary="Replace or clear the company logo")
async def update_branding(
    request: Request,
    req: BrandingRequest,
    caller: Principal = Depends(_manage_branding),
):
    logo_url = await request.app.state.records.set_logo(caller, req.logo_url)
    return {"success": True, "logo_url": logo_url}
