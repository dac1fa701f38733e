"""Serviced locations. Everyone reads; managers and admins add."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from pesthub.auth import require_capability, require_principal
from pesthub.core.models import Principal
from pesthub.rbac import can_manage_locations

router = APIRouter(prefix="/api/locations", tags=["Locations"])

_manage_locations = require_capability(
    can_manage_locations, "Only managers and admins can manage locations", "manage_locations"
)


class LocationRequest(BaseModel):
    name: str | None = Field(default=None, max_length=256)
    address: str | None = Field(default=None, max_length=512)
    unit: str | None = Field(default=None, max_length=128)
    status: Literal["active", "inactive", "scheduled"] | None = None


@router.get("", summary="List locations")
async def list_locations(request: Request, caller: Principal = Depends(require_principal)):
    locations = await request.app.state.records.list_locations()
    return {
        "locations": [loc.model_dump(mode="json") for loc in locations],
        "total": len(locations),
    }


@router.post("", status_code=201, summary="Add a location")
async def create_location(
    request: Request,
    req: LocationRequest,
    caller: Principal = Depends(_manage_locations),
):
    location = await request.app.state.records.create_location(
        caller, req.model_dump(exclude_unset=True)
    )
    return location.model_dump(mode="json")
