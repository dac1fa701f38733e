"""Material inventory routes. Reads are open to every role; writes are not."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from pesthub.auth import require_capability, require_principal
from pesthub.core.models import Principal
from pesthub.rbac import can_manage_materials

router = APIRouter(prefix="/api/materials", tags=["Materials"])

_manage_materials = require_capability(
    can_manage_materials, "Only managers and admins can manage materials", "manage_materials"
)


class MaterialRequest(BaseModel):
    name: str | None = Field(default=None, max_length=256)
    description: str | None = None
    material_group: str | None = Field(default=None, max_length=128)
    in_stock: bool | None = None
    usage_count: int | None = Field(default=None, ge=0)
    last_used: datetime | None = None


@router.get("", summary="List materials")
async def list_materials(request: Request, caller: Principal = Depends(require_principal)):
    materials = await request.app.state.records.list_materials()
    return {
        "materials": [m.model_dump(mode="json") for m in materials],
        "total": len(materials),
    }


@router.post("", status_code=201, summary="Create a material")
async def create_material(
    request: Request,
    req: MaterialRequest,
    caller: Principal = Depends(_manage_materials),
):
    material = await request.app.state.records.create_material(
        caller, req.model_dump(exclude_unset=True)
    )
    return material.model_dump(mode="json")


@router.patch("/{material_id}", summary="Update a material")
async def update_material(
    request: Request,
    material_id: int,
    req: MaterialRequest,
    caller: Principal = Depends(_manage_materials),
):
    material = await request.app.state.records.update_material(
        caller, material_id, req.model_dump(exclude_unset=True)
    )
    return material.model_dump(mode="json")


@router.delete("/{material_id}", summary="Delete a material")
async def delete_material(
    request: Request,
    material_id: int,
    caller: Principal = Depends(_manage_materials),
):
    await request.app.state.records.delete_material(caller, material_id)
    return {"success": True}
