"""Comment routes. Comments belong to their author."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from pesthub.auth import require_principal
from pesthub.core.models import Principal

router = APIRouter(prefix="/api/comments", tags=["Comments"])


class CommentRequest(BaseModel):
    content: str | None = Field(default=None, max_length=10_000)
    category: str | None = Field(default=None, max_length=64)
    priority: Literal["low", "medium", "high"] | None = None
    location_detail: str | None = Field(default=None, max_length=512)
    report_id: int | None = None


@router.get("", summary="List comments, optionally for one report")
async def list_comments(
    request: Request,
    report_id: int | None = None,
    caller: Principal = Depends(require_principal),
):
    comments = await request.app.state.records.list_comments(report_id)
    return {
        "comments": [c.model_dump(mode="json") for c in comments],
        "total": len(comments),
    }


@router.post("", status_code=201, summary="Add a comment")
async def create_comment(
    request: Request,
    req: CommentRequest,
    caller: Principal = Depends(require_principal),
):
    comment = await request.app.state.records.create_comment(
        caller, req.model_dump(exclude_unset=True)
    )
    return comment.model_dump(mode="json")


@router.patch("/{comment_id}", summary="Update a comment")
async def update_comment(
    request: Request,
    comment_id: int,
    req: CommentRequest,
    caller: Principal = Depends(require_principal),
):
    comment = await request.app.state.records.update_comment(
        caller, comment_id, req.model_dump(exclude_unset=True)
    )
    return comment.model_dump(mode="json")


@router.delete("/{comment_id}", summary="Delete a comment")
async def delete_comment(
    request: Request,
    comment_id: int,
    caller: Principal = Depends(require_principal),
):
    await request.app.state.records.delete_comment(caller, comment_id)
    return {"success": True}
