"""Domain models for PestHub.

- Principal: the authenticated caller, passed explicitly to every check
- Profile: a user's directory entry (name, email, role)
- Report / Comment: author-owned field records
- Location: a serviced site; reports point at one
- Material: inventory item with no per-item owner
- ShareToken: bearer link granting anonymous read access to one report
- ReportSnapshot: the read-only projection rendered for share links
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from pesthub.rbac import Role

# Role strings from storage or tokens are parsed case-insensitively.
ParsedRole = Annotated[Role, BeforeValidator(Role.parse)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from storage as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ReportStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ShareTokenStatus(str, Enum):
    VALID = "valid"
    REVOKED = "revoked"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class Principal(BaseModel):
    """The caller of a request, resolved from the session and profile."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: ParsedRole
    name: str = ""
    email: str | None = None


class Profile(BaseModel):
    id: str
    name: str = ""
    email: str | None = None
    role: ParsedRole = Role.TECHNICIAN
    license_number: str | None = None
    created_at: datetime | None = None

    def to_principal(self) -> Principal:
        return Principal(id=self.id, role=self.role, name=self.name, email=self.email)

    def public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "license_number": self.license_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ---------------------------------------------------------------------------
# Field records
# ---------------------------------------------------------------------------


class Location(BaseModel):
    id: int
    name: str
    address: str = ""
    unit: str | None = None
    status: Literal["active", "inactive", "scheduled"] = "active"


class PestFinding(BaseModel):
    finding_type: Literal["captured", "sighted", "evidence"]
    target_pest: str = Field(min_length=1, max_length=256)
    location_detail: str = Field(default="", max_length=512)
    notes: str | None = None


class Report(BaseModel):
    id: int
    title: str
    description: str | None = None
    location_id: int | None = None
    unit: str | None = None
    author_id: str
    status: ReportStatus = ReportStatus.DRAFT
    comments: str | None = None
    time_in: datetime | None = None
    time_out: datetime | None = None
    technician_signature_url: str | None = None
    customer_signature_url: str | None = None
    customer_name: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ReportDetail(Report):
    """A report with its child rows, as the edit form loads it."""

    pest_findings: list[PestFinding] = Field(default_factory=list)
    material_ids: list[int] = Field(default_factory=list)
    can_modify: bool = False


class Comment(BaseModel):
    id: int
    content: str
    author_id: str
    category: str = "general"
    priority: Literal["low", "medium", "high"] = "medium"
    location_detail: str | None = None
    report_id: int | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class Material(BaseModel):
    """Inventory material. Mutation rights come from role alone."""

    id: int
    name: str
    description: str | None = None
    material_group: str = ""
    in_stock: bool = True
    usage_count: int = 0
    last_used: datetime | None = None


# ---------------------------------------------------------------------------
# Share links
# ---------------------------------------------------------------------------


class ShareToken(BaseModel):
    """Opaque bearer token for one report. Only ``revoked`` ever changes."""

    token: str
    report_id: int
    expires_at: datetime | None = None
    revoked: bool = False
    created_by: str
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("expires_at")
    @classmethod
    def _expires_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


class ReportSnapshot(BaseModel):
    """Read-only projection of a report for anonymous share links."""

    model_config = ConfigDict(frozen=True)

    report_id: int
    title: str
    status: str
    location_name: str | None = None
    unit: str | None = None
    author_name: str | None = None
    license_number: str | None = None
    description: str | None = None
    comments: str | None = None
    updated_at: datetime | None = None
    time_in: datetime | None = None
    time_out: datetime | None = None
    technician_signature_url: str | None = None
    customer_signature_url: str | None = None
    customer_name: str | None = None
    logo_url: str | None = None
