"""Role-Based Access Control for PestHub.

Defines the closed set of roles and the capability tables every
authorization decision is read from. Capabilities are explicit
allow-lists, never derived from a rank: the "can manage" relation is
neither symmetric nor transitive.

Roles:
    admin       - Manages everyone, creates managers
    manager     - Manages supervisors and technicians; administers materials,
                  locations and company branding
    supervisor  - Manages technicians
    technician  - Records reports, manages no one
    unknown     - Any unrecognized role string; grants nothing

All functions here are pure predicates: no I/O, no exceptions.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Enumerated user roles."""

    TECHNICIAN = "technician"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    ADMIN = "admin"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Role | str | None) -> Role:
        """Case-insensitive lookup; anything unrecognized is ``UNKNOWN``."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            role = cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return role


#: Roles that can be assigned to a real account.
ASSIGNABLE_ROLES: tuple[Role, ...] = (
    Role.TECHNICIAN,
    Role.SUPERVISOR,
    Role.MANAGER,
    Role.ADMIN,
)

#: Roles allowed into user management at all.
USER_MANAGERS: frozenset[Role] = frozenset({Role.SUPERVISOR, Role.MANAGER, Role.ADMIN})

#: Roles that override per-item ownership on reports and comments.
ELEVATED_ROLES: frozenset[Role] = frozenset({Role.SUPERVISOR, Role.MANAGER, Role.ADMIN})

#: Roles allowed to create, edit and delete materials.
MATERIAL_MANAGERS: frozenset[Role] = frozenset({Role.MANAGER, Role.ADMIN})

#: Roles allowed to add serviced locations.
LOCATION_MANAGERS: frozenset[Role] = frozenset({Role.MANAGER, Role.ADMIN})

#: Roles allowed to change the company logo shown on reports.
BRANDING_MANAGERS: frozenset[Role] = frozenset({Role.MANAGER, Role.ADMIN})

#: Roles each role may assign when creating a user. Nobody creates admins.
CREATABLE_ROLES: dict[Role, tuple[Role, ...]] = {
    Role.ADMIN: (Role.TECHNICIAN, Role.SUPERVISOR, Role.MANAGER),
    Role.MANAGER: (Role.TECHNICIAN, Role.SUPERVISOR),
    Role.SUPERVISOR: (Role.TECHNICIAN,),
    Role.TECHNICIAN: (),
    Role.UNKNOWN: (),
}

#: Target roles each role may delete, reset, or see in the user directory.
MANAGEABLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset(Role),
    Role.MANAGER: frozenset({Role.TECHNICIAN, Role.SUPERVISOR}),
    Role.SUPERVISOR: frozenset({Role.TECHNICIAN}),
    Role.TECHNICIAN: frozenset(),
    Role.UNKNOWN: frozenset(),
}

_DISPLAY_NAMES: dict[Role, str] = {
    Role.TECHNICIAN: "Technician",
    Role.SUPERVISOR: "Supervisor",
    Role.MANAGER: "Manager",
    Role.ADMIN: "Admin",
    Role.UNKNOWN: "Unknown",
}


def can_manage_users(role: Role | str | None) -> bool:
    """True for supervisor, manager and admin."""
    return Role.parse(role) in USER_MANAGERS


def roles_creatable_by(role: Role | str | None) -> tuple[Role, ...]:
    """Return the roles *role* may assign to a new account."""
    return CREATABLE_ROLES[Role.parse(role)]


def can_manage(caller_role: Role | str | None, target_role: Role | str | None) -> bool:
    """Check whether *caller_role* may act on an account holding *target_role*.

    Used for deletion, password resets and directory visibility.
    """
    return Role.parse(target_role) in MANAGEABLE_ROLES[Role.parse(caller_role)]


def is_elevated(role: Role | str | None) -> bool:
    return Role.parse(role) in ELEVATED_ROLES


def can_manage_materials(role: Role | str | None) -> bool:
    return Role.parse(role) in MATERIAL_MANAGERS


def can_manage_locations(role: Role | str | None) -> bool:
    return Role.parse(role) in LOCATION_MANAGERS


def can_manage_branding(role: Role | str | None) -> bool:
    return Role.parse(role) in BRANDING_MANAGERS


def display_name(role: Role | str | None) -> str:
    return _DISPLAY_NAMES[Role.parse(role)]


def filter_manageable(caller_role: Role | str | None, users: Iterable[Any]) -> list[Any]:
    """Keep only the users whose role *caller_role* can manage.

    Accepts mappings or objects with a ``role`` attribute.
    """
    visible = []
    for user in users:
        role = user.get("role") if isinstance(user, dict) else getattr(user, "role", None)
        if can_manage(caller_role, role):
            visible.append(user)
    return visible
