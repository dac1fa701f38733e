"""Resource ownership guard.

Combines the role tables in :mod:`pesthub.rbac` with per-item authorship.
Predicates (``can_*``, ``is_*``) return booleans; the ``ensure_*`` helpers
raise the matching :mod:`pesthub.exceptions` error so services and the
endpoint dependencies share one translation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pesthub.config import settings
from pesthub.core.models import Comment, Material, Principal, Profile, Report
from pesthub.exceptions import Forbidden, InvalidSelfTarget, ProtectedAccount
from pesthub.rbac import Role, can_manage, can_manage_materials, is_elevated

_audit_logger = logging.getLogger("pesthub.audit")

Resource = Report | Comment | Material


def can_modify(principal: Principal, resource: Resource) -> bool:
    """Return True when *principal* may edit or delete *resource*.

    Materials have no owner, so only manager/admin qualify. Reports and
    comments are open to their author and to any elevated role.
    """
    if isinstance(resource, Material):
        return can_manage_materials(principal.role)
    return is_elevated(principal.role) or resource.author_id == principal.id


def is_system_administrator(profile: Profile) -> bool:
    """The sentinel account: matched by name, or by holding the admin role."""
    return profile.name == settings.system_admin_name or profile.role == Role.ADMIN


def _deny(principal: Principal, action: str, message: str, target: str | None = None) -> Forbidden:
    _audit_logger.warning(
        "Authorization denied: %s by %s (%s)",
        action,
        principal.id,
        principal.role.value,
        extra={
            "event_category": "audit",
            "action": action,
            "actor": principal.id,
            "target": target,
            "reason": message,
        },
    )
    return Forbidden(message)


def ensure_capability(
    principal: Principal,
    predicate: Callable[[Role], bool],
    message: str,
    action: str = "capability_check",
) -> None:
    if not predicate(principal.role):
        raise _deny(principal, action, message)


def ensure_can_modify(principal: Principal, resource: Resource, action: str) -> None:
    if not can_modify(principal, resource):
        kind = type(resource).__name__.lower()
        raise _deny(
            principal,
            action,
            f"You don't have permission to modify this {kind}",
            target=str(resource.id),
        )


def ensure_not_self(principal: Principal, target_id: str) -> None:
    """Self-protection for destructive user operations, independent of role."""
    if target_id == principal.id:
        raise InvalidSelfTarget()


def ensure_not_protected(target: Profile) -> None:
    if is_system_administrator(target):
        raise ProtectedAccount()


def ensure_can_manage(principal: Principal, target: Profile, action: str, message: str) -> None:
    if not can_manage(principal.role, target.role):
        raise _deny(principal, action, message, target=target.id)
