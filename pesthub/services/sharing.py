"""Share links: anonymous, time-boxed, revocable read access to one report.

This is a separate, narrower trust boundary than the role system. Issuing
a link needs only a session; resolving one needs nothing but the token.
A token is valid iff it is not revoked and either never expires or
expires strictly after ``now``.
"""

from __future__ import annotations

import logging
import os
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pesthub.config import settings
from pesthub.core.models import ReportSnapshot, ShareToken, ShareTokenStatus, as_utc
from pesthub.exceptions import (
    Expired,
    Forbidden,
    InvalidInput,
    NotFound,
    ProfileNotFound,
    Revoked,
    TokenNotFound,
)
from pesthub.rbac import is_elevated

_audit_logger = logging.getLogger("pesthub.audit")

SHARE_PATH = "/reports/share/{token}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_share_token_valid(revoked: bool, expires_at: datetime | None, now: datetime) -> bool:
    """``expires_at == now`` counts as expired."""
    return not revoked and (expires_at is None or as_utc(expires_at) > as_utc(now))


def share_token_status(share: ShareToken, now: datetime) -> ShareTokenStatus:
    if share.revoked:
        return ShareTokenStatus.REVOKED
    if not is_share_token_valid(share.revoked, share.expires_at, now):
        return ShareTokenStatus.EXPIRED
    return ShareTokenStatus.VALID


def generate_share_token() -> str:
    """Random, URL-safe, independent of report id and time."""
    return secrets.token_urlsafe(32)


@dataclass
class IssuedShareLink:
    token: str
    share_url: str
    expires_at: datetime | None

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "shareUrl": self.share_url,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


def _revoke_requires_owner() -> bool:
    raw = os.environ.get("PH_SHARE_REVOKE_REQUIRES_OWNER")
    if raw is None:
        return settings.share_revoke_requires_owner
    return raw.strip().lower() in ("1", "true", "yes", "on")


class ShareService:
    """Issue, revoke and resolve report share tokens."""

    def __init__(self, db, clock: Callable[[], datetime] = _utcnow) -> None:
        self._db = db
        self._clock = clock

    async def issue(
        self,
        user_id: str,
        report_id: int,
        origin: str,
        no_expiry: bool = False,
        days: int | None = None,
    ) -> IssuedShareLink:
        """Mint a token for *report_id*. Any authenticated user may share.

        *origin* is the scheme and host of the incoming request; the share
        URL is built from it rather than from a configured host.
        """
        if days is None:
            days = settings.share_default_days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise InvalidInput("days must be a positive integer")

        if await self._db.get_report(report_id) is None:
            raise NotFound("Report not found")

        now = self._clock()
        expires_at = None if no_expiry else now + timedelta(seconds=days * 86400)
        share = ShareToken(
            token=generate_share_token(),
            report_id=report_id,
            expires_at=expires_at,
            revoked=False,
            created_by=user_id,
            created_at=now,
        )
        await self._db.insert_share_token(share)

        _audit_logger.info(
            "Share link issued for report %s by %s",
            report_id,
            user_id,
            extra={
                "event_category": "audit",
                "action": "issue_share_token",
                "actor": user_id,
                "target": str(report_id),
            },
        )
        share_url = origin.rstrip("/") + SHARE_PATH.format(token=share.token)
        return IssuedShareLink(token=share.token, share_url=share_url, expires_at=expires_at)

    async def revoke(self, user_id: str, token: str) -> None:
        """Mark *token* revoked.

        Any authenticated user may revoke by default. With
        ``PH_SHARE_REVOKE_REQUIRES_OWNER`` enabled only the creator or an
        elevated role may.
        """
        share = await self._db.get_share_token(token)
        if share is None:
            raise TokenNotFound()

        if _revoke_requires_owner() and share.created_by != user_id:
            profile = await self._db.get_profile(user_id)
            if profile is None:
                raise ProfileNotFound()
            if not is_elevated(profile.role):
                raise Forbidden("Only the creator of a share link can revoke it")

        if not await self._db.revoke_share_token(token):
            raise TokenNotFound()

        _audit_logger.info(
            "Share link revoked for report %s by %s",
            share.report_id,
            user_id,
            extra={
                "event_category": "audit",
                "action": "revoke_share_token",
                "actor": user_id,
                "target": str(share.report_id),
            },
        )

    async def resolve(self, token: str, now: datetime | None = None) -> ReportSnapshot:
        """Return the read-only snapshot a valid *token* grants access to.

        Raises:
            TokenNotFound: no such token.
            Revoked: the token was revoked.
            Expired: the token lapsed.
            NotFound: the report no longer exists.
        """
        share = await self._db.get_share_token(token)
        if share is None:
            raise TokenNotFound()

        status = share_token_status(share, now or self._clock())
        if status is ShareTokenStatus.REVOKED:
            raise Revoked()
        if status is ShareTokenStatus.EXPIRED:
            raise Expired()

        snapshot = await self._db.get_report_snapshot(share.report_id)
        if snapshot is None:
            raise NotFound("Report not found")
        return snapshot
