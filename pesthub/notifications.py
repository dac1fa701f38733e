"""Welcome notifications for newly created accounts.

Delivery is best effort: callers log failures and carry on. The default
notifier does not send mail; it records that credentials are waiting to
be handed over manually.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger("pesthub.notifications")


@runtime_checkable
class WelcomeNotifier(Protocol):
    """Protocol for anything that can greet a new user."""

    async def send_welcome(self, email: str, name: str) -> None:
        """Notify *email* that an account was created. May raise."""
        ...


class LoggingNotifier:
    """Log the hand-off notice instead of sending mail.

    The generated password is returned to the creating manager in the API
    response and is deliberately kept out of the log.
    """

    async def send_welcome(self, email: str, name: str) -> None:
        logger.info(
            "Account created for %s (%s); credentials must be handed over manually",
            email,
            name,
            extra={"action": "welcome_notification", "target": email},
        )


class NullNotifier:
    """Notifier used when PH_WELCOME_NOTIFICATIONS is disabled."""

    async def send_welcome(self, email: str, name: str) -> None:
        return None
