"""One-time password generation for new accounts and resets."""

from __future__ import annotations

import secrets
import string

LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*"

_ALL_CHARS = LOWERCASE + UPPERCASE + DIGITS + SYMBOLS
_CATEGORIES = (LOWERCASE, UPPERCASE, DIGITS, SYMBOLS)


def generate_secure_password(length: int = 12) -> str:
    """Return a random password containing every character category.

    Uses :mod:`secrets` throughout, including the final shuffle.
    """
    if length < len(_CATEGORIES):
        msg = f"Password length must be at least {len(_CATEGORIES)}, got {length}"
        raise ValueError(msg)

    chars = [secrets.choice(category) for category in _CATEGORIES]
    chars.extend(secrets.choice(_ALL_CHARS) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
