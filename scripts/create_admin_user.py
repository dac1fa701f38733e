#!/usr/bin/env python3
"""Seed the System Administrator account.

Creates the protected administrator through the configured identity backend
(PH_STORAGE=sqlite uses local credentials, PH_STORAGE=supabase uses the
Supabase Auth admin API) and prints the generated password once.

Usage:
    python scripts/create_admin_user.py --email admin@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pesthub.api.app import _create_database, _create_identity
from pesthub.config import settings
from pesthub.identity.base import DuplicateEmailError, IdentityError
from pesthub.logging_config import setup_logging
from pesthub.passwords import generate_secure_password
from pesthub.rbac import Role

logger = logging.getLogger("pesthub.scripts.create_admin_user")


async def create_admin(email: str, password: str | None) -> int:
    db = _create_database()
    await db.connect()
    try:
        identity = _create_identity(db)
        password = password or generate_secure_password(settings.password_length)
        try:
            user = await identity.create_user(
                email.strip().lower(), password, settings.system_admin_name, Role.ADMIN
            )
        except DuplicateEmailError:
            logger.error("An account for %s already exists", email)
            return 1
        except IdentityError as exc:
            logger.error("Failed to create administrator: %s", exc)
            return 1
    finally:
        await db.close()

    print(f"Created {settings.system_admin_name} ({user.email})")
    print(f"  id:       {user.id}")
    print(f"  password: {password}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--email", required=True, help="administrator email address")
    parser.add_argument(
        "--password", default=None, help="initial password (generated when omitted)"
    )
    args = parser.parse_args(argv)
    setup_logging()
    return asyncio.run(create_admin(args.email, args.password))


if __name__ == "__main__":
    sys.exit(main())
