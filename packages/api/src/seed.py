# This project was developed with assistance from AI tools.
"""CLI entrypoint for bootstrapping the first administrator.

Usage:
    python -m src.seed --email admin@example.com --password 'S3cure-Passw0rd!'
    python -m src.seed --email admin@example.com --password '...' --name "Ops Admin"

An existing account with that email is promoted to ADMIN and its password
reset; otherwise a new local ADMIN is created.
"""

import argparse
import asyncio
import json
import sys

from db.database import SessionLocal
from db.enums import UserRole
from sqlalchemy.ext.asyncio import AsyncSession

from .core.logging import configure_logging
from .schemas.auth import check_password_strength
from .services.users import get_user_by_email, hash_password, register_user


async def seed_admin(session: AsyncSession, *, email: str, password: str, name: str) -> dict:
    """Create or promote an ADMIN account. Returns a summary dict."""
    user = await get_user_by_email(session, email)
    if user is None:
        user = await register_user(session, email=email, password=password, name=name, role=UserRole.ADMIN)
        return {"status": "created", "user_id": user.id, "email": user.email}

    user.role = UserRole.ADMIN
    user.password_hash = hash_password(password)
    await session.commit()
    return {"status": "promoted", "user_id": user.id, "email": user.email}


async def main(email: str, password: str, name: str) -> None:
    async with SessionLocal() as session:
        result = await seed_admin(session, email=email, password=password, name=name)
        print(json.dumps(result, indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote a Training Management admin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args()

    try:
        check_password_strength(args.password)
    except ValueError as exc:
        print(f"Rejected password: {exc}", file=sys.stderr)
        sys.exit(2)
    if len(args.password) < 12:
        print("Rejected password: must be at least 12 characters", file=sys.stderr)
        sys.exit(2)

    configure_logging("INFO")
    asyncio.run(main(args.email.lower(), args.password, args.name))
