"""
Create an admin account, or promote / reactivate an existing one.
Run from project root:
  python -m app.scripts.create_admin EMAIL PASSWORD [--name NAME] [--role ROLE]
  python -m app.scripts.create_admin EMAIL --promote [--role ROLE]
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from app.db.base import Base
from app.db.session import async_session_factory, engine
from app.models.user import ROLE_ADMIN, VALID_ROLES, User
from app.schemas.user import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.services.credential_store import CredentialStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create or promote a portal admin account.")
    parser.add_argument("email", help="Login email")
    parser.add_argument("password", nargs="?", help="Password (required unless --promote)")
    parser.add_argument("--name", default="Administrator", help="Display name")
    parser.add_argument("--role", default=ROLE_ADMIN, choices=VALID_ROLES)
    parser.add_argument(
        "--promote",
        action="store_true",
        help="Grant the role to an existing account and reactivate it",
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    email = User.normalize_email(args.email)
    if "@" not in email:
        print("Invalid email address.", file=sys.stderr)
        return 1

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        store = CredentialStore(session)
        existing = await store.get_by_email(email)

        if args.promote:
            if existing is None:
                print(f"No user with email '{email}'.", file=sys.stderr)
                return 1
            existing.role = args.role
            existing.is_active = True
            await session.commit()
            print(f"Granted role '{args.role}' to '{email}'.")
            return 0

        if existing is not None:
            print(f"User '{email}' already exists (use --promote).", file=sys.stderr)
            return 1
        if not args.password or not (
            PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN
        ):
            print(
                f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
                file=sys.stderr,
            )
            return 1

        user = User(email=email, name=args.name.strip(), role=args.role, is_active=True)
        user.set_password(args.password)
        session.add(user)
        await session.commit()
        print(f"Created user '{email}' with role '{args.role}'.")
        return 0


async def run(args: argparse.Namespace) -> int:
    try:
        return await _run(args)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(run(build_parser().parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
