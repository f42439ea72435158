from __future__ import annotations

import asyncio
import getpass
from argparse import ArgumentParser, Namespace
from typing import Optional, Sequence

from readzy.core.database import create_engine, create_session_factory, init_schema
from readzy.core.settings import Settings
from readzy.services.user_service import (
    UserAlreadyExistsError,
    UserNotFoundError,
    UserService,
)


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    parser = ArgumentParser(
        description=(
            "Create or update a Readzy user account. "
            "Example: python -m readzy.scripts.create_user --email ann@example.com --name Ann"
        )
    )
    parser.add_argument("--email", required=True, help="Login email of the user")
    parser.add_argument("--name", help="Display name (defaults to the part of the email before '@')")
    parser.add_argument("--password", help="Password (prompted for when omitted)")
    parser.add_argument(
        "--inactive",
        action="store_true",
        help="Create the account disabled (active by default).",
    )
    parser.add_argument(
        "--update",
        action="store_true",
        help="If the user exists, replace its password, name and status.",
    )
    args = parser.parse_args(argv)
    if not args.name:
        args.name = args.email.split("@", 1)[0]
    return args


async def run(args: Namespace, password: str, settings: Optional[Settings] = None) -> str:
    settings = settings or Settings()
    engine = create_engine(settings.DATABASE_URL)
    try:
        await init_schema(engine)
        service = UserService(create_session_factory(engine))
        try:
            user = await service.create_user(
                args.name,
                args.email,
                password,
                is_active=not args.inactive,
            )
            return f"User '{user.email}' created."
        except UserAlreadyExistsError:
            if not args.update:
                return (
                    f"User '{args.email}' already exists; pass --update to replace "
                    "its password or status."
                )
            try:
                user = await service.update_user(
                    args.email,
                    name=args.name,
                    password=password,
                    is_active=not args.inactive,
                )
            except UserNotFoundError:
                return f"Could not find user '{args.email}' to update."
            return f"User '{user.email}' updated."
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    password = args.password
    if not password:
        password = getpass.getpass("Password: ").strip()
        if not password:
            raise SystemExit("A password is required.")

    print(asyncio.run(run(args, password)))


if __name__ == "__main__":
    main()
