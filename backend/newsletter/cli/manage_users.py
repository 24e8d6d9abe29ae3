#!/usr/bin/env python3
"""CLI tool for managing newsletter publishers.

Usage:
    python -m newsletter.cli.manage_users create-user <username>
    python -m newsletter.cli.manage_users change-password <username>

Publishers are the only accounts in the system; any of them may send an issue
through ``POST /newsletters``. The password is read from the
NEWSLETTER_ADMIN_PASSWORD environment variable when set, otherwise prompted
for twice without echo.
"""
import argparse
import asyncio
import getpass
import logging
import os
import sys

from pydantic import SecretStr

from newsletter.config import get_settings
from newsletter.database import create_engine_for_database, create_session_maker, init_db
from newsletter.errors import NewsletterError
from newsletter.services.credential_store import CredentialStore
from newsletter.services.hashing_pool import HashingPool
from newsletter.services.password_service import change_password, compute_password_hash

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "NEWSLETTER_ADMIN_PASSWORD"
MIN_PASSWORD_LENGTH = 12


def read_password() -> SecretStr:
    """Get the password from env or prompt user."""
    value = os.environ.get(PASSWORD_ENV_VAR, "")
    if value:
        print(f"Password: [from {PASSWORD_ENV_VAR}]")
    else:
        value = getpass.getpass("Password: ")
        if getpass.getpass("Repeat password: ") != value:
            raise SystemExit("Error: passwords do not match")
    if len(value) < MIN_PASSWORD_LENGTH:
        raise SystemExit(f"Error: password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return SecretStr(value)


async def create_user(store: CredentialStore, pool: HashingPool, username: str, password: SecretStr) -> None:
    if await store.find_user_by_username(username) is not None:
        raise SystemExit(f"Error: user {username!r} already exists")
    password_hash = await pool.run(compute_password_hash, password)
    user_id = await store.insert_user(username, password_hash)
    print(f"Created user {username} ({user_id})")


async def reset_password(store: CredentialStore, pool: HashingPool, username: str, password: SecretStr) -> None:
    stored = await store.find_user_by_username(username)
    if stored is None:
        raise SystemExit(f"Error: no user named {username!r}")
    await change_password(stored.user_id, password, store, pool)
    print(f"Password changed for {username}")


COMMANDS = {
    "create-user": create_user,
    "change-password": reset_password,
}


async def run(command: str, username: str, password: SecretStr) -> None:
    settings = get_settings()
    engine = create_engine_for_database(settings)
    pool = HashingPool(workers=1)
    try:
        await init_db(engine)
        store = CredentialStore(create_session_maker(engine))
        await COMMANDS[command](store, pool, username, password)
    finally:
        pool.shutdown()
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage newsletter publishers")
    parser.add_argument("command", choices=sorted(COMMANDS))
    parser.add_argument("username")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING)
    args = build_parser().parse_args(argv)
    password = read_password()
    try:
        asyncio.run(run(args.command, args.username, password))
    except NewsletterError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
