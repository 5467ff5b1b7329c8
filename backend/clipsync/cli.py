"""
ClipSync Backend — Maintenance CLI
===================================

Usage:
    clipsync-admin reset-password <username> [<new_password>]
    clipsync-admin cleanup [--days N]
    clipsync-admin init-db

The password is prompted for (without echo) when not given on the command
line. Each command opens its own Database from settings, runs in one
transaction, and disposes the engine before exiting.
"""

import argparse
import asyncio
import logging
import sys
from getpass import getpass
from typing import Optional, Sequence

from clipsync.config import settings
from clipsync.database import Database
from clipsync.exceptions import ClipSyncError
from clipsync.services.auth_service import auth_service
from clipsync.services.sync_service import sync_service

logger = logging.getLogger(__name__)


async def reset_password(database: Database, username: str, new_password: str) -> None:
    async with database.session() as session:
        async with session.begin():
            user = await auth_service.reset_password(session, username, new_password)
    print(f"Password for user '{user.username}' has been reset.")


async def cleanup(database: Database, days: int) -> int:
    async with database.session() as session:
        async with session.begin():
            removed = await sync_service.purge_older_than(session, days)
    print(f"Removed {removed} clipboard item(s) older than {days} day(s).")
    return removed


async def init_db(database: Database) -> None:
    await database.create_all()
    print("Database tables created.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipsync-admin",
        description="ClipSync server maintenance commands",
    )
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    commands = parser.add_subparsers(dest="cmd", required=True)

    reset = commands.add_parser("reset-password", help="Set a new password for a user")
    reset.add_argument("username")
    reset.add_argument("new_password", nargs="?", help="Prompted for when omitted")

    purge = commands.add_parser("cleanup", help="Delete old clipboard items")
    purge.add_argument(
        "--days",
        type=int,
        default=settings.cleanup_days,
        help=f"Delete items created more than N days ago (default {settings.cleanup_days})",
    )

    commands.add_parser("init-db", help="Create database tables")
    return parser


async def _run(args: argparse.Namespace) -> None:
    database = Database(args.database_url)
    try:
        if args.cmd == "reset-password":
            password = args.new_password or getpass("New password: ")
            await reset_password(database, args.username, password)
        elif args.cmd == "cleanup":
            await cleanup(database, args.days)
        elif args.cmd == "init-db":
            await init_db(database)
    finally:
        await database.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(_run(args))
    except ClipSyncError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
