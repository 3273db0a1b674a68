"""Command-line entry point: run the server or manage users."""

import argparse
import asyncio
import logging
import sys

from marias import configure_logging
from marias.config import Config

logger = logging.getLogger(__name__)


async def _add_user(config: Config, args: argparse.Namespace) -> int:
    from marias.db import Repository, close_db, get_session, init_db
    from marias.seed import seed_defaults

    await init_db(config.database_url)
    try:
        await seed_defaults()
        async with get_session() as s:
            repo = Repository(s)
            if await repo.get_user_by_username(args.username) is not None:
                logger.error("User '%s' already exists", args.username)
                return 1
            if await repo.get_role_by_name(args.role) is None:
                logger.error("Role '%s' does not exist", args.role)
                return 1
            user = await repo.create_user(
                username=args.username,
                password=args.password,
                name=args.name or args.username,
                email=args.email,
                role=args.role,
            )
        print(f"Created user #{user.id} {user.username} ({user.role})")
        return 0
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marias",
        description="Marias Decorações business-management server",
    )
    parser.add_argument("--database-url", help="SQLAlchemy async database URL")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP/WebSocket server (default)")
    serve.add_argument("--host", help="Interface to bind")
    serve.add_argument("--port", type=int, help="Port to listen on")

    add = sub.add_parser("add-user", help="Create a user account")
    add.add_argument("username")
    add.add_argument("--password", required=True)
    add.add_argument("--email", required=True)
    add.add_argument("--name")
    add.add_argument("--role", default="Employee")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run the selected command."""
    args = build_parser().parse_args(argv)

    configure_logging()

    config = Config.from_args(
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        database_url=args.database_url,
    )

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error(err)
        sys.exit(1)

    if args.command == "add-user":
        sys.exit(asyncio.run(_add_user(config, args)))

    from marias.api.app import serve

    logger.info("Database: %s", config.database_url)
    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
