"""Command-line interface for the GroupHub membership service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from grouphub.config import ServiceConfig, load_service_config
from grouphub.database import Database

logger = logging.getLogger("grouphub.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GroupHub membership service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: GROUPHUB_CONFIG or config/grouphub.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the membership database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API")

    user_parser = subparsers.add_parser("create-user", help="Create a user and print an access token")
    user_parser.add_argument("name", help="Display name for the user")
    user_parser.add_argument(
        "--admin",
        action="store_true",
        help="Grant system administrator rights to the new user",
    )

    grant_parser = subparsers.add_parser("grant-admin", help="Change a user's system administrator flag")
    grant_parser.add_argument("user_id", type=int, help="Identifier of the user to update")
    grant_parser.add_argument(
        "--revoke",
        action="store_true",
        help="Remove system administrator rights instead of granting them",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "create-user", "grant-admin"}

    # Global options come before the subcommand; anything else defaults to "serve".
    index = 0
    while index < len(args_list):
        if args_list[index] == "--config":
            index += 2
        elif args_list[index].startswith("--config="):
            index += 1
        else:
            break
    remaining = args_list[index:]

    if not remaining:
        args_list = [*args_list[:index], "serve"]
    else:
        first = remaining[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in remaining for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = [*args_list[:index], "serve", *remaining]

    return parser.parse_args(args_list)


def _initialise_database(config: ServiceConfig) -> Database:
    database = Database(config.database_path)
    database.initialize()
    logger.info("Database initialised at %s", config.database_path)
    return database


def _serve(*, database: Database, config: ServiceConfig, host: str | None, port: int | None) -> None:
    from grouphub.api import create_app
    import uvicorn

    bind_host = host or config.host
    bind_port = port or config.port
    logger.info("Starting GroupHub API on http://%s:%s", bind_host, bind_port)

    app = create_app(database=database)
    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level=config.log_level.lower(),
    )


def _create_user(database: Database, name: str, *, admin: bool) -> int:
    try:
        user = database.create_user(name, is_system_admin=admin)
    except ValueError as exc:
        print(f"Failed to create user: {exc}", file=sys.stderr)
        return 1

    token = database.issue_access_token(user.id)
    role = "system administrator" if user.is_system_admin else "user"
    print(f"Created {role} #{user.id}: {user.name}")
    print(f"Access token (shown once): {token}")
    return 0


def _grant_admin(database: Database, user_id: int, *, revoke: bool) -> int:
    try:
        user = database.set_system_admin(user_id, not revoke)
    except ValueError as exc:
        print(f"Failed to update user {user_id}: {exc}", file=sys.stderr)
        return 1

    state = "now" if user.is_system_admin else "no longer"
    print(f"User #{user.id} ({user.name}) is {state} a system administrator.")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    config = load_service_config(Path(args.config) if args.config else None)

    logging.basicConfig(level=config.logging_level, format="%(asctime)s [%(levelname)s] %(message)s")

    database = _initialise_database(config)

    if args.command == "serve":
        _serve(database=database, config=config, host=args.host, port=args.port)
    elif args.command == "create-user":
        return _create_user(database, args.name, admin=args.admin)
    elif args.command == "grant-admin":
        return _grant_admin(database, args.user_id, revoke=args.revoke)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
