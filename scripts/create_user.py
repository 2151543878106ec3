import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grouphub.database import Database, resolve_database_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a GroupHub user and issue an access token")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Grant system administrator rights (required to create groups)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to GROUPHUB_DB_PATH or data/grouphub.sqlite3)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    db_env = args.db_path or os.getenv("GROUPHUB_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(args.name, is_system_admin=args.admin)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    token = database.issue_access_token(user.id)
    print(f"Created user #{user.id}: {user.name}{' (system administrator)' if user.is_system_admin else ''}")
    print(f"Access token: {token}")
    print("Store the token now; only its digest is kept in the database.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
