import argparse
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userbase.database import Database, resolve_database_path
from userbase.errors import UserbaseError
from userbase.service import UserService


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a Userbase user record")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument("--age", type=int, default=None, help="Age in years")
    parser.add_argument("--gender", default=None, help="Free-form gender value")
    parser.add_argument("--bio", default=None, help="Short biography")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USERBASE_DB_PATH or database/database.db)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    db_env = args.db_path or os.getenv("USERBASE_DB_PATH")
    db_path = resolve_database_path(db_env)

    with Database(db_path) as database:
        database.initialize()
        service = UserService(database)
        try:
            user = service.create_user(
                args.name.strip(),
                args.email.strip(),
                age=args.age,
                gender=args.gender,
                bio=args.bio,
            )
        except UserbaseError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
