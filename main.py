"""Command-line interface for the Userbase record service."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Sequence

try:
    import httpx
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Run `pip install -e .` to install dependencies."
    ) from exc

from userbase.config import Settings, load_settings
from userbase.database import Database
from userbase.errors import UserbaseError

logger = logging.getLogger("userbase.main")

_DEFAULT_SERVICE_HOST = "http://localhost"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Userbase record service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the users table and seed sample data")
    subparsers.add_parser("list-users", help="Print every stored user, newest first")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Bind address for the API (default: USERBASE_HOST or 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API (default: PORT or 3000)",
    )

    stats_parser = subparsers.add_parser(
        "stats", help="Fetch statistics from a running service"
    )
    stats_parser.add_argument(
        "--service-url",
        default=None,
        help="Base URL of a running service (default: http://localhost:<port>)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users", "stats"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    try:
        database = Database(settings.database_path)
    except OSError as exc:
        raise SystemExit(f"Failed to prepare database directory for {settings.database_path}: {exc}") from exc
    try:
        database.initialize()
        if settings.seed_sample_data:
            database.seed_sample_users()
    except UserbaseError as exc:
        database.close()
        raise SystemExit(f"Failed to open database at {settings.database_path}: {exc}") from exc
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, host: str, port: int) -> None:
    from userbase.api import create_app
    import uvicorn

    logger.info("Server running at http://%s:%s", host, port)
    logger.info("Visit http://%s:%s/api/users to see all users", host, port)

    app = create_app(database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently stored.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Age':>3}  {'Gender':<8}  Created")
    print("-" * 96)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        age = str(user.age) if user.age is not None else "-"
        gender = user.gender or "-"
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {age:>3}  {gender:<8}  {created}")


def _show_stats(service_url: str) -> int:
    endpoint = service_url.rstrip("/") + "/api/stats"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact the service: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    print(f"Total users:  {payload.get('totalUsers', 0)}")
    print(f"Average age:  {payload.get('averageAge', 0)}")
    print("Gender distribution:")
    for entry in payload.get("genderDistribution", []):
        gender = entry.get("gender") or "<unspecified>"
        print(f"  {gender:<16} {entry.get('count', 0)}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "stats":
        service_url = args.service_url or f"{_DEFAULT_SERVICE_HOST}:{settings.port}"
        raise SystemExit(_show_stats(service_url))

    database = _initialise_database(settings)
    try:
        if args.command == "serve":
            _serve(
                database=database,
                host=args.host or settings.host,
                port=args.port or settings.port,
            )
        elif args.command == "list-users":
            _list_users(database)
        elif args.command == "init-db":
            print("Database initialisation complete.")
    finally:
        database.close()


if __name__ == "__main__":
    main()
