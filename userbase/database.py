"""SQLite-backed persistence for user records."""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .errors import DuplicateEmailError, StorageError
from .models import GenderCount, User

logger = logging.getLogger("userbase.database")

MEMORY_DATABASE = ":memory:"

SAMPLE_USERS: Tuple[Tuple[str, str, Optional[int], Optional[str], Optional[str]], ...] = (
    ("John Doe", "john@example.com", 25, "Male", "Software Developer from New York"),
    ("Jane Smith", "jane@example.com", 30, "Female", "Data Scientist passionate about AI"),
    ("Bob Wilson", "bob@example.com", None, "Male", None),
    ("Alice Johnson", "alice@example.com", 28, "Female", "Loves hiking and photography"),
)

_SELECT_ORDERED = "SELECT * FROM users {where} ORDER BY created_at DESC, id DESC"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the user database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "database"
    return (base_dir / "database.db").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _is_duplicate_email(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed: users.email" in str(exc)


class Database:
    """Owner of the single SQLite connection shared by every request.

    The connection is opened once by :meth:`open` and released by
    :meth:`close`. Access is serialised with a lock so the handle can be used
    from FastAPI's worker threads. Storage failures surface as
    :class:`StorageError`, except email uniqueness violations which surface as
    :class:`DuplicateEmailError`.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = str(path)
        if self._path != MEMORY_DATABASE:
            _ensure_directory(Path(self._path))
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "Database":
        if self._conn is None:
            try:
                conn = sqlite3.connect(self._path, check_same_thread=False)
            except sqlite3.Error as exc:
                raise StorageError(f"Unable to open database: {exc}") from exc
            conn.row_factory = sqlite3.Row
            self._conn = conn
            logger.info("Connected to SQLite database at %s", self._path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Database connection closed")

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def initialize(self) -> None:
        """Open the connection and create the users table if needed."""

        self.open()
        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT UNIQUE NOT NULL,
                    age INTEGER,
                    gender TEXT,
                    bio TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);
                """
            )
        logger.info("Users table ready")

    def seed_sample_users(self) -> int:
        """Insert the sample users when the table is empty.

        Returns the number of rows inserted. A sample row that fails to insert
        is logged and skipped.
        """

        if self.count_users() > 0:
            return 0

        inserted = 0
        for name, email, age, gender, bio in SAMPLE_USERS:
            try:
                self.create_user(name, email, age=age, gender=gender, bio=bio)
            except (DuplicateEmailError, StorageError) as exc:
                logger.error("Error inserting sample user %s: %s", email, exc)
                continue
            inserted += 1
        logger.info("Sample data inserted (%d users)", inserted)
        return inserted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        with self._transaction() as conn:
            rows = conn.execute(_SELECT_ORDERED.format(where="")).fetchall()
        return [self._row_to_user(row) for row in rows]

    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def search_users(self, query: str) -> List[User]:
        pattern = f"%{query}%"
        sql = _SELECT_ORDERED.format(where="WHERE name LIKE ? OR email LIKE ? OR bio LIKE ?")
        with self._transaction() as conn:
            rows = conn.execute(sql, (pattern, pattern, pattern)).fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    def average_age(self) -> Optional[float]:
        """Mean of the non-null ages, or ``None`` when no user has an age."""

        with self._transaction() as conn:
            row = conn.execute(
                "SELECT AVG(age) AS avg_age FROM users WHERE age IS NOT NULL"
            ).fetchone()
        value = row["avg_age"]
        return float(value) if value is not None else None

    def gender_distribution(self) -> List[GenderCount]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT gender, COUNT(*) AS count FROM users GROUP BY gender"
            ).fetchall()
        return [GenderCount(gender=row["gender"], count=int(row["count"])) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create_user(
        self,
        name: str,
        email: str,
        *,
        age: Optional[int] = None,
        gender: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> User:
        created_at = _current_timestamp()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (name, email, age, gender, bio, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, email, age, gender, bio, _serialize_datetime(created_at)),
            )
            user_id = cursor.lastrowid

        return User(
            id=int(user_id),
            name=name,
            email=email,
            age=age,
            gender=gender,
            bio=bio,
            created_at=created_at,
        )

    def update_user(
        self,
        user_id: int,
        *,
        name: Optional[str],
        email: Optional[str],
        age: Optional[int],
        gender: Optional[str],
        bio: Optional[str],
    ) -> bool:
        """Overwrite every mutable column; ``False`` when no row matched."""

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE users
                   SET name = ?, email = ?, age = ?, gender = ?, bio = ?
                 WHERE id = ?
                """,
                (name, email, age, gender, bio, user_id),
            )
            return cursor.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise StorageError("Database connection is not open")
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.IntegrityError as exc:
                if _is_duplicate_email(exc):
                    raise DuplicateEmailError() from exc
                raise StorageError(str(exc)) from exc
            except (sqlite3.Error, OverflowError) as exc:
                raise StorageError(str(exc)) from exc

    def _row_to_user(self, row: sqlite3.Row) -> User:
        age = row["age"]
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            age=int(age) if age is not None else None,
            gender=row["gender"],
            bio=row["bio"],
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "MEMORY_DATABASE", "SAMPLE_USERS", "resolve_database_path"]
