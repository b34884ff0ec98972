"""Record operations over the user directory."""

from __future__ import annotations

import logging
import math
import re
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .database import Database
from .errors import StorageError, UserNotFoundError, ValidationError
from .models import User, UserStatistics

logger = logging.getLogger("userbase.service")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USER_ID_PATTERN = re.compile(r"-?[0-9]+")

SQLITE_INTEGER_MIN = -(2**63)
SQLITE_INTEGER_MAX = 2**63 - 1


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _parse_user_id(user_id: int | str) -> Optional[int]:
    """Return the integer id, or ``None`` when no stored row could match it."""

    if isinstance(user_id, int):
        parsed = user_id
    elif USER_ID_PATTERN.fullmatch(str(user_id)):
        parsed = int(str(user_id))
    else:
        return None
    if not SQLITE_INTEGER_MIN <= parsed <= SQLITE_INTEGER_MAX:
        return None
    return parsed


@contextmanager
def _storage_failure(message: str) -> Iterator[None]:
    """Replace storage details with a client-safe message, logging the cause."""

    try:
        yield
    except StorageError as exc:
        logger.error("Database error: %s", exc)
        raise StorageError(message) from exc


class UserService:
    """Validates input and maps storage outcomes onto the error taxonomy.

    Every method is an independent unit of work against the injected
    :class:`Database`; nothing is cached between calls.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    @property
    def database(self) -> Database:
        return self._database

    def list_users(self) -> List[User]:
        with _storage_failure("Failed to fetch users"):
            return self._database.list_users()

    def get_user(self, user_id: int | str) -> User:
        parsed = _parse_user_id(user_id)
        if parsed is None:
            raise UserNotFoundError()
        with _storage_failure("Failed to fetch user"):
            user = self._database.get_user(parsed)
        if user is None:
            raise UserNotFoundError()
        return user

    def create_user(
        self,
        name: Optional[str],
        email: Optional[str],
        *,
        age: Optional[int] = None,
        gender: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> User:
        if not name or not email:
            raise ValidationError("Name and email are required")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")

        with _storage_failure("Failed to create user"):
            user = self._database.create_user(name, email, age=age, gender=gender, bio=bio)
        logger.info("Created user #%d <%s>", user.id, user.email)
        return user

    def update_user(
        self,
        user_id: int | str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        age: Optional[int] = None,
        gender: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> int:
        """Overwrite all mutable fields of a user and return its id.

        Unlike :meth:`create_user` no validation happens here; whatever is
        supplied is written, missing values as NULL.
        """

        parsed = _parse_user_id(user_id)
        if parsed is None:
            raise UserNotFoundError()
        with _storage_failure("Failed to update user"):
            updated = self._database.update_user(
                parsed,
                name=name,
                email=email,
                age=age,
                gender=gender,
                bio=bio,
            )
        if not updated:
            raise UserNotFoundError()
        return parsed

    def delete_user(self, user_id: int | str) -> None:
        parsed = _parse_user_id(user_id)
        if parsed is None:
            raise UserNotFoundError()
        with _storage_failure("Failed to delete user"):
            deleted = self._database.delete_user(parsed)
        if not deleted:
            raise UserNotFoundError()
        logger.info("Deleted user #%d", parsed)

    def search_users(self, query: str) -> List[User]:
        with _storage_failure("Search failed"):
            return self._database.search_users(query)

    def get_statistics(self) -> UserStatistics:
        """Compose the count, average age and gender breakdown.

        The three reads run one after another without a transaction around
        them, so a concurrent write may show up in some figures but not others.
        """

        with _storage_failure("Failed to fetch statistics"):
            total = self._database.count_users()
            average = self._database.average_age()
            distribution = self._database.gender_distribution()

        return UserStatistics(
            total_users=total,
            average_age=round_half_up(average) if average is not None else 0,
            gender_distribution=distribution,
        )


__all__ = ["EMAIL_PATTERN", "UserService", "is_valid_email", "round_half_up"]
