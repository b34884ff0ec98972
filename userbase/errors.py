"""Error types shared by the storage, service and HTTP layers."""

from __future__ import annotations


class UserbaseError(Exception):
    """Base class for failures reported back to API clients.

    ``message`` is always safe to show to a client; storage internals are
    only attached as the exception cause.
    """

    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(UserbaseError):
    """Input was rejected before any storage access."""

    default_message = "Invalid request body"


class DuplicateEmailError(UserbaseError):
    """The email address is already used by another user."""

    default_message = "Email already exists"


class UserNotFoundError(UserbaseError):
    default_message = "User not found"


class StorageError(UserbaseError):
    """Any other failure raised by the persistence layer."""


__all__ = [
    "DuplicateEmailError",
    "StorageError",
    "UserNotFoundError",
    "UserbaseError",
    "ValidationError",
]
