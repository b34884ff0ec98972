"""Domain models for the user directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class User:
    """Represents a user record stored in the directory database."""

    id: int
    name: str
    email: str
    age: Optional[int]
    gender: Optional[str]
    bio: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class GenderCount:
    gender: Optional[str]
    count: int


@dataclass(frozen=True)
class UserStatistics:
    """Aggregate figures computed over every stored user."""

    total_users: int
    average_age: int
    gender_distribution: List[GenderCount] = field(default_factory=list)


__all__ = ["GenderCount", "User", "UserStatistics"]
