"""Domain models shared by the group membership services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """Represents an identity stored in the membership database."""

    id: int
    name: str
    is_system_admin: bool
    created_at: datetime


@dataclass(frozen=True)
class Group:
    """A named collection of users. Names are unique and case-sensitive."""

    id: int
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Membership:
    """Binds one user to one group, optionally as a group admin."""

    group_id: int
    user_id: int
    is_group_admin: bool
    expiration_date: Optional[date]
    created_at: datetime

    def is_expired(self, today: date) -> bool:
        """Return ``True`` once ``today`` is past the expiration date."""

        if self.expiration_date is None:
            return False
        return self.expiration_date < today


__all__ = ["Group", "Membership", "User"]
