"""SQLite-backed persistence for users, groups and memberships."""
from __future__ import annotations

import hashlib
import logging
import secrets
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional

from .models import Group, Membership, User

logger = logging.getLogger("grouphub.database")

_TOKEN_PREFIX = "ghk_"


class StoreError(Exception):
    """Base class for conditions the store can classify."""


class GroupNameTaken(StoreError):
    """Raised when inserting a group whose name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"A group named {name!r} already exists")
        self.name = name


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "grouphub.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _serialize_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    # datetime is a subclass of date; never persist a time component.
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    return date.fromisoformat(value)


def _generate_access_token() -> str:
    return _TOKEN_PREFIX + secrets.token_urlsafe(32)


def _hash_access_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class Database:
    """Simple wrapper around SQLite for persisting users, groups and memberships."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    is_system_admin INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS access_tokens (
                    token_hash TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS groups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS memberships (
                    group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    is_group_admin INTEGER NOT NULL DEFAULT 0,
                    expiration_date TEXT,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (group_id, user_id)
                );

                CREATE INDEX IF NOT EXISTS idx_access_tokens_user_id ON access_tokens(user_id);
                CREATE INDEX IF NOT EXISTS idx_memberships_user_id ON memberships(user_id);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, name: str, *, is_system_admin: bool = False) -> User:
        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("Name must not be empty")

        created_at = _current_timestamp()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO users (name, is_system_admin, created_at) VALUES (?, ?, ?)",
                (normalized_name, int(bool(is_system_admin)), _serialize_datetime(created_at)),
            )
            user_id = cursor.lastrowid

        return User(
            id=int(user_id),
            name=normalized_name,
            is_system_admin=bool(is_system_admin),
            created_at=created_at,
        )

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def set_system_admin(self, user_id: int, is_system_admin: bool) -> User:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET is_system_admin = ? WHERE id = ?",
                (int(bool(is_system_admin)), user_id),
            )
            if cursor.rowcount == 0:
                raise ValueError("User not found")

        refreshed = self.get_user(user_id)
        if refreshed is None:
            raise ValueError("User not found")
        return refreshed

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------
    def issue_access_token(self, user_id: int) -> str:
        """Store a new opaque token for ``user_id`` and return its plaintext."""

        if self.get_user(user_id) is None:
            raise ValueError("User not found")

        token = _generate_access_token()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO access_tokens (token_hash, user_id, created_at) VALUES (?, ?, ?)",
                (_hash_access_token(token), user_id, _serialize_datetime(_current_timestamp())),
            )
        return token

    def get_user_by_access_token(self, token: str) -> Optional[User]:
        if not token:
            return None

        token_hash = _hash_access_token(token)
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT users.*
                  FROM access_tokens
                  JOIN users ON users.id = access_tokens.user_id
                 WHERE access_tokens.token_hash = ?
                """,
                (token_hash,),
            ).fetchone()

        if row is None:
            return None
        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def insert_group(self, name: str) -> Group:
        """Persist a new group, raising :class:`GroupNameTaken` on a duplicate name."""

        created_at = _current_timestamp()
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO groups (name, created_at) VALUES (?, ?)",
                    (name, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                logger.debug("Rejected duplicate group name %r", name)
                raise GroupNameTaken(name) from exc
            group_id = cursor.lastrowid

        return Group(id=int(group_id), name=name, created_at=created_at)

    def get_group(self, group_id: int) -> Optional[Group]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_group(row)

    def get_group_by_name(self, name: str) -> Optional[Group]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM groups WHERE name = ?", (name,)).fetchone()
        if row is None:
            return None
        return self._row_to_group(row)

    def list_groups(self) -> List[Group]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM groups ORDER BY name").fetchall()
        return [self._row_to_group(row) for row in rows]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------
    def upsert_membership(
        self,
        group_id: int,
        user_id: int,
        *,
        expiration_date: Optional[date],
        is_group_admin: Optional[bool] = None,
    ) -> Membership:
        """Create or update the single membership row for ``(group_id, user_id)``.

        ``expiration_date`` always overwrites the stored value. ``is_group_admin``
        only changes the stored flag when it is not ``None``.
        """

        admin_value: Optional[int] = None if is_group_admin is None else int(bool(is_group_admin))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO memberships (group_id, user_id, is_group_admin, expiration_date, created_at)
                VALUES (?, ?, COALESCE(?, 0), ?, ?)
                ON CONFLICT (group_id, user_id) DO UPDATE SET
                    expiration_date = excluded.expiration_date,
                    is_group_admin = COALESCE(?, memberships.is_group_admin)
                """,
                (
                    group_id,
                    user_id,
                    admin_value,
                    _serialize_date(expiration_date),
                    _serialize_datetime(_current_timestamp()),
                    admin_value,
                ),
            )

        membership = self.get_membership(group_id, user_id)
        if membership is None:
            raise RuntimeError("Failed to load membership after upsert")
        return membership

    def get_membership(self, group_id: int, user_id: int) -> Optional[Membership]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM memberships WHERE group_id = ? AND user_id = ?",
                (group_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_membership(row)

    def list_memberships(self, group_id: int) -> List[Membership]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM memberships WHERE group_id = ? ORDER BY user_id",
                (group_id,),
            ).fetchall()
        return [self._row_to_membership(row) for row in rows]

    def delete_membership(self, group_id: int, user_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM memberships WHERE group_id = ? AND user_id = ?",
                (group_id, user_id),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            is_system_admin=bool(row["is_system_admin"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_group(self, row: sqlite3.Row) -> Group:
        return Group(
            id=int(row["id"]),
            name=str(row["name"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_membership(self, row: sqlite3.Row) -> Membership:
        return Membership(
            group_id=int(row["group_id"]),
            user_id=int(row["user_id"]),
            is_group_admin=bool(row["is_group_admin"]),
            expiration_date=_parse_date(row["expiration_date"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "GroupNameTaken", "StoreError", "resolve_database_path"]
