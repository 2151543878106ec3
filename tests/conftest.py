from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grouphub.database import Database
from grouphub.models import User


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "grouphub.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def admin(database: Database) -> User:
    return database.create_user("Admin", is_system_admin=True)


@pytest.fixture()
def member(database: Database) -> User:
    return database.create_user("Regular User")
