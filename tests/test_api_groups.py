"""End-to-end tests for the group management HTTP API."""

from __future__ import annotations

from datetime import date
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from grouphub.api import create_app
from grouphub.database import Database
from grouphub.models import Group, User


def _auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_token(database: Database, admin: User) -> str:
    return database.issue_access_token(admin.id)


@pytest.fixture()
def user_token(database: Database, member: User) -> str:
    return database.issue_access_token(member.id)


@pytest.fixture()
def client(database: Database):
    with TestClient(create_app(database=database)) as test_client:
        yield test_client


@pytest.fixture()
def group(database: Database) -> Group:
    return database.insert_group("existing")


@pytest.fixture()
def new_user(database: Database) -> User:
    return database.create_user("New User")


def test_admin_creates_group(client: TestClient, database: Database, admin_token: str) -> None:
    response = client.post("/api/v1/groups", headers=_auth(admin_token), json={"group": {"name": "jumbo"}})

    assert response.status_code == 200, response.text
    group = database.get_group_by_name("jumbo")
    assert group is not None
    assert response.json() == {"id": group.id, "name": "jumbo"}


def test_existing_group_returns_its_id(client: TestClient, database: Database, admin_token: str) -> None:
    existing = database.insert_group("jumbo")

    response = client.post("/api/v1/groups", headers=_auth(admin_token), json={"name": "jumbo"})

    assert response.status_code == 422
    assert response.json() == {"status": "group already exist", "id": existing.id, "name": "jumbo"}


def test_second_identical_create_reports_conflict(client: TestClient, admin_token: str) -> None:
    first = client.post("/api/v1/groups", headers=_auth(admin_token), json={"name": "jumbo"})
    second = client.post("/api/v1/groups", headers=_auth(admin_token), json={"name": "jumbo"})

    assert first.status_code == 200
    assert second.status_code == 422
    assert second.json()["id"] == first.json()["id"]


def test_invalid_token_cannot_create_group(client: TestClient, database: Database) -> None:
    response = client.post("/api/v1/groups", params={"access_token": "foo"}, json={"name": "jumbo"})

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert database.get_group_by_name("jumbo") is None


def test_missing_body_without_token_is_unauthenticated(client: TestClient) -> None:
    assert client.post("/api/v1/groups").status_code == 401


def test_invalid_token_with_mistyped_name_is_unauthenticated(client: TestClient, database: Database) -> None:
    response = client.post("/api/v1/groups", params={"access_token": "foo"}, json={"name": 5})

    assert response.status_code == 401
    assert database.list_groups() == []


def test_invalid_token_with_form_body_is_unauthenticated(client: TestClient, database: Database) -> None:
    response = client.post("/api/v1/groups", params={"access_token": "foo"}, data={"group[name]": "jumbo"})

    assert response.status_code == 401
    assert database.get_group_by_name("jumbo") is None


def test_non_admin_cannot_create_group(client: TestClient, database: Database, user_token: str) -> None:
    response = client.post("/api/v1/groups", headers=_auth(user_token), json={"name": "jumbo"})

    assert response.status_code == 401
    assert database.get_group_by_name("jumbo") is None


def test_blank_group_name_is_unprocessable(client: TestClient, admin_token: str) -> None:
    response = client.post("/api/v1/groups", headers=_auth(admin_token), json={"name": "  "})

    assert response.status_code == 422
    assert "detail" in response.json()


def test_add_user_to_unknown_group(client: TestClient, admin_token: str, new_user: User) -> None:
    response = client.post(
        "/api/v1/groups/666/add_user",
        headers=_auth(admin_token),
        json={"user_id": new_user.id},
    )

    assert response.status_code == 404


def test_add_user_to_out_of_range_group(client: TestClient, admin_token: str, new_user: User) -> None:
    response = client.post(
        "/api/v1/groups/9999999999999999999999999/users",
        headers=_auth(admin_token),
        json={"user_id": new_user.id},
    )

    assert response.status_code == 404


def test_add_unknown_user(client: TestClient, admin_token: str, group: Group) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(admin_token),
        json={"user_id": "rand"},
    )

    assert response.status_code == 422


def test_admin_adds_user(
    client: TestClient, database: Database, admin_token: str, group: Group, new_user: User
) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/add_user",
        headers=_auth(admin_token),
        json={"user_id": new_user.id},
    )

    assert response.status_code == 204
    assert response.content == b""
    assert [item.user_id for item in database.list_memberships(group.id)] == [new_user.id]


def test_admin_sets_expiration_date(
    client: TestClient, database: Database, admin_token: str, group: Group, new_user: User
) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(admin_token),
        json={"user_id": new_user.id, "expiration_date": "2019-10-10"},
    )

    assert response.status_code == 204
    membership = database.get_membership(group.id, new_user.id)
    assert membership is not None
    assert membership.expiration_date == date(2019, 10, 10)


def test_non_admin_cannot_add_user(
    client: TestClient, database: Database, user_token: str, group: Group, new_user: User
) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(user_token),
        json={"user_id": new_user.id},
    )

    assert response.status_code == 401
    assert database.list_memberships(group.id) == []


def test_group_admin_adds_user(
    client: TestClient,
    database: Database,
    member: User,
    user_token: str,
    group: Group,
    new_user: User,
) -> None:
    database.upsert_membership(group.id, member.id, expiration_date=None, is_group_admin=True)

    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(user_token),
        json={"user_id": new_user.id},
    )

    assert response.status_code == 204
    assert {item.user_id for item in database.list_memberships(group.id)} == {member.id, new_user.id}


def test_unauthenticated_add_user(client: TestClient, database: Database, group: Group, new_user: User) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        params={"access_token": "foo"},
        json={"user_id": new_user.id},
    )

    assert response.status_code == 401
    assert database.list_memberships(group.id) == []


def test_invalid_token_with_mistyped_user_id_is_unauthenticated(
    client: TestClient, database: Database, group: Group
) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        params={"access_token": "foo"},
        json={"user_id": [1]},
    )

    assert response.status_code == 401
    assert database.list_memberships(group.id) == []


def test_invalid_expiration_date_is_unprocessable(
    client: TestClient, admin_token: str, group: Group, new_user: User
) -> None:
    response = client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(admin_token),
        json={"user_id": new_user.id, "expiration_date": "next tuesday"},
    )

    assert response.status_code == 422


def test_mistyped_fields_are_unprocessable_for_admins(
    client: TestClient, database: Database, admin_token: str, group: Group, new_user: User
) -> None:
    name = client.post("/api/v1/groups", headers=_auth(admin_token), json={"name": 5})
    flag = client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(admin_token),
        json={"user_id": new_user.id, "admin": "yes"},
    )

    assert name.status_code == 422
    assert flag.status_code == 422
    assert database.list_memberships(group.id) == []


def test_list_and_remove_members(
    client: TestClient, admin_token: str, group: Group, new_user: User
) -> None:
    client.post(
        f"/api/v1/groups/{group.id}/users",
        headers=_auth(admin_token),
        json={"user_id": new_user.id, "expiration_date": "2019-10-10", "admin": True},
    )

    listing = client.get(f"/api/v1/groups/{group.id}/users", headers=_auth(admin_token))
    assert listing.status_code == 200, listing.text
    assert listing.json() == {
        "id": group.id,
        "name": group.name,
        "members": [
            {
                "user_id": new_user.id,
                "is_group_admin": True,
                "expiration_date": "2019-10-10",
                "expired": True,
            }
        ],
    }

    removed = client.delete(f"/api/v1/groups/{group.id}/users/{new_user.id}", headers=_auth(admin_token))
    assert removed.status_code == 204

    after = client.get(f"/api/v1/groups/{group.id}/users", headers=_auth(admin_token))
    assert after.json()["members"] == []


def test_group_queries(client: TestClient, user_token: str, group: Group) -> None:
    listing = client.get("/api/v1/groups", headers=_auth(user_token))
    assert listing.status_code == 200
    assert listing.json() == {"groups": [{"id": group.id, "name": group.name}]}

    assert client.get(f"/api/v1/groups/{group.id}", headers=_auth(user_token)).json()["name"] == group.name
    assert client.get("/api/v1/groups/666", headers=_auth(user_token)).status_code == 404
    assert client.get("/api/v1/groups").status_code == 401


def test_current_user_and_health(client: TestClient, member: User, user_token: str) -> None:
    me = client.get("/api/v1/users/me", params={"access_token": user_token})
    assert me.status_code == 200
    assert me.json()["id"] == member.id
    assert me.json()["is_system_admin"] is False

    assert client.get("/api/v1/users/me").status_code == 401
    assert client.get("/health").json() == {"status": "ok"}
