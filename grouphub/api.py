"""FastAPI application exposing group and membership management endpoints."""
from __future__ import annotations

import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .database import Database, resolve_database_path
from .groups import GroupService
from .memberships import MembershipService
from .models import Group, Membership, User
from .outcomes import (
    GroupConflict,
    GroupCreated,
    GroupNotFound,
    GroupView,
    MemberAdded,
    MemberList,
    MemberRemoved,
    Unauthenticated,
    Unauthorized,
    UserInvalid,
    ValidationFailed,
    failure_message,
)
from .security import AccessTokenAuth

logger = logging.getLogger("grouphub.service")

GROUP_EXISTS_STATUS = "group already exist"

HTTP_422_UNPROCESSABLE = 422


class GroupResponse(BaseModel):
    id: int
    name: str


class GroupListResponse(BaseModel):
    groups: List[GroupResponse]


class MemberResponse(BaseModel):
    user_id: int
    is_group_admin: bool
    expiration_date: Optional[date]
    expired: bool


class GroupMembersResponse(BaseModel):
    id: int
    name: str
    members: List[MemberResponse]


class UserResponse(BaseModel):
    id: int
    name: str
    is_system_admin: bool
    created_at: datetime


def group_to_response(group: Group) -> GroupResponse:
    return GroupResponse(id=group.id, name=group.name)


def membership_to_response(membership: Membership, today: date) -> MemberResponse:
    return MemberResponse(
        user_id=membership.user_id,
        is_group_admin=membership.is_group_admin,
        expiration_date=membership.expiration_date,
        expired=membership.is_expired(today),
    )


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        is_system_admin=user.is_system_admin,
        created_at=user.created_at,
    )


def failure_to_exception(outcome: object) -> HTTPException:
    """Translate a failed service outcome into the matching HTTP error."""

    detail = failure_message(outcome)
    if isinstance(outcome, (Unauthenticated, Unauthorized)):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(outcome, GroupNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    if isinstance(outcome, (UserInvalid, ValidationFailed)):
        return HTTPException(status_code=HTTP_422_UNPROCESSABLE, detail=detail)
    raise TypeError(f"Unsupported outcome {outcome!r}")


def conflict_response(outcome: GroupConflict) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE,
        content={
            "status": GROUP_EXISTS_STATUS,
            "id": outcome.group.id,
            "name": outcome.group.name,
        },
    )


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _body_fields(payload: Any) -> Dict[str, Any]:
    """Return the JSON object sent by the client, or an empty mapping.

    Bodies are validated by the services after the caller is authenticated,
    so anything that is not an object is treated as carrying no fields.
    """

    return payload if isinstance(payload, dict) else {}


def _requested_group_name(body: Dict[str, Any]) -> Any:
    if body.get("name") is not None:
        return body["name"]
    nested = body.get("group")
    if isinstance(nested, dict):
        return nested.get("name")
    return None


def build_router(
    groups: GroupService,
    memberships: MembershipService,
    *,
    current_actor: AccessTokenAuth,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1")

    @router.post(
        "/groups",
        response_model=GroupResponse,
        responses={HTTP_422_UNPROCESSABLE: {"description": "A group with that name already exists"}},
    )
    def create_group(
        payload: Any = Body(default=None),
        actor: Optional[User] = Depends(current_actor),
    ):
        outcome = groups.create_group(actor, _requested_group_name(_body_fields(payload)))
        if isinstance(outcome, GroupConflict):
            return conflict_response(outcome)
        if not isinstance(outcome, GroupCreated):
            raise failure_to_exception(outcome)
        return group_to_response(outcome.group)

    @router.get("/groups", response_model=GroupListResponse)
    def list_groups(actor: Optional[User] = Depends(current_actor)) -> GroupListResponse:
        outcome = groups.list_groups(actor)
        if isinstance(outcome, Unauthenticated):
            raise failure_to_exception(outcome)
        return GroupListResponse(groups=[group_to_response(group) for group in outcome.groups])

    @router.get("/groups/{group_id}", response_model=GroupResponse)
    def read_group(group_id: str, actor: Optional[User] = Depends(current_actor)) -> GroupResponse:
        outcome = groups.get_group(actor, group_id)
        if not isinstance(outcome, GroupView):
            raise failure_to_exception(outcome)
        return group_to_response(outcome.group)

    @router.post("/groups/{group_id}/users", status_code=status.HTTP_204_NO_CONTENT)
    @router.post("/groups/{group_id}/add_user", status_code=status.HTTP_204_NO_CONTENT)
    def add_user(
        group_id: str,
        payload: Any = Body(default=None),
        actor: Optional[User] = Depends(current_actor),
    ) -> Response:
        body = _body_fields(payload)
        outcome = memberships.add_user_to_group(
            actor,
            group_id,
            body.get("user_id"),
            body.get("expiration_date"),
            is_group_admin=body.get("admin"),
        )
        if not isinstance(outcome, MemberAdded):
            raise failure_to_exception(outcome)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/groups/{group_id}/users", response_model=GroupMembersResponse)
    def list_members(group_id: str, actor: Optional[User] = Depends(current_actor)) -> GroupMembersResponse:
        outcome = memberships.list_members(actor, group_id)
        if not isinstance(outcome, MemberList):
            raise failure_to_exception(outcome)
        today = _today()
        return GroupMembersResponse(
            id=outcome.group.id,
            name=outcome.group.name,
            members=[membership_to_response(item, today) for item in outcome.memberships],
        )

    @router.delete("/groups/{group_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def remove_user(
        group_id: str,
        user_id: str,
        actor: Optional[User] = Depends(current_actor),
    ) -> Response:
        outcome = memberships.remove_user_from_group(actor, group_id, user_id)
        if not isinstance(outcome, MemberRemoved):
            raise failure_to_exception(outcome)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/users/me", response_model=UserResponse)
    def read_current_user(actor: Optional[User] = Depends(current_actor)) -> UserResponse:
        if actor is None:
            raise failure_to_exception(Unauthenticated())
        return user_to_response(actor)

    return router


def create_app(
    *,
    database: Database | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    """Instantiate the FastAPI application for group management."""

    if database is None:
        database = Database(resolve_database_path(os.getenv("GROUPHUB_DB_PATH")))
        database.initialize()
    elif initialize_database:
        database.initialize()

    group_service = GroupService(database)
    membership_service = MembershipService(database, group_service)

    app = FastAPI(
        title="GroupHub",
        description="Group membership management with delegated group administrators",
        version="1.0.0",
    )
    app.state.database = database
    app.state.groups = group_service
    app.state.memberships = membership_service

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    app.include_router(
        build_router(group_service, membership_service, current_actor=AccessTokenAuth(database))
    )
    logger.info("GroupHub API ready (database=%s)", database.path)
    return app


__all__ = ["GROUP_EXISTS_STATUS", "build_router", "create_app", "failure_to_exception"]
