"""Typed results returned by the group and membership services.

The services never raise for expected conditions such as a missing group or a
denied request. They return one of the outcome types below and leave it to
the HTTP layer to translate the outcome into a status code and body.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .models import Group, Membership


@dataclass(frozen=True)
class Unauthenticated:
    """No valid identity accompanied the request."""

    reason: str = "Invalid or missing access token"


@dataclass(frozen=True)
class Unauthorized:
    """The actor is known but lacks the privilege for the action."""

    actor_id: int
    reason: str = "Not allowed to manage this group"


@dataclass(frozen=True)
class GroupNotFound:
    group_id: object


@dataclass(frozen=True)
class UserInvalid:
    user_id: object


@dataclass(frozen=True)
class ValidationFailed:
    field: str
    message: str


@dataclass(frozen=True)
class GroupConflict:
    """A group with the requested name already exists."""

    group: Group


@dataclass(frozen=True)
class GroupCreated:
    group: Group


@dataclass(frozen=True)
class GroupView:
    group: Group


@dataclass(frozen=True)
class GroupListing:
    groups: Tuple[Group, ...] = ()


@dataclass(frozen=True)
class MemberAdded:
    membership: Membership


@dataclass(frozen=True)
class MemberRemoved:
    group_id: int
    user_id: int
    removed: bool


@dataclass(frozen=True)
class MemberList:
    group: Group
    memberships: List[Membership] = field(default_factory=list)


CreateGroupOutcome = Union[GroupCreated, GroupConflict, Unauthenticated, Unauthorized, ValidationFailed]
AddMemberOutcome = Union[MemberAdded, Unauthenticated, GroupNotFound, UserInvalid, Unauthorized, ValidationFailed]
RemoveMemberOutcome = Union[MemberRemoved, Unauthenticated, GroupNotFound, UserInvalid, Unauthorized]
ListMembersOutcome = Union[MemberList, Unauthenticated, GroupNotFound, Unauthorized]
GetGroupOutcome = Union[GroupView, Unauthenticated, GroupNotFound]
ListGroupsOutcome = Union[GroupListing, Unauthenticated]


def failure_message(outcome: Optional[object]) -> str:
    """Human readable description of a failure outcome."""

    if isinstance(outcome, Unauthenticated):
        return outcome.reason
    if isinstance(outcome, Unauthorized):
        return outcome.reason
    if isinstance(outcome, GroupNotFound):
        return "Group not found"
    if isinstance(outcome, UserInvalid):
        return "User not found"
    if isinstance(outcome, ValidationFailed):
        return outcome.message
    return "Unexpected outcome"


__all__ = [
    "AddMemberOutcome",
    "CreateGroupOutcome",
    "GetGroupOutcome",
    "GroupConflict",
    "GroupCreated",
    "GroupListing",
    "GroupNotFound",
    "GroupView",
    "ListGroupsOutcome",
    "ListMembersOutcome",
    "MemberAdded",
    "MemberList",
    "MemberRemoved",
    "RemoveMemberOutcome",
    "Unauthenticated",
    "Unauthorized",
    "UserInvalid",
    "ValidationFailed",
    "failure_message",
]
