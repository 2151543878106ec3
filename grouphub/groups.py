"""Group creation and lookup."""

from __future__ import annotations

import logging
from typing import Optional

from .authorization import can_create_groups
from .database import Database, GroupNameTaken
from .models import Group, User
from .outcomes import (
    CreateGroupOutcome,
    GetGroupOutcome,
    GroupConflict,
    GroupCreated,
    GroupListing,
    GroupNotFound,
    GroupView,
    ListGroupsOutcome,
    Unauthenticated,
    Unauthorized,
    ValidationFailed,
)

logger = logging.getLogger("grouphub.groups")

_MAX_GROUP_NAME_LENGTH = 255
_MAX_IDENTIFIER = 2**63 - 1


def parse_identifier(value: object) -> Optional[int]:
    """Interpret a path or body identifier, returning ``None`` when it is not an id."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        identifier = value
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            return None
        identifier = int(text)
    else:
        return None
    # SQLite INTEGER is a signed 64-bit value.
    if not 0 <= identifier <= _MAX_IDENTIFIER:
        return None
    return identifier


def _normalise_name(name: object) -> str:
    if name is None:
        raise ValueError("Group name must not be empty")
    if not isinstance(name, str):
        raise ValueError("Group name must be a string")
    value = name.strip()
    if not value:
        raise ValueError("Group name must not be empty")
    if len(value) > _MAX_GROUP_NAME_LENGTH:
        raise ValueError("Group name must be 255 characters or fewer")
    return value


class GroupService:
    """Creates groups and resolves name collisions against the store."""

    def __init__(self, store: Database) -> None:
        self._store = store

    def create_group(self, actor: Optional[User], name: object) -> CreateGroupOutcome:
        if actor is None:
            return Unauthenticated()
        if not can_create_groups(actor):
            logger.warning("User %s attempted to create a group without admin rights", actor.id)
            return Unauthorized(actor_id=actor.id, reason="Only system administrators may create groups")

        try:
            normalised = _normalise_name(name)
        except ValueError as exc:
            return ValidationFailed(field="name", message=str(exc))

        existing = self._store.get_group_by_name(normalised)
        if existing is not None:
            return self._conflict(actor, existing)

        try:
            group = self._store.insert_group(normalised)
        except GroupNameTaken:
            # Lost a race with a concurrent insert; report the winner.
            winner = self._store.get_group_by_name(normalised)
            if winner is None:
                raise
            return self._conflict(actor, winner)

        logger.info("User %s created group %s (%s)", actor.id, group.id, group.name)
        return GroupCreated(group=group)

    def get_group(self, actor: Optional[User], group_id: object) -> GetGroupOutcome:
        if actor is None:
            return Unauthenticated()
        group = self.resolve_group(group_id)
        if group is None:
            return GroupNotFound(group_id=group_id)
        return GroupView(group=group)

    def list_groups(self, actor: Optional[User]) -> ListGroupsOutcome:
        if actor is None:
            return Unauthenticated()
        return GroupListing(groups=tuple(self._store.list_groups()))

    def resolve_group(self, group_id: object) -> Optional[Group]:
        identifier = parse_identifier(group_id)
        if identifier is None:
            return None
        return self._store.get_group(identifier)

    def _conflict(self, actor: User, group: Group) -> GroupConflict:
        logger.warning(
            "User %s tried to create group %r which already exists as %s",
            actor.id,
            group.name,
            group.id,
        )
        return GroupConflict(group=group)


__all__ = ["GroupService", "parse_identifier"]
