"""Adding, removing and listing the members of a group."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from .authorization import evaluate_group_access
from .database import Database
from .groups import GroupService, parse_identifier
from .models import Group, User
from .outcomes import (
    AddMemberOutcome,
    GroupNotFound,
    ListMembersOutcome,
    MemberAdded,
    MemberList,
    MemberRemoved,
    RemoveMemberOutcome,
    Unauthenticated,
    Unauthorized,
    UserInvalid,
    ValidationFailed,
)

logger = logging.getLogger("grouphub.memberships")

def parse_expiration_date(value: object) -> Optional[date]:
    """Reduce ``value`` to a calendar date.

    Accepts ``YYYY-MM-DD`` strings, ISO timestamps (the time is dropped) and
    ``date``/``datetime`` instances. Blank strings mean "no expiration".
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Expiration date must be an ISO 8601 date string")

    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise ValueError(f"Invalid expiration date {value!r}; expected YYYY-MM-DD") from exc


class MembershipService:
    """Mutates group membership after existence and authorization checks.

    The checks always run in the same order: group, target user, then the
    actor's privilege over the group. Nothing is written unless all pass.
    """

    def __init__(self, store: Database, groups: GroupService | None = None) -> None:
        self._store = store
        self._groups = groups or GroupService(store)

    def add_user_to_group(
        self,
        actor: Optional[User],
        group_id: object,
        user_id: object,
        expiration_date: object = None,
        *,
        is_group_admin: object = None,
    ) -> AddMemberOutcome:
        checked = self._check(actor, group_id, user_id)
        if not isinstance(checked, tuple):
            return checked
        group, target = checked

        try:
            expires = parse_expiration_date(expiration_date)
        except ValueError as exc:
            return ValidationFailed(field="expiration_date", message=str(exc))
        if is_group_admin is not None and not isinstance(is_group_admin, bool):
            return ValidationFailed(field="admin", message="Admin flag must be true or false")

        membership = self._store.upsert_membership(
            group.id,
            target.id,
            expiration_date=expires,
            is_group_admin=is_group_admin,
        )
        logger.info(
            "User %s added user %s to group %s (admin=%s, expires=%s)",
            actor.id if actor else None,
            target.id,
            group.id,
            membership.is_group_admin,
            membership.expiration_date.isoformat() if membership.expiration_date else "never",
        )
        return MemberAdded(membership=membership)

    def remove_user_from_group(
        self,
        actor: Optional[User],
        group_id: object,
        user_id: object,
    ) -> RemoveMemberOutcome:
        checked = self._check(actor, group_id, user_id)
        if not isinstance(checked, tuple):
            return checked
        group, target = checked

        removed = self._store.delete_membership(group.id, target.id)
        if removed:
            logger.info("User %s removed user %s from group %s", actor.id if actor else None, target.id, group.id)
        return MemberRemoved(group_id=group.id, user_id=target.id, removed=removed)

    def list_members(self, actor: Optional[User], group_id: object) -> ListMembersOutcome:
        if actor is None:
            return Unauthenticated()
        group = self._groups.resolve_group(group_id)
        if group is None:
            return GroupNotFound(group_id=group_id)
        denied = self._authorize(actor, group)
        if denied is not None:
            return denied
        return MemberList(group=group, memberships=self._store.list_memberships(group.id))

    def _check(self, actor: Optional[User], group_id: object, user_id: object):
        if actor is None:
            return Unauthenticated()

        group = self._groups.resolve_group(group_id)
        if group is None:
            return GroupNotFound(group_id=group_id)

        target = self._resolve_user(user_id)
        if target is None:
            return UserInvalid(user_id=user_id)

        denied = self._authorize(actor, group)
        if denied is not None:
            return denied
        return group, target

    def _authorize(self, actor: User, group: Group) -> Optional[Unauthorized]:
        decision = evaluate_group_access(self._store, actor, group)
        if decision.granted:
            return None
        logger.warning("User %s is not allowed to manage group %s", actor.id, group.id)
        return Unauthorized(actor_id=actor.id)

    def _resolve_user(self, user_id: object) -> Optional[User]:
        identifier = parse_identifier(user_id)
        if identifier is None:
            return None
        return self._store.get_user(identifier)


__all__ = ["MembershipService", "parse_expiration_date"]
