"""Authorization decisions for group administration."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .database import Database
from .models import Group, User


class AccessDecision(str, Enum):
    """Why an actor may (or may not) administer a group."""

    SYSTEM_ADMIN = "system_admin"
    GROUP_ADMIN = "group_admin"
    DENIED = "denied"

    @property
    def granted(self) -> bool:
        return self is not AccessDecision.DENIED


def evaluate_group_access(store: Database, actor: Optional[User], group: Group) -> AccessDecision:
    """Classify the actor's privilege over ``group``.

    System admins manage every group. Anyone else needs a membership in the
    group flagged as group admin.
    """

    if actor is None:
        return AccessDecision.DENIED
    if actor.is_system_admin:
        return AccessDecision.SYSTEM_ADMIN

    membership = store.get_membership(group.id, actor.id)
    if membership is not None and membership.is_group_admin:
        return AccessDecision.GROUP_ADMIN
    return AccessDecision.DENIED


def can_manage_group(store: Database, actor: Optional[User], group: Group) -> bool:
    return evaluate_group_access(store, actor, group).granted


def can_create_groups(actor: Optional[User]) -> bool:
    return actor is not None and actor.is_system_admin


__all__ = ["AccessDecision", "can_create_groups", "can_manage_group", "evaluate_group_access"]
