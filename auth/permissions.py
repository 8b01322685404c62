"""
auth/permissions.py -- Roles, actions, and the role -> capability table.

The table below is the only place that decides what a role may do. Every
authorization check in the service (auth/dependencies.py) consults it; no
other module compares role strings ad hoc.

  admin  -> read, create, update, delete
  viewer -> read

Both enums subclass str so members compare equal to their stored values
("admin" == Role.ADMIN) and serialize to JSON without conversion.

Layer rule: stdlib only.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType


class Role(str, Enum):
    ADMIN = "admin"
    VIEWER = "viewer"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


ROLE_PERMISSIONS: MappingProxyType = MappingProxyType(
    {
        Role.ADMIN: frozenset({Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE}),
        Role.VIEWER: frozenset({Action.READ}),
    }
)


def parse_role(value: str) -> Role | None:
    """Return the Role for a stored role string, or None if it is not a known role."""
    try:
        return Role(value)
    except ValueError:
        return None


def has_permission(role: str, action: Action) -> bool:
    """Return True if role is allowed to perform action.

    Unknown roles have no permissions at all.
    """
    known = parse_role(role)
    if known is None:
        return False
    return action in ROLE_PERMISSIONS[known]
