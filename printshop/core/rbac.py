from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Set

MANAGER_ROLES = ("admin", "manager")


def _code(x: Any) -> str:
    """
    Normalize a role name safely.
    Supports:
      - Enum -> enum.value
      - str  -> str
      - object with .name -> str
    """
    if x is None:
        return ""

    if isinstance(x, Enum):
        return str(x.value)

    if isinstance(x, str):
        return x

    if hasattr(x, "name"):
        return str(getattr(x, "name"))

    return str(x)


def is_admin_user(user: Any) -> bool:
    if not user:
        return False
    if bool(getattr(user, "is_admin", False)):
        return True
    return "admin" in iter_user_roles(user)


def iter_user_roles(user: Any) -> Set[str]:
    out: Set[str] = set()
    if not user:
        return out

    for r in getattr(user, "roles", None) or []:
        c = _code(r).strip().lower()
        if c:
            out.add(c)
    return out


def has_role(user: Any, roles: Iterable[Any]) -> bool:
    """
    True if the user holds at least one of `roles`.
    Admins always pass.
    """
    if is_admin_user(user):
        return True

    wanted = {_code(r).strip().lower() for r in roles if _code(r).strip()}
    if not wanted:
        return False

    return bool(iter_user_roles(user).intersection(wanted))


class RoleLookup:
    """Actor/role lookup collaborator used by the workflows."""

    def has_role(self, user: Any, roles: Iterable[Any]) -> bool:
        return has_role(user, roles)
