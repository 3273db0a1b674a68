"""Role-based permission checks."""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable

from marias.db import Repository, get_session

WILDCARD = "*"

# Resolves a role name to its permission list, or None if no such role
RoleLookup = Callable[[str], Awaitable["list[str] | None"]]

DEFAULT_ROLES: dict[str, list[str]] = {
    "Admin": [WILDCARD],
    "Manager": ["dashboard", "inventory", "team", "chat", "tasks", "feedback"],
    "Employee": ["dashboard", "inventory_view", "chat", "tasks"],
}


def grants(permissions: Iterable[str], required: str) -> bool:
    """Exact, case-sensitive membership; the wildcard grants everything."""
    perms = set(permissions)
    return WILDCARD in perms or required in perms


async def db_role_permissions(role_name: str) -> list[str] | None:
    """Look up a role's permissions in the database."""
    async with get_session() as s:
        repo = Repository(s)
        role = await repo.get_role_by_name(role_name)
        if role is None:
            return None
        return repo.role_permissions(role)


async def is_allowed(
    role_name: str,
    required: str,
    lookup: RoleLookup = db_role_permissions,
) -> bool:
    """Decide whether a role may use a capability. Unknown roles are denied."""
    permissions = await lookup(role_name)
    if permissions is None:
        return False
    return grants(permissions, required)
