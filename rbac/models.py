"""
rbac/models.py -- Domain dataclasses for the RBAC graph.

Pattern: Data class (pure data container, zero logic). The store maps rows
into these; the graph manager and user directory do the work.

The graph is bipartite: Role <-> Permission through RolePermission edges,
plus a many-to-one reference from User to Role.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Permission:
    """A named capability. `name` is the string the access guard checks.

    resource / action are free-form classification tags ("users", "manage")
    used for display and grouping only -- the guard never reads them.
    """

    name: str
    id: Optional[str] = None
    description: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Role:
    """A named authorization group.

    permissions and user_count are populated by the read paths that need them
    (role detail, role listing); a bare get_role() leaves them at defaults.
    """

    name: str
    id: Optional[str] = None
    description: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    permissions: list[Permission] = field(default_factory=list)
    user_count: int = 0


@dataclass
class RolePermission:
    """One edge of the role/permission graph. (role_id, permission_id) is unique."""

    role_id: str
    permission_id: str
    created_at: str = ""


@dataclass
class User:
    """An identity record.

    password_hash is bcrypt output and never leaves the server: response
    models in api/models.py do not have a field for it.
    """

    email: str
    name: str
    role_id: str
    password_hash: str
    id: Optional[str] = None
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""
    last_login: Optional[str] = None
