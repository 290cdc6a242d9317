"""
rbac/seed.py -- Default permissions, roles and superadmin account.

Idempotent: every step looks the record up by its unique name/email first and
only creates what is missing, and edge assignment is idempotent.
Running the seed twice leaves the database exactly as running it once.

Defaults:
  permissions  manage_users, view_users, manage_roles, view_energy
  superadmin   every default permission
  admin        view_users, view_energy
  user         view_energy
  account      superadmin@example.com / superadmin123 (role superadmin)

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rbac.graph import RoleGraphManager
from rbac.store import RbacStore
from rbac.users import UserManager

logger = logging.getLogger("gridgate.rbac.seed")

DEFAULT_PERMISSIONS: list[dict] = [
    {"name": "manage_users", "description": "Create, update, delete users", "resource": "users", "action": "manage"},
    {"name": "view_users", "description": "View user list and details", "resource": "users", "action": "read"},
    {
        "name": "manage_roles",
        "description": "Create, update, delete roles and permissions",
        "resource": "roles",
        "action": "manage",
    },
    {"name": "view_energy", "description": "View energy monitoring data", "resource": "energy", "action": "read"},
]

DEFAULT_ROLES: dict[str, dict] = {
    "superadmin": {
        "description": "Full system access",
        "permissions": ["manage_users", "view_users", "manage_roles", "view_energy"],
    },
    "admin": {
        "description": "Administrative access with limited permissions",
        "permissions": ["view_users", "view_energy"],
    },
    "user": {
        "description": "Basic user access",
        "permissions": ["view_energy"],
    },
}

DEFAULT_ADMIN_EMAIL = "superadmin@example.com"
DEFAULT_ADMIN_PASSWORD = "superadmin123"  # noqa: S105 -- documented first-run credential, change after login


@dataclass
class SeedSummary:
    """What a seed run actually created (empty lists on a re-run)."""

    permissions_created: list[str] = field(default_factory=list)
    roles_created: list[str] = field(default_factory=list)
    edges_created: int = 0
    admin_created: bool = False


def seed_defaults(
    store: RbacStore,
    graph: RoleGraphManager,
    users: UserManager,
    admin_email: str = DEFAULT_ADMIN_EMAIL,
    admin_password: str = DEFAULT_ADMIN_PASSWORD,
) -> SeedSummary:
    """Create the default permissions, roles, edges and superadmin account."""
    summary = SeedSummary()

    permission_ids: dict[str, str] = {}
    for spec in DEFAULT_PERMISSIONS:
        existing = store.get_permission_by_name(spec["name"])
        if existing is None:
            existing = graph.create_permission(**spec)
            summary.permissions_created.append(spec["name"])
        permission_ids[spec["name"]] = existing.id

    role_ids: dict[str, str] = {}
    for role_name, spec in DEFAULT_ROLES.items():
        role = store.get_role_by_name(role_name)
        if role is None:
            role = graph.create_role(role_name, spec["description"])
            summary.roles_created.append(role_name)
        role_ids[role_name] = role.id
        for permission_name in spec["permissions"]:
            if graph.assign_permission(role.id, permission_ids[permission_name]):
                summary.edges_created += 1

    if store.get_user_by_email(admin_email) is None:
        users.create_user(admin_email, admin_password, "Super Admin", role_ids["superadmin"])
        summary.admin_created = True

    logger.info(
        "Seed complete: %d permissions, %d roles, %d edges created, admin_created=%s",
        len(summary.permissions_created),
        len(summary.roles_created),
        summary.edges_created,
        summary.admin_created,
    )
    return summary
