"""
rbac/resolver.py -- Role -> permission resolution.

Resolution follows the RolePermission edges of one role to their permission
names. There is no role hierarchy and no wildcard: a role id with no edges,
including a role id that does not exist, resolves to the empty set.

No caching. Every call re-reads the stored graph, so a revoked edge stops
granting access on the very next request. The cost is one indexed query per
authorization decision.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

from rbac.store import RbacStore


class PermissionResolver:
    """Answer "what may this role do?" from the current stored graph."""

    def __init__(self, store: RbacStore) -> None:
        self.store = store

    def has_permission(self, role_id: str, permission_name: str) -> bool:
        """Return True iff role_id has an edge to a permission named permission_name.

        Runs an existence query rather than materializing the full set --
        the common case for single-permission routes.
        """
        return self.store.role_has_permission_named(role_id, permission_name)

    def get_permissions(self, role_id: str) -> frozenset[str]:
        """Return every permission name reachable from role_id."""
        return self.store.permission_names_for_role(role_id)
