"""
rbac/graph.py -- Mutations of the role/permission graph under its invariants.

Invariants enforced here:
  * role names and permission names are unique;
  * at most one edge per (role, permission) pair, and assigning an existing
    edge is a success, not an error;
  * revoking an absent edge reports "not found" (False), never raises;
  * a role referenced by at least one user cannot be deleted;
  * deleting a permission removes all of its edges (silent cascade).

Each operation runs its check and its mutation inside one
RbacStore.transaction() block. The check alone is not a guarantee under
concurrency -- two requests can both pass it -- so the store's unique and
foreign-key constraints are the final word. When a constraint fires, the
IntegrityError is caught here and downgraded to the domain result it
represents (ConflictError, RoleInUseError, or "already assigned"); raw
storage errors never leave this module.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.errors import ConflictError, NotFoundError, RoleInUseError
from rbac.models import Permission, Role
from rbac.store import RbacStore

logger = logging.getLogger("gridgate.rbac.graph")

# Default for update_role's description: leave the stored value alone.
# An explicit None clears it.
_UNCHANGED = object()


class RoleGraphManager:
    """Create, rename and delete roles and permissions; assign and revoke edges.

    Usage:
        graph = RoleGraphManager(store)
        editor = graph.create_role("editor")
        graph.assign_permission(editor.id, view_energy.id)   # True (created)
        graph.assign_permission(editor.id, view_energy.id)   # False (already there)
        graph.revoke_permission(editor.id, view_energy.id)   # True
        graph.revoke_permission(editor.id, view_energy.id)   # False (not found)
    """

    def __init__(self, store: RbacStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def list_roles(self) -> list[Role]:
        return self.store.list_roles()

    def get_role(self, role_id: str) -> Role:
        role = self.store.get_role(role_id)
        if role is None:
            raise NotFoundError("Role not found.")
        return role

    def create_role(self, name: str, description: Optional[str] = None) -> Role:
        """Create a role with no permissions. Raises ConflictError on a duplicate name."""
        try:
            with self.store.transaction() as conn:
                if self.store.get_role_by_name(name, conn=conn) is not None:
                    raise ConflictError("Role name already exists.")
                role_id = self.store.create_role(Role(name=name, description=description), conn=conn)
        except IntegrityError as exc:
            raise ConflictError("Role name already exists.") from exc
        logger.info("Role created: %s (%s)", name, role_id)
        return self.get_role(role_id)

    def update_role(self, role_id: str, name: Optional[str] = None, description=_UNCHANGED) -> Role:
        """Rename and/or re-describe a role.

        Name uniqueness is checked against every other role; keeping the
        current name is not a conflict. Passing description=None clears the
        description; omitting it keeps the current one.
        """
        fields: dict = {}
        if name is not None:
            fields["name"] = name
        if description is not _UNCHANGED:
            fields["description"] = description
        try:
            with self.store.transaction() as conn:
                if not self.store.role_exists(role_id, conn=conn):
                    raise NotFoundError("Role not found.")
                if name is not None:
                    existing = self.store.get_role_by_name(name, conn=conn)
                    if existing is not None and existing.id != role_id:
                        raise ConflictError("Role name already exists.")
                if fields:
                    self.store.update_role(role_id, conn=conn, **fields)
        except IntegrityError as exc:
            raise ConflictError("Role name already exists.") from exc
        return self.get_role(role_id)

    def delete_role(self, role_id: str) -> None:
        """Delete a role and its edges.

        Raises NotFoundError if the role does not exist and RoleInUseError if
        any user still references it. The user count and the delete share a
        transaction; if a concurrent request assigns the role to a user in
        between, the users.role_id foreign key rejects the delete and the
        IntegrityError becomes the same RoleInUseError.
        """
        try:
            with self.store.transaction() as conn:
                if not self.store.role_exists(role_id, conn=conn):
                    raise NotFoundError("Role not found.")
                users = self.store.count_users_with_role(role_id, conn=conn)
                if users > 0:
                    raise RoleInUseError("Cannot delete role that is assigned to users.")
                self.store.delete_role(role_id, conn=conn)
        except RoleInUseError:
            logger.info("Role deletion blocked, role %s is assigned to users", role_id)
            raise
        except IntegrityError as exc:
            logger.warning("Role deletion of %s rejected by foreign key", role_id)
            raise RoleInUseError("Cannot delete role that is assigned to users.") from exc
        logger.info("Role deleted: %s", role_id)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def assign_permission(self, role_id: str, permission_id: str) -> bool:
        """Link a permission to a role.

        Returns True if the edge was created, False if it already existed.
        Raises NotFoundError if either endpoint is missing.

        A concurrent duplicate assign can slip past the has_edge() check; the
        composite primary key then rejects the insert. That IntegrityError is
        re-examined outside the failed transaction: if the edge now exists the
        result is "already assigned", if an endpoint vanished it is
        NotFoundError, anything else propagates.
        """
        try:
            with self.store.transaction() as conn:
                self._require_endpoints(role_id, permission_id, conn)
                if self.store.has_edge(role_id, permission_id, conn=conn):
                    return False
                self.store.insert_edge(role_id, permission_id, conn=conn)
        except IntegrityError:
            if self.store.has_edge(role_id, permission_id):
                return False
            self._require_endpoints(role_id, permission_id, None)
            raise
        logger.info("Permission %s assigned to role %s", permission_id, role_id)
        return True

    def revoke_permission(self, role_id: str, permission_id: str) -> bool:
        """Unlink a permission from a role. Returns False if the edge did not exist."""
        removed = self.store.delete_edge(role_id, permission_id)
        if removed:
            logger.info("Permission %s revoked from role %s", permission_id, role_id)
        return removed

    def _require_endpoints(self, role_id: str, permission_id: str, conn) -> None:
        if not self.store.role_exists(role_id, conn=conn):
            raise NotFoundError("Role not found.")
        if not self.store.permission_exists(permission_id, conn=conn):
            raise NotFoundError("Permission not found.")

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def list_permissions(self) -> list[Permission]:
        return self.store.list_permissions()

    def get_permission(self, permission_id: str) -> Permission:
        permission = self.store.get_permission(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found.")
        return permission

    def create_permission(
        self,
        name: str,
        description: Optional[str] = None,
        resource: Optional[str] = None,
        action: Optional[str] = None,
    ) -> Permission:
        """Create a permission. Raises ConflictError on a duplicate name."""
        try:
            with self.store.transaction() as conn:
                if self.store.get_permission_by_name(name, conn=conn) is not None:
                    raise ConflictError("Permission name already exists.")
                permission_id = self.store.create_permission(
                    Permission(name=name, description=description, resource=resource, action=action),
                    conn=conn,
                )
        except IntegrityError as exc:
            raise ConflictError("Permission name already exists.") from exc
        logger.info("Permission created: %s (%s)", name, permission_id)
        return self.get_permission(permission_id)

    def update_permission(self, permission_id: str, **changes) -> Permission:
        """Update name/description/resource/action. None values are ignored."""
        fields = {k: v for k, v in changes.items() if v is not None}
        name = fields.get("name")
        try:
            with self.store.transaction() as conn:
                if not self.store.permission_exists(permission_id, conn=conn):
                    raise NotFoundError("Permission not found.")
                if name is not None:
                    existing = self.store.get_permission_by_name(name, conn=conn)
                    if existing is not None and existing.id != permission_id:
                        raise ConflictError("Permission name already exists.")
                if fields:
                    self.store.update_permission(permission_id, conn=conn, **fields)
        except IntegrityError as exc:
            raise ConflictError("Permission name already exists.") from exc
        return self.get_permission(permission_id)

    def delete_permission(self, permission_id: str) -> None:
        """Delete a permission and silently remove it from every role that has it."""
        if not self.store.delete_permission(permission_id):
            raise NotFoundError("Permission not found.")
        logger.info("Permission deleted: %s", permission_id)
