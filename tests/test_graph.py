"""
tests/test_graph.py -- Unit tests for RoleGraphManager invariants.

Covers:
  - unique role and permission names (create and rename)
  - idempotent assign, not-found revoke
  - role deletion blocked while users hold the role
  - permission deletion cascades its edges
  - NotFoundError for unknown ids
  - constraint fallbacks when a concurrent writer slips past a check
"""

from __future__ import annotations

import pytest

from core.errors import ConflictError, NotFoundError, RoleInUseError
from rbac.graph import RoleGraphManager
from rbac.store import RbacStore
from rbac.users import UserManager


class TestRoles:
    def test_create_and_get(self, graph: RoleGraphManager) -> None:
        role = graph.create_role("editor", "Edits things")
        fetched = graph.get_role(role.id)
        assert fetched.name == "editor"
        assert fetched.description == "Edits things"
        assert fetched.permissions == []

    def test_duplicate_name_conflicts(self, graph: RoleGraphManager) -> None:
        graph.create_role("editor")
        with pytest.raises(ConflictError):
            graph.create_role("editor")

    def test_rename_to_taken_name_conflicts(self, graph: RoleGraphManager) -> None:
        graph.create_role("a")
        b = graph.create_role("b")
        with pytest.raises(ConflictError):
            graph.update_role(b.id, name="a")

    def test_rename_to_own_name_allowed(self, graph: RoleGraphManager) -> None:
        role = graph.create_role("same")
        updated = graph.update_role(role.id, name="same", description="new text")
        assert updated.name == "same"
        assert updated.description == "new text"

    def test_update_clears_description_with_none(self, graph: RoleGraphManager) -> None:
        role = graph.create_role("described", "some text")
        updated = graph.update_role(role.id, description=None)
        assert updated.description is None
        assert updated.name == "described"

    def test_rename_keeps_description(self, graph: RoleGraphManager) -> None:
        role = graph.create_role("old", "kept text")
        updated = graph.update_role(role.id, name="new")
        assert updated.name == "new"
        assert updated.description == "kept text"

    def test_update_missing_role(self, graph: RoleGraphManager) -> None:
        with pytest.raises(NotFoundError):
            graph.update_role("missing", name="x")

    def test_get_missing_role(self, graph: RoleGraphManager) -> None:
        with pytest.raises(NotFoundError):
            graph.get_role("missing")

    def test_list_includes_permissions_and_user_count(
        self, graph: RoleGraphManager, users: UserManager
    ) -> None:
        role = graph.create_role("counted")
        perm = graph.create_permission("p1")
        graph.assign_permission(role.id, perm.id)
        users.create_user("x@example.com", "pw", "X", role.id)

        listed = {r.name: r for r in graph.list_roles()}
        assert listed["counted"].user_count == 1
        assert [p.name for p in listed["counted"].permissions] == ["p1"]


class TestDeleteRole:
    def test_delete_unused_role_removes_edges(self, graph: RoleGraphManager, store: RbacStore) -> None:
        role = graph.create_role("doomed")
        perm = graph.create_permission("p")
        graph.assign_permission(role.id, perm.id)

        graph.delete_role(role.id)
        assert store.get_role(role.id) is None
        assert not store.has_edge(role.id, perm.id)
        # The permission itself survives.
        assert store.get_permission(perm.id) is not None

    def test_delete_in_use_role_blocked(self, graph: RoleGraphManager, users: UserManager) -> None:
        role = graph.create_role("held")
        users.create_user("holder@example.com", "pw", "Holder", role.id)
        with pytest.raises(RoleInUseError):
            graph.delete_role(role.id)
        assert graph.get_role(role.id).name == "held"

    def test_role_in_use_is_a_conflict(self) -> None:
        assert issubclass(RoleInUseError, ConflictError)

    def test_delete_missing_role(self, graph: RoleGraphManager) -> None:
        with pytest.raises(NotFoundError):
            graph.delete_role("missing")


class TestEdges:
    def test_double_assign_is_idempotent(self, graph: RoleGraphManager, store: RbacStore) -> None:
        role = graph.create_role("r")
        perm = graph.create_permission("p")
        assert graph.assign_permission(role.id, perm.id) is True
        assert graph.assign_permission(role.id, perm.id) is False
        assert [p.name for p in store.get_role_permissions(role.id)] == ["p"]

    def test_revoke_absent_edge_reports_not_found(self, graph: RoleGraphManager, store: RbacStore) -> None:
        role = graph.create_role("r")
        kept = graph.create_permission("kept")
        other = graph.create_permission("other")
        graph.assign_permission(role.id, kept.id)

        assert graph.revoke_permission(role.id, other.id) is False
        assert [p.name for p in store.get_role_permissions(role.id)] == ["kept"]

    def test_revoke_existing_edge(self, graph: RoleGraphManager) -> None:
        role = graph.create_role("r")
        perm = graph.create_permission("p")
        graph.assign_permission(role.id, perm.id)
        assert graph.revoke_permission(role.id, perm.id) is True
        assert graph.revoke_permission(role.id, perm.id) is False

    def test_assign_unknown_role(self, graph: RoleGraphManager) -> None:
        perm = graph.create_permission("p")
        with pytest.raises(NotFoundError):
            graph.assign_permission("missing", perm.id)

    def test_assign_unknown_permission(self, graph: RoleGraphManager) -> None:
        role = graph.create_role("r")
        with pytest.raises(NotFoundError):
            graph.assign_permission(role.id, "missing")


class TestConstraintFallbacks:
    """A check that passes and is then invalidated by another writer.

    The store method behind the check is patched on the instance to give the
    stale answer once, so the insert or delete hits the database constraint.
    """

    def test_duplicate_assign_past_check_reports_existing(
        self, graph: RoleGraphManager, store: RbacStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        role = graph.create_role("r")
        perm = graph.create_permission("p")
        assert graph.assign_permission(role.id, perm.id) is True

        real_has_edge = store.has_edge
        calls = []

        def stale_has_edge(role_id, permission_id, conn=None):
            calls.append(conn)
            if len(calls) == 1:
                return False
            return real_has_edge(role_id, permission_id, conn=conn)

        monkeypatch.setattr(store, "has_edge", stale_has_edge)

        assert graph.assign_permission(role.id, perm.id) is False
        assert len(calls) == 2
        monkeypatch.undo()
        assert [p.name for p in store.get_role_permissions(role.id)] == ["p"]

    def test_delete_role_past_user_count_rejected_by_foreign_key(
        self, graph: RoleGraphManager, users: UserManager, store: RbacStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        role = graph.create_role("held")
        perm = graph.create_permission("p")
        graph.assign_permission(role.id, perm.id)
        users.create_user("holder@example.com", "pw", "Holder", role.id)

        monkeypatch.setattr(store, "count_users_with_role", lambda role_id, conn=None: 0)

        with pytest.raises(RoleInUseError):
            graph.delete_role(role.id)
        # The failed transaction rolled back the edge delete too.
        assert store.get_role(role.id) is not None
        assert store.has_edge(role.id, perm.id)


class TestPermissions:
    def test_create_with_resource_and_action(self, graph: RoleGraphManager) -> None:
        perm = graph.create_permission("view_energy", "View data", resource="energy", action="read")
        assert perm.resource == "energy"
        assert perm.action == "read"

    def test_duplicate_name_conflicts(self, graph: RoleGraphManager) -> None:
        graph.create_permission("dup")
        with pytest.raises(ConflictError):
            graph.create_permission("dup")

    def test_update_ignores_none(self, graph: RoleGraphManager) -> None:
        perm = graph.create_permission("p", "original")
        updated = graph.update_permission(perm.id, description=None, action="write")
        assert updated.description == "original"
        assert updated.action == "write"

    def test_rename_to_taken_name_conflicts(self, graph: RoleGraphManager) -> None:
        graph.create_permission("a")
        b = graph.create_permission("b")
        with pytest.raises(ConflictError):
            graph.update_permission(b.id, name="a")

    def test_list_is_ordered_by_name(self, graph: RoleGraphManager) -> None:
        for name in ("zeta", "alpha", "mid"):
            graph.create_permission(name)
        assert [p.name for p in graph.list_permissions()] == ["alpha", "mid", "zeta"]

    def test_delete_cascades_edges(self, graph: RoleGraphManager, store: RbacStore) -> None:
        role = graph.create_role("r")
        perm = graph.create_permission("p")
        graph.assign_permission(role.id, perm.id)

        graph.delete_permission(perm.id)
        assert not store.has_edge(role.id, perm.id)
        assert graph.get_role(role.id).permissions == []

    def test_delete_missing_permission(self, graph: RoleGraphManager) -> None:
        with pytest.raises(NotFoundError):
            graph.delete_permission("missing")
