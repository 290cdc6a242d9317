"""
tests/test_users.py -- Unit tests for UserManager.
"""

from __future__ import annotations

import pytest

from auth.passwords import PasswordHasher
from core.errors import ConflictError, NotFoundError, SelfDeletionError, ValidationError
from rbac.graph import RoleGraphManager
from rbac.store import RbacStore
from rbac.users import UserManager


@pytest.fixture()
def role_id(graph: RoleGraphManager) -> str:
    return graph.create_role("user").id


class TestCreateUser:
    def test_password_is_hashed(
        self, users: UserManager, store: RbacStore, hasher: PasswordHasher, role_id: str
    ) -> None:
        user = users.create_user("a@example.com", "plain-pw", "A", role_id)
        stored = store.get_user(user.id)
        assert stored.password_hash != "plain-pw"
        assert hasher.verify("plain-pw", stored.password_hash)
        assert user.is_active is True
        assert user.last_login is None

    def test_duplicate_email_conflicts(self, users: UserManager, role_id: str) -> None:
        users.create_user("dup@example.com", "pw", "One", role_id)
        with pytest.raises(ConflictError):
            users.create_user("dup@example.com", "pw", "Two", role_id)

    def test_duplicate_email_past_check_conflicts(
        self, users: UserManager, store: RbacStore, role_id: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The unique index catches an email taken after the lookup ran."""
        users.create_user("race@example.com", "pw", "First", role_id)

        real_lookup = store.get_user_by_email
        calls = []

        def stale_lookup(email, conn=None):
            calls.append(email)
            if len(calls) == 1:
                return None
            return real_lookup(email, conn=conn)

        monkeypatch.setattr(store, "get_user_by_email", stale_lookup)

        with pytest.raises(ConflictError, match="Email already in use."):
            users.create_user("race@example.com", "pw", "Second", role_id)
        assert len(calls) == 2
        monkeypatch.undo()
        assert [u.name for u in store.list_users() if u.email == "race@example.com"] == ["First"]

    def test_unknown_role_not_found(self, users: UserManager) -> None:
        with pytest.raises(NotFoundError):
            users.create_user("x@example.com", "pw", "X", "no-such-role")

    def test_create_inactive(self, users: UserManager, role_id: str) -> None:
        user = users.create_user("off@example.com", "pw", "Off", role_id, is_active=False)
        assert user.is_active is False


class TestUpdateUser:
    def test_update_fields(self, users: UserManager, graph: RoleGraphManager, role_id: str) -> None:
        user = users.create_user("u@example.com", "pw", "Before", role_id)
        other = graph.create_role("admin")
        updated = users.update_user(user.id, name="After", role_id=other.id, is_active=False)
        assert updated.name == "After"
        assert updated.role_id == other.id
        assert updated.is_active is False

    def test_password_rehashed(
        self, users: UserManager, store: RbacStore, hasher: PasswordHasher, role_id: str
    ) -> None:
        user = users.create_user("p@example.com", "old-pw", "P", role_id)
        users.update_user(user.id, password="new-pw")
        stored = store.get_user(user.id)
        assert hasher.verify("new-pw", stored.password_hash)
        assert not hasher.verify("old-pw", stored.password_hash)

    def test_email_taken_by_other_conflicts(self, users: UserManager, role_id: str) -> None:
        users.create_user("one@example.com", "pw", "One", role_id)
        two = users.create_user("two@example.com", "pw", "Two", role_id)
        with pytest.raises(ConflictError):
            users.update_user(two.id, email="one@example.com")

    def test_keeping_own_email_allowed(self, users: UserManager, role_id: str) -> None:
        user = users.create_user("same@example.com", "pw", "S", role_id)
        assert users.update_user(user.id, email="same@example.com").email == "same@example.com"

    def test_unknown_role_not_found(self, users: UserManager, role_id: str) -> None:
        user = users.create_user("r@example.com", "pw", "R", role_id)
        with pytest.raises(NotFoundError):
            users.update_user(user.id, role_id="no-such-role")

    def test_missing_user_not_found(self, users: UserManager) -> None:
        with pytest.raises(NotFoundError):
            users.update_user("missing", name="X")

    def test_self_deactivation_rejected(self, users: UserManager, role_id: str) -> None:
        user = users.create_user("me@example.com", "pw", "Me", role_id)
        with pytest.raises(ValidationError):
            users.update_user(user.id, actor_id=user.id, is_active=False)
        assert users.get_user(user.id).is_active is True


class TestDeleteUser:
    def test_delete(self, users: UserManager, role_id: str) -> None:
        user = users.create_user("bye@example.com", "pw", "Bye", role_id)
        users.delete_user(user.id, actor_id="someone-else")
        with pytest.raises(NotFoundError):
            users.get_user(user.id)

    def test_self_deletion_rejected(self, users: UserManager, role_id: str) -> None:
        user = users.create_user("self@example.com", "pw", "Self", role_id)
        with pytest.raises(SelfDeletionError) as excinfo:
            users.delete_user(user.id, actor_id=user.id)
        assert excinfo.value.message == "Cannot delete your own account."
        assert users.get_user(user.id).email == "self@example.com"

    def test_delete_missing(self, users: UserManager) -> None:
        with pytest.raises(NotFoundError):
            users.delete_user("missing", actor_id="someone")


def test_list_users(users: UserManager, role_id: str) -> None:
    users.create_user("l1@example.com", "pw", "L1", role_id)
    users.create_user("l2@example.com", "pw", "L2", role_id)
    assert {u.email for u in users.list_users()} == {"l1@example.com", "l2@example.com"}
