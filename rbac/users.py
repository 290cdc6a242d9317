"""
rbac/users.py -- User provisioning under the directory's invariants.

Invariants:
  * email is unique (exact, case-sensitive match);
  * every user references exactly one existing role;
  * passwords are hashed here, at create/update time, and nowhere else;
  * a caller cannot delete or deactivate its own account [M4].

The hasher is passed in rather than imported so rbac/ stays independent of
auth/: anything with hash(plain) -> str works.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.errors import ConflictError, NotFoundError, SelfDeletionError, ValidationError
from rbac.models import User
from rbac.store import RbacStore

logger = logging.getLogger("gridgate.rbac.users")


class UserManager:
    """Create, update and delete users.

    Usage:
        users = UserManager(store, PasswordHasher(rounds=12))
        alice = users.create_user("alice@example.com", "pw", "Alice", role_id)
        users.delete_user(alice.id, actor_id=admin.id)
    """

    def __init__(self, store: RbacStore, hasher) -> None:
        self.store = store
        self.hasher = hasher

    def list_users(self) -> list[User]:
        return self.store.list_users()

    def get_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def create_user(
        self,
        email: str,
        password: str,
        name: str,
        role_id: str,
        is_active: bool = True,
    ) -> User:
        """Provision a user. Raises ConflictError for a taken email, NotFoundError for an unknown role."""
        password_hash = self.hasher.hash(password)
        try:
            with self.store.transaction() as conn:
                if self.store.get_user_by_email(email, conn=conn) is not None:
                    raise ConflictError("Email already in use.")
                if not self.store.role_exists(role_id, conn=conn):
                    raise NotFoundError("Role not found.")
                user_id = self.store.create_user(
                    User(
                        email=email,
                        name=name,
                        role_id=role_id,
                        password_hash=password_hash,
                        is_active=is_active,
                    ),
                    conn=conn,
                )
        except IntegrityError as exc:
            # Either a concurrent insert took the email or the role vanished
            # between the check and the insert.
            if self.store.get_user_by_email(email) is not None:
                raise ConflictError("Email already in use.") from exc
            raise NotFoundError("Role not found.") from exc
        logger.info("User created: %s (%s)", email, user_id)
        return self.get_user(user_id)

    def update_user(
        self,
        user_id: str,
        actor_id: Optional[str] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
        password: Optional[str] = None,
        role_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        """Apply the given changes. None means "leave unchanged".

        A role change takes effect for authorization only after the user's
        next login, because the role id travels inside the session token.
        """
        if is_active is False and actor_id is not None and actor_id == user_id:
            raise ValidationError("You cannot deactivate your own account.")

        fields: dict = {}
        if email is not None:
            fields["email"] = email
        if name is not None:
            fields["name"] = name
        if password is not None:
            fields["password_hash"] = self.hasher.hash(password)
        if role_id is not None:
            fields["role_id"] = role_id
        if is_active is not None:
            fields["is_active"] = is_active

        try:
            with self.store.transaction() as conn:
                if self.store.get_user(user_id, conn=conn) is None:
                    raise NotFoundError("User not found.")
                if email is not None:
                    existing = self.store.get_user_by_email(email, conn=conn)
                    if existing is not None and existing.id != user_id:
                        raise ConflictError("Email already in use.")
                if role_id is not None and not self.store.role_exists(role_id, conn=conn):
                    raise NotFoundError("Role not found.")
                if fields:
                    self.store.update_user(user_id, conn=conn, **fields)
        except IntegrityError as exc:
            if email is not None and self.store.get_user_by_email(email) is not None:
                raise ConflictError("Email already in use.") from exc
            raise NotFoundError("Role not found.") from exc
        return self.get_user(user_id)

    def delete_user(self, user_id: str, actor_id: Optional[str] = None) -> None:
        """Delete a user. The caller identified by actor_id may not delete itself."""
        if actor_id is not None and actor_id == user_id:
            raise SelfDeletionError("Cannot delete your own account.")
        if not self.store.delete_user(user_id):
            raise NotFoundError("User not found.")
        logger.info("User deleted: %s", user_id)
