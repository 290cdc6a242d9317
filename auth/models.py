"""
auth/models.py -- Domain dataclasses for authentication results.

Pattern: Data class (pure data container, zero logic). Mirrors rbac/models.py
-- dataclasses own domain shape; services and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass

from rbac.models import Role, User


@dataclass(frozen=True)
class TokenIdentity:
    """The identity carried inside a session token.

    role_id is fixed at issue time. Permissions are NOT embedded: the access
    guard resolves them from the live graph on every request, so edge changes
    apply immediately while a role reassignment only applies once the user
    obtains a new token (login or refresh).

    Frozen so verify(issue(identity)) == identity compares by value.
    """

    user_id: str
    role_id: str
    email: str


@dataclass
class LoginResult:
    """Everything the login route needs to build its response."""

    token: str
    expires_in: int
    user: User
    role: Role | None
