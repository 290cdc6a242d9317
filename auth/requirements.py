"""
auth/requirements.py -- Permission requirements declared by gated routes.

One tagged type covers the three requirement shapes:

  single  -- exactly one permission name; pass iff has_permission() is true
  any     -- pass iff the role's permission set intersects the names
  all     -- pass iff the role's permission set contains every name

Routes build a requirement once, at registration time, and the access guard
evaluates it per request through is_satisfied_by(). Empty name lists are
rejected at construction: "any of nothing" would always deny and "all of
nothing" would always allow, and neither is something a route should say by
accident.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rbac.resolver import PermissionResolver


class RequirementMode(str, Enum):
    single = "single"
    any = "any"
    all = "all"


@dataclass(frozen=True)
class PermissionRequirement:
    """A route's authorization requirement."""

    mode: RequirementMode
    permissions: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.permissions:
            raise ValueError("A permission requirement needs at least one permission name.")
        if self.mode is RequirementMode.single and len(self.permissions) != 1:
            raise ValueError("A single-permission requirement takes exactly one name.")

    @classmethod
    def single(cls, name: str) -> "PermissionRequirement":
        return cls(RequirementMode.single, (name,))

    @classmethod
    def any_of(cls, *names: str) -> "PermissionRequirement":
        return cls(RequirementMode.any, tuple(names))

    @classmethod
    def all_of(cls, *names: str) -> "PermissionRequirement":
        return cls(RequirementMode.all, tuple(names))

    def is_satisfied_by(self, resolver: PermissionResolver, role_id: str) -> bool:
        """Evaluate against the role's permissions as currently stored."""
        if self.mode is RequirementMode.single:
            return resolver.has_permission(role_id, self.permissions[0])
        granted = resolver.get_permissions(role_id)
        if self.mode is RequirementMode.any:
            return not granted.isdisjoint(self.permissions)
        return granted.issuperset(self.permissions)

    def denial_message(self) -> str:
        """Human-readable 403 message naming what was required."""
        if self.mode is RequirementMode.single:
            return f"Access denied. Required permission: {self.permissions[0]}"
        if self.mode is RequirementMode.any:
            return f"Access denied. Required one of: {', '.join(self.permissions)}"
        return f"Access denied. Required all of: {', '.join(self.permissions)}"
