"""
core/errors.py -- Domain exception taxonomy for Gridgate.

Services in auth/ and rbac/ raise these; they never raise HTTPException and
never let raw storage errors (sqlalchemy IntegrityError) escape. api/main.py
owns the single translation point from exception class to HTTP status code,
so the mapping table lives in one place:

  ValidationError       -> 400   missing/malformed input
  SelfDeletionError     -> 400   caller tried to delete its own account
  RoleInUseError        -> 400   role still referenced by users
  AuthenticationError   -> 401   absent/invalid/expired credential
  AuthorizationError    -> 403   authenticated but not permitted
  AccountDisabledError  -> 403   correct password, deactivated account
  NotFoundError         -> 404   referenced entity absent
  ConflictError         -> 409   uniqueness violated
  InternalError         -> 500   message suppressed outside DEBUG

Each class carries a machine-readable `code` that ends up in the error
envelope, mirroring the {"code", "message"} detail dicts the routes use.

Layer rule: core/ is the kernel. No imports from api/, auth/ or rbac/.
"""

from __future__ import annotations


class GridgateError(Exception):
    """Base class for every domain error raised by Gridgate services."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GridgateError):
    code = "validation_error"


class SelfDeletionError(ValidationError):
    code = "self_deletion"


class AuthenticationError(GridgateError):
    code = "unauthorized"


class AuthorizationError(GridgateError):
    code = "forbidden"


class AccountDisabledError(AuthorizationError):
    code = "account_disabled"


class NotFoundError(GridgateError):
    code = "not_found"


class ConflictError(GridgateError):
    code = "conflict"


class RoleInUseError(ConflictError):
    """A role cannot be deleted while at least one user references it.

    Reported as 400 rather than 409 for compatibility with existing clients.
    """

    code = "role_in_use"


class InternalError(GridgateError):
    code = "internal_error"
