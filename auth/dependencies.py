"""
auth/dependencies.py -- FastAPI Depends() helpers implementing the access guard.

The chain, in order:
  a. An Authorization header must be present.
  b. It must be exactly "Bearer <token>". Any other shape is a 401, not a 500.
  c. TokenService.verify() must return an identity (signature + expiry).
  d. The identity is stored on request.state.identity and returned to the
     handler.
  e. For gated routes, the route's PermissionRequirement is evaluated against
     the permissions the identity's role has RIGHT NOW in the store.

Steps a-d live in get_current_identity() and run exactly once per request;
require() adds step e for all three requirement modes. A failure in a-c is
always a 401; a failure in e is always a 403. Clients can therefore tell
"not authenticated" from "authenticated but forbidden".

Stale tokens: the token carries the role id it was issued with, and nothing
here reloads the user. Edge changes for that role apply on the next request;
moving the user to another role applies once they log in again (or call
/auth/refresh). There is no server-side session store to consult.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, HTTPException, Request

from auth.models import TokenIdentity
from auth.requirements import PermissionRequirement
from auth.tokens import TokenService
from rbac.resolver import PermissionResolver

logger = logging.getLogger("gridgate.auth.guard")


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=401, detail={"code": code, "message": message})


def get_current_identity(request: Request) -> TokenIdentity:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: TokenIdentity = Depends(get_current_identity)): ...
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise _unauthorized("unauthorized", "No authorization header provided.")

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise _unauthorized("unauthorized", "Invalid authorization header format. Use: Bearer <token>")

    tokens: TokenService = request.app.state.tokens
    identity = tokens.verify(parts[1])
    if identity is None:
        raise _unauthorized("invalid_token", "Invalid or expired token.")

    request.state.identity = identity
    return identity


def require(requirement: PermissionRequirement) -> Callable[..., TokenIdentity]:
    """Build a dependency that authenticates, then enforces requirement.

    The returned callable is what routes pass to Depends(). It reuses
    get_current_identity() for authentication, so a missing or bad token is
    still a 401 even on permission-gated routes.
    """

    def dependency(request: Request, identity: TokenIdentity = Depends(get_current_identity)) -> TokenIdentity:
        resolver: PermissionResolver = request.app.state.resolver
        if not requirement.is_satisfied_by(resolver, identity.role_id):
            logger.info(
                "Access denied for user %s on %s %s (%s: %s)",
                identity.user_id,
                request.method,
                request.url.path,
                requirement.mode.value,
                ",".join(requirement.permissions),
            )
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": requirement.denial_message()},
            )
        return identity

    return dependency


def require_permission(name: str) -> Callable[..., TokenIdentity]:
    """Gate a route on one permission.

    Use as a FastAPI dependency:
        @router.get("/users", dependencies=[Depends(require_permission("view_users"))])
    """
    return require(PermissionRequirement.single(name))


def require_any_permission(*names: str) -> Callable[..., TokenIdentity]:
    """Gate a route on at least one of several permissions."""
    return require(PermissionRequirement.any_of(*names))


def require_all_permissions(*names: str) -> Callable[..., TokenIdentity]:
    """Gate a route on every one of several permissions."""
    return require(PermissionRequirement.all_of(*names))
