"""
api/routes/v1/auth.py -- Login and session endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password login; returns a bearer token
  GET  /api/v1/auth/me        -- current user with role and permissions (requires auth)
  POST /api/v1/auth/refresh   -- re-issue a token from the live user record (requires auth)

Security:
  [C1] AuthService.login() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response carrying a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, UserResponse
from auth.dependencies import get_current_identity
from auth.models import LoginResult, TokenIdentity
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:       requires auth (get_current_identity)
# - POST /api/v1/auth/refresh:  requires auth (get_current_identity)
router = APIRouter()


def _token_response(result: LoginResult) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.expires_in,
            user=UserResponse.from_domain(result.user, result.role),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a signed session token.

    Wrong password and unknown email produce the same 401 body. A correct
    password on a deactivated account is a 403. Both failures are raised as
    domain errors and translated by the handler in api/main.py.
    """
    service: AuthService = request.app.state.auth_service
    return _token_response(service.login(body.email, body.password))


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, identity: TokenIdentity = Depends(get_current_identity)) -> UserResponse:
    """Return the caller's user record with its role and permissions."""
    service: AuthService = request.app.state.auth_service
    user, role = service.current_user(identity)
    return UserResponse.from_domain(user, role)


@router.post("/auth/refresh", response_model=LoginResponse)
def refresh(request: Request, identity: TokenIdentity = Depends(get_current_identity)) -> JSONResponse:
    """Issue a new token carrying the caller's current role.

    Not refresh-token rotation: the caller presents a still-valid session
    token and receives a fresh one with a new expiry.
    """
    service: AuthService = request.app.state.auth_service
    return _token_response(service.refresh(identity))
