"""
api/routes/v1/users.py -- User administration endpoints.

Routes:
  GET    /api/v1/users             -- list users, newest first (view_users)
  GET    /api/v1/users/{user_id}   -- one user with role (view_users)
  POST   /api/v1/users             -- create user (manage_users)
  PUT    /api/v1/users/{user_id}   -- update user (manage_users)
  DELETE /api/v1/users/{user_id}   -- delete user (manage_users)

Security:
  [M4] PUT blocks self-deactivation and DELETE blocks self-deletion; both are
       enforced in UserManager with the caller's id passed as actor_id.
  Password hashes never leave the store: UserResponse has no hash field.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import MessageResponse, UserCreate, UserResponse, UserUpdate
from auth.dependencies import require_permission
from auth.models import TokenIdentity
from rbac.store import RbacStore
from rbac.users import UserManager

router = APIRouter()


def _with_role(request: Request, user) -> UserResponse:
    store: RbacStore = request.app.state.store
    return UserResponse.from_domain(user, store.get_role(user.role_id))


@router.get("/users", response_model=list[UserResponse], dependencies=[Depends(require_permission("view_users"))])
def list_users(request: Request) -> list[UserResponse]:
    users: UserManager = request.app.state.users
    return [UserResponse.from_domain(u) for u in users.list_users()]


@router.get(
    "/users/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(require_permission("view_users"))],
)
def get_user(request: Request, user_id: str) -> UserResponse:
    users: UserManager = request.app.state.users
    return _with_role(request, users.get_user(user_id))


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(require_permission("manage_users"))],
)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Create a user account. The password is bcrypt-hashed before storage."""
    users: UserManager = request.app.state.users
    user = users.create_user(
        email=body.email,
        password=body.password,
        name=body.name,
        role_id=body.role_id,
        is_active=body.is_active,
    )
    return _with_role(request, user)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdate,
    identity: TokenIdentity = Depends(require_permission("manage_users")),
) -> UserResponse:
    """Update any subset of email, name, password, role_id and is_active.

    A role change reaches the user's authorization only on their next token
    issue (login or /auth/refresh).
    """
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    users: UserManager = request.app.state.users
    user = users.update_user(user_id, actor_id=identity.user_id, **changes)
    return _with_role(request, user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: str,
    identity: TokenIdentity = Depends(require_permission("manage_users")),
) -> MessageResponse:
    users: UserManager = request.app.state.users
    users.delete_user(user_id, actor_id=identity.user_id)
    return MessageResponse(message="User deleted successfully.")
