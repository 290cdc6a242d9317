"""
API request and response models for the Gridgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in rbac/models.py and
auth/models.py, which own the internal domain representation. The
from_domain() factories keep the mapping next to the output model instead of
scattering it across route handlers.

No response model has a password or password-hash field, so a hash cannot be
serialized by accident.

Separation of concerns: rbac/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import TokenIdentity
from rbac.models import Permission, Role, User

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Whitespace is NOT stripped: emails are matched exactly and passwords are
    compared byte for byte.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=72)
    name: str = Field(min_length=1, max_length=255)
    role_id: str = Field(min_length=1, max_length=36)
    is_active: bool = True


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{user_id}. Omitted fields are left unchanged."""

    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=72)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role_id: Optional[str] = Field(default=None, min_length=1, max_length=36)
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Roles and permissions -- request models
# ---------------------------------------------------------------------------


class RoleCreate(BaseModel):
    """Request body for POST /api/v1/roles."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)


class RoleUpdate(BaseModel):
    """Request body for PUT /api/v1/roles/{role_id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)


class PermissionCreate(BaseModel):
    """Request body for POST /api/v1/permissions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    resource: Optional[str] = Field(default=None, max_length=100)
    action: Optional[str] = Field(default=None, max_length=100)


class PermissionUpdate(BaseModel):
    """Request body for PUT /api/v1/permissions/{permission_id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    resource: Optional[str] = Field(default=None, max_length=100)
    action: Optional[str] = Field(default=None, max_length=100)


class PermissionAssign(BaseModel):
    """Request body for POST /api/v1/roles/{role_id}/permissions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    permission_id: str = Field(min_length=1, max_length=36)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PermissionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str]
    resource: Optional[str]
    action: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, permission: Permission) -> "PermissionResponse":
        return cls(
            id=permission.id,
            name=permission.name,
            description=permission.description,
            resource=permission.resource,
            action=permission.action,
            created_at=permission.created_at,
            updated_at=permission.updated_at,
        )


class RoleResponse(BaseModel):
    """A role with the permissions it currently grants.

    user_count is only meaningful on the list endpoint, which computes it in
    bulk; other endpoints leave it at None.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str]
    created_at: str
    updated_at: str
    permissions: list[PermissionResponse] = Field(default_factory=list)
    user_count: Optional[int] = None

    @classmethod
    def from_domain(cls, role: Role, include_count: bool = False) -> "RoleResponse":
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            created_at=role.created_at,
            updated_at=role.updated_at,
            permissions=[PermissionResponse.from_domain(p) for p in role.permissions],
            user_count=role.user_count if include_count else None,
        )


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role_id: str
    is_active: bool
    created_at: str
    updated_at: str
    last_login: Optional[str] = None
    role: Optional[RoleResponse] = None

    @classmethod
    def from_domain(cls, user: User, role: Optional[Role] = None) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role_id=user.role_id,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login=user.last_login,
            role=RoleResponse.from_domain(role) if role is not None else None,
        )


class LoginResponse(BaseModel):
    """Response for POST /auth/login and POST /auth/refresh."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class IdentityResponse(BaseModel):
    """The verified identity the access guard injected into the request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role_id: str
    email: str

    @classmethod
    def from_domain(cls, identity: TokenIdentity) -> "IdentityResponse":
        return cls(user_id=identity.user_id, role_id=identity.role_id, email=identity.email)


class AdminOnlyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: IdentityResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AssignResponse(BaseModel):
    """Response for POST /roles/{id}/permissions. created is False when the edge already existed."""

    model_config = ConfigDict(frozen=True)

    message: str
    created: bool


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
