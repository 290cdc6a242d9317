"""
api/routes/v1/roles.py -- Role and role/permission edge endpoints.

Routes (all require manage_roles):
  GET    /api/v1/roles                                   -- list with permissions and user counts
  POST   /api/v1/roles                                   -- create role
  GET    /api/v1/roles/{role_id}                         -- one role with permissions
  PUT    /api/v1/roles/{role_id}                         -- rename / re-describe
  DELETE /api/v1/roles/{role_id}                         -- delete (400 while users hold it)
  GET    /api/v1/roles/{role_id}/permissions             -- permissions granted by the role
  POST   /api/v1/roles/{role_id}/permissions             -- assign (idempotent)
  DELETE /api/v1/roles/{role_id}/permissions/{perm_id}   -- revoke

Edge changes take effect on the next request of every session holding the
role; there is no permission cache to invalidate.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    AssignResponse,
    MessageResponse,
    PermissionAssign,
    PermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
)
from auth.dependencies import require_permission
from rbac.graph import RoleGraphManager

# Router-level dependency applies to every route registered on this router,
# so individual handlers don't each need to repeat the permission gate.
router = APIRouter(dependencies=[Depends(require_permission("manage_roles"))])


@router.get("/roles", response_model=list[RoleResponse])
def list_roles(request: Request) -> list[RoleResponse]:
    graph: RoleGraphManager = request.app.state.graph
    return [RoleResponse.from_domain(r, include_count=True) for r in graph.list_roles()]


@router.post("/roles", response_model=RoleResponse, status_code=201)
def create_role(request: Request, body: RoleCreate) -> RoleResponse:
    graph: RoleGraphManager = request.app.state.graph
    return RoleResponse.from_domain(graph.create_role(body.name, body.description))


@router.get("/roles/{role_id}", response_model=RoleResponse)
def get_role(request: Request, role_id: str) -> RoleResponse:
    graph: RoleGraphManager = request.app.state.graph
    return RoleResponse.from_domain(graph.get_role(role_id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
def update_role(request: Request, role_id: str, body: RoleUpdate) -> RoleResponse:
    """Rename or re-describe a role.

    Only fields present in the body are applied. "description": null clears
    the description; a null name is ignored.
    """
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    if not changes:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    graph: RoleGraphManager = request.app.state.graph
    return RoleResponse.from_domain(graph.update_role(role_id, **changes))


@router.delete("/roles/{role_id}", response_model=MessageResponse)
def delete_role(request: Request, role_id: str) -> MessageResponse:
    """Delete a role and its edges. Rejected with 400 while any user holds it."""
    graph: RoleGraphManager = request.app.state.graph
    graph.delete_role(role_id)
    return MessageResponse(message="Role deleted successfully.")


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


@router.get("/roles/{role_id}/permissions", response_model=list[PermissionResponse])
def list_role_permissions(request: Request, role_id: str) -> list[PermissionResponse]:
    graph: RoleGraphManager = request.app.state.graph
    return [PermissionResponse.from_domain(p) for p in graph.get_role(role_id).permissions]


@router.post("/roles/{role_id}/permissions", response_model=AssignResponse)
def assign_permission(request: Request, role_id: str, body: PermissionAssign) -> AssignResponse:
    """Grant a permission to a role. Assigning an existing edge is a no-op, not an error."""
    graph: RoleGraphManager = request.app.state.graph
    created = graph.assign_permission(role_id, body.permission_id)
    message = "Permission assigned successfully." if created else "Permission already assigned to role."
    return AssignResponse(message=message, created=created)


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
def revoke_permission(request: Request, role_id: str, permission_id: str) -> MessageResponse:
    graph: RoleGraphManager = request.app.state.graph
    if not graph.revoke_permission(role_id, permission_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Role permission not found."},
        )
    return MessageResponse(message="Permission removed from role successfully.")
