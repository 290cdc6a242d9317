"""
api/routes/v1/permissions.py -- Permission catalogue endpoints.

Routes (all require manage_roles):
  GET    /api/v1/permissions                   -- list, ordered by name
  POST   /api/v1/permissions                   -- create
  GET    /api/v1/permissions/{permission_id}   -- one permission
  PUT    /api/v1/permissions/{permission_id}   -- update
  DELETE /api/v1/permissions/{permission_id}   -- delete; removed from every role silently
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import MessageResponse, PermissionCreate, PermissionResponse, PermissionUpdate
from auth.dependencies import require_permission
from rbac.graph import RoleGraphManager

router = APIRouter(dependencies=[Depends(require_permission("manage_roles"))])


@router.get("/permissions", response_model=list[PermissionResponse])
def list_permissions(request: Request) -> list[PermissionResponse]:
    graph: RoleGraphManager = request.app.state.graph
    return [PermissionResponse.from_domain(p) for p in graph.list_permissions()]


@router.post("/permissions", response_model=PermissionResponse, status_code=201)
def create_permission(request: Request, body: PermissionCreate) -> PermissionResponse:
    graph: RoleGraphManager = request.app.state.graph
    permission = graph.create_permission(
        name=body.name,
        description=body.description,
        resource=body.resource,
        action=body.action,
    )
    return PermissionResponse.from_domain(permission)


@router.get("/permissions/{permission_id}", response_model=PermissionResponse)
def get_permission(request: Request, permission_id: str) -> PermissionResponse:
    graph: RoleGraphManager = request.app.state.graph
    return PermissionResponse.from_domain(graph.get_permission(permission_id))


@router.put("/permissions/{permission_id}", response_model=PermissionResponse)
def update_permission(request: Request, permission_id: str, body: PermissionUpdate) -> PermissionResponse:
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    graph: RoleGraphManager = request.app.state.graph
    return PermissionResponse.from_domain(graph.update_permission(permission_id, **changes))


@router.delete("/permissions/{permission_id}", response_model=MessageResponse)
def delete_permission(request: Request, permission_id: str) -> MessageResponse:
    graph: RoleGraphManager = request.app.state.graph
    graph.delete_permission(permission_id)
    return MessageResponse(message="Permission deleted successfully.")
