"""
Authorization matrix API routes.

Provides endpoints for the role and action catalog, the permission grid, cell
edits and CSV export.
"""
from typing import List
from fastapi import APIRouter, Depends, Response, status

from app.core.database.store import EntityStore, get_store
from app.core.exceptions import ProtectedRecordError, RecordNotFoundError
from app.features.users.capabilities import Capability
from app.features.users.dependencies import (
    Principal,
    get_current_capability,
    get_current_principal,
    require_admin,
    require_edit,
)
from app.features.matrix.mutator import set_permission, toggle_permission
from app.features.matrix.projection import (
    ALL_CATEGORIES,
    ALL_ROLES,
    MatrixFilter,
    categories,
    export_filename,
    flatten,
    project,
    render_csv,
    summarize,
)
from app.features.matrix.resolver import resolve
from app.features.matrix.schemas import (
    ActionCreate,
    ActionResponse,
    ActionUpdate,
    MatrixAction,
    MatrixCellResponse,
    MatrixResponse,
    MatrixRole,
    MatrixRowResponse,
    MatrixSummary,
    PermissionResponse,
    PermissionSet,
    PermissionToggle,
    ResolvedPermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
)
from app.features.matrix.snapshot import load_snapshot
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Matrix Routes
# ============================================================================

@router.get("/matrix", response_model=MatrixResponse)
async def get_matrix(
    category: str = ALL_CATEGORIES,
    search: str = "",
    role: str = ALL_ROLES,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """Get the permission grid, filtered by category and search term, optionally one role column."""
    snapshot = await load_snapshot(store)
    if role != ALL_ROLES and all(r.id != role for r in snapshot.roles):
        raise RecordNotFoundError(f"roles row {role} not found")
    grid = project(snapshot, MatrixFilter(category=category, search=search, role=role))

    return MatrixResponse(
        roles=[MatrixRole.model_validate(role) for role in grid.roles],
        rows=[
            MatrixRowResponse(
                action=MatrixAction.model_validate(row.action),
                cells=[
                    MatrixCellResponse(
                        role_id=cell.role_id,
                        status=cell.permission.status,
                        limit_value=cell.permission.limit_value,
                        conditions=cell.permission.conditions,
                    )
                    for cell in row.cells
                ],
            )
            for row in grid.rows
        ],
        category=category,
        search=search,
        role=role,
    )


@router.get("/matrix/categories", response_model=List[str])
async def list_categories(
    store: EntityStore = Depends(get_store),
    capability: Capability = Depends(get_current_capability)
):
    """List distinct action categories."""
    snapshot = await load_snapshot(store)
    return categories(snapshot.actions)


@router.get("/matrix/summary", response_model=MatrixSummary)
async def get_summary(
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """Counts of roles, actions, users and stored permissions per status."""
    snapshot = await load_snapshot(store)
    profiles = await store.select("profiles")
    return MatrixSummary(**summarize(snapshot, len(profiles)))


@router.get("/matrix/export")
async def export_matrix(
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """Download every role x action pair as CSV, regardless of filters."""
    snapshot = await load_snapshot(store)
    rows = flatten(snapshot)
    filename = export_filename()
    log.info("Exported %d matrix rows for %s", len(rows), principal.profile_id)

    return Response(
        content=render_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/matrix/resolve", response_model=ResolvedPermissionResponse)
async def resolve_permission(
    role_id: str,
    action_id: str,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """Resolve one cell. A pair with no stored row is denied."""
    await store.get("roles", role_id)
    await store.get("actions", action_id)
    permissions = await store.select("permissions", role_id=role_id, action_id=action_id)
    resolved = resolve(permissions, role_id, action_id)

    return ResolvedPermissionResponse(
        role_id=role_id,
        action_id=action_id,
        status=resolved.status,
        limit_value=resolved.limit_value,
        conditions=resolved.conditions,
    )


@router.put("/matrix/permissions", response_model=PermissionResponse)
async def put_permission(
    body: PermissionSet,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_edit)
):
    """
    Set one cell (editors and admins).

    limit_value and conditions are only touched when present in the body.
    """
    changes = body.model_dump(include={"limit_value", "conditions"}, exclude_unset=True)
    permission = await set_permission(store, body.role_id, body.action_id, body.status, **changes)
    log.info(
        "%s set role=%s action=%s to %s",
        principal.profile_id, body.role_id, body.action_id, body.status.value,
    )
    return permission


@router.post("/matrix/permissions/toggle", response_model=PermissionResponse)
async def post_toggle(
    body: PermissionToggle,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_edit)
):
    """Advance one cell: denied -> granted -> conditional -> denied (editors and admins)."""
    permission = await toggle_permission(store, body.role_id, body.action_id)
    log.info(
        "%s toggled role=%s action=%s to %s",
        principal.profile_id, body.role_id, body.action_id, permission.status.value,
    )
    return permission


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """List all roles."""
    return await store.select("roles", order_by=("name",))


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """Get a specific role by ID."""
    return await store.get("roles", role_id)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_admin)
):
    """Create a new role (admin only). New roles are never system roles."""
    db_role = await store.insert("roles", **role.model_dump(), is_system_role=False)
    log.info("%s created role %r", principal.profile_id, db_role.name)
    return db_role


@router.patch("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_admin)
):
    """Update a role (admin only). System roles cannot be renamed."""
    db_role = await store.get("roles", role_id)
    update_data = role_update.model_dump(exclude_unset=True)

    if db_role.is_system_role and update_data.get("name", db_role.name) != db_role.name:
        raise ProtectedRecordError(f"System role '{db_role.name}' cannot be renamed")

    db_role = await store.update("roles", role_id, update_data)
    log.info("%s updated role %s: %s", principal.profile_id, role_id, sorted(update_data))
    return db_role


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_admin)
):
    """
    Delete a role (admin only).

    System roles and roles still assigned to a user are refused. The role's
    permission rows are removed with it.
    """
    db_role = await store.get("roles", role_id)
    if db_role.is_system_role:
        raise ProtectedRecordError(f"System role '{db_role.name}' cannot be deleted")

    assigned = await store.select("profiles", role_id=role_id)
    if assigned:
        raise ProtectedRecordError(
            f"Role '{db_role.name}' is assigned to {len(assigned)} user(s); reassign them first"
        )

    await store.delete("roles", role_id)
    log.info("%s deleted role %r", principal.profile_id, db_role.name)
    return None


# ============================================================================
# Action Routes
# ============================================================================

@router.get("/actions", response_model=List[ActionResponse])
async def list_actions(
    category: str = ALL_CATEGORIES,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """List actions, optionally restricted to one category."""
    if category != ALL_CATEGORIES:
        return await store.select("actions", order_by=("name",), category=category)
    return await store.select("actions", order_by=("category", "name"))


@router.get("/actions/{action_id}", response_model=ActionResponse)
async def get_action(
    action_id: str,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(get_current_principal)
):
    """Get a specific action by ID."""
    return await store.get("actions", action_id)


@router.post("/actions", response_model=ActionResponse, status_code=status.HTTP_201_CREATED)
async def create_action(
    action: ActionCreate,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_admin)
):
    """Create a new action (admin only). It starts denied for every role."""
    db_action = await store.insert("actions", **action.model_dump())
    log.info("%s created action %r", principal.profile_id, db_action.name)
    return db_action


@router.patch("/actions/{action_id}", response_model=ActionResponse)
async def update_action(
    action_id: str,
    action_update: ActionUpdate,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_admin)
):
    """Update an action (admin only)."""
    update_data = action_update.model_dump(exclude_unset=True)
    db_action = await store.update("actions", action_id, update_data)
    log.info("%s updated action %s: %s", principal.profile_id, action_id, sorted(update_data))
    return db_action


@router.delete("/actions/{action_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_action(
    action_id: str,
    store: EntityStore = Depends(get_store),
    principal: Principal = Depends(require_admin)
):
    """Delete an action and its permission rows (admin only)."""
    db_action = await store.get("actions", action_id)
    await store.delete("actions", action_id)
    log.info("%s deleted action %r", principal.profile_id, db_action.name)
    return None
