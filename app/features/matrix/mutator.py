"""
Permission upsert.

Keeps the one-row-per-(role, action) invariant: an existing row is updated in
place, a missing one is inserted. Callers must have passed the edit gate.
"""
from typing import Any

from app.core.database.store import EntityStore
from app.core.exceptions import ValidationFailedError
from app.features.matrix.models import Permission, PermissionStatus
from app.features.matrix.resolver import next_status
from app.utils import get_logger


log = get_logger(__name__)

MUTABLE_FIELDS = frozenset({"limit_value", "conditions"})


async def get_permission_row(store: EntityStore, role_id: str, action_id: str) -> Permission | None:
    """Read the current row for a pair straight from the store."""
    return await store.first("permissions", role_id=role_id, action_id=action_id)


async def set_permission(
    store: EntityStore,
    role_id: str,
    action_id: str,
    status: PermissionStatus,
    **changes: Any,
) -> Permission:
    """
    Set the status of a (role, action) pair, creating the row if needed.

    Args:
        store: entity store bound to the request session
        role_id: existing role id
        action_id: existing action id
        status: new status
        **changes: optional limit_value and/or conditions. Keys not passed are
            left unchanged on update and null on insert; passing None clears.

    Returns:
        The stored Permission row. This is the session's live instance, so a
        later write to the same pair in the same session is reflected in it.
        Copy out any field you need before writing again.

    Raises:
        ValidationFailedError: for unknown change keys or a negative limit
        RecordNotFoundError: if the role or action does not exist
        ConstraintViolationError: if the store rejects the write
    """
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Unknown permission fields: {', '.join(sorted(unknown))}")
    limit_value = changes.get("limit_value")
    if limit_value is not None and limit_value < 0:
        raise ValidationFailedError("limit_value must not be negative")

    # Foreign keys are checked here as well so a missing id reads as 404, not 409
    await store.get("roles", role_id)
    await store.get("actions", action_id)

    existing = await get_permission_row(store, role_id, action_id)
    if existing is not None:
        patch = {"status": status, **changes}
        permission = await store.update("permissions", existing.id, patch)
        log.info(
            "Updated permission role=%s action=%s status=%s fields=%s",
            role_id, action_id, status.value, sorted(changes),
        )
        return permission

    permission = await store.insert(
        "permissions",
        role_id=role_id,
        action_id=action_id,
        status=status,
        **changes,
    )
    log.info("Created permission role=%s action=%s status=%s", role_id, action_id, status.value)
    return permission


async def toggle_permission(store: EntityStore, role_id: str, action_id: str) -> Permission:
    """
    Advance a cell one step along denied -> granted -> conditional -> denied.

    The current status is read from the store, never from a cached snapshot.
    A missing row counts as denied. Limit and conditions are kept as they are.
    """
    existing = await get_permission_row(store, role_id, action_id)
    current = existing.status if existing is not None else PermissionStatus.DENIED
    return await set_permission(store, role_id, action_id, next_status(current))
