"""
Immutable per-request view of the catalog.

A snapshot is loaded from the store at the start of a read and thrown away at
the end. Mutations never go through it; after a write the client re-fetches
and a new snapshot is built.
"""
from dataclasses import dataclass, field

from app.core.database.store import EntityStore
from app.features.matrix.models import PermissionStatus
from app.features.matrix.resolver import PermissionKey, index_permissions


@dataclass(frozen=True)
class RoleRecord:
    id: str
    name: str
    description: str | None = None
    color: str = "#3B82F6"
    is_system_role: bool = False


@dataclass(frozen=True)
class ActionRecord:
    id: str
    name: str
    description: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class PermissionRecord:
    id: str
    role_id: str
    action_id: str
    status: PermissionStatus
    limit_value: int | None = None
    conditions: str | None = None


@dataclass(frozen=True)
class MatrixSnapshot:
    """Roles, actions and permissions as of one load."""
    roles: tuple[RoleRecord, ...]
    actions: tuple[ActionRecord, ...]
    permissions: tuple[PermissionRecord, ...]
    index: dict[PermissionKey, PermissionRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # Frozen dataclass: bypass __setattr__ for the derived index
        object.__setattr__(self, "index", index_permissions(self.permissions))


async def load_snapshot(store: EntityStore) -> MatrixSnapshot:
    """
    Load the full catalog.

    Roles are ordered by name, actions by category then name.
    """
    roles = await store.select("roles", order_by=("name",))
    actions = await store.select("actions", order_by=("category", "name"))
    permissions = await store.select("permissions")

    return MatrixSnapshot(
        roles=tuple(
            RoleRecord(
                id=r.id,
                name=r.name,
                description=r.description,
                color=r.color,
                is_system_role=r.is_system_role,
            )
            for r in roles
        ),
        actions=tuple(
            ActionRecord(id=a.id, name=a.name, description=a.description, category=a.category)
            for a in actions
        ),
        permissions=tuple(
            PermissionRecord(
                id=p.id,
                role_id=p.role_id,
                action_id=p.action_id,
                status=p.status,
                limit_value=p.limit_value,
                conditions=p.conditions,
            )
            for p in permissions
        ),
    )
