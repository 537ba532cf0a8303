"""
Capability levels for console users.

A user's capability comes from the exact name of their assigned role. It is
computed once per request and passed to the gate checks. Anything that is not
one of the two privileged names, including no role at all, is view-only.
"""
import enum


class Capability(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"


ADMIN_ROLE_NAME = "Admin"
EDITOR_ROLE_NAME = "Edit & View"

_ROLE_CAPABILITIES = {
    ADMIN_ROLE_NAME: Capability.ADMIN,
    EDITOR_ROLE_NAME: Capability.EDIT,
}

# Operation names, nested: each level allows everything the level below does
VIEW_OPERATIONS = frozenset({"view", "export"})
EDIT_OPERATIONS = VIEW_OPERATIONS | {"edit_permissions"}
ADMIN_OPERATIONS = EDIT_OPERATIONS | {"manage_catalog", "manage_users"}

_OPERATIONS = {
    Capability.VIEW: VIEW_OPERATIONS,
    Capability.EDIT: EDIT_OPERATIONS,
    Capability.ADMIN: ADMIN_OPERATIONS,
}


def capability_of(role_name: str | None) -> Capability:
    """
    Map a role name to a capability.

    Exact, case-sensitive match: "Admin" -> ADMIN, "Edit & View" -> EDIT,
    everything else (None included) -> VIEW.
    """
    if role_name is None:
        return Capability.VIEW
    return _ROLE_CAPABILITIES.get(role_name, Capability.VIEW)


def can_edit(capability: Capability) -> bool:
    """True if the capability may change permission cells."""
    return capability in (Capability.EDIT, Capability.ADMIN)


def can_administer(capability: Capability) -> bool:
    """True if the capability may manage users, roles and actions."""
    return capability is Capability.ADMIN


def permitted_operations(capability: Capability) -> frozenset[str]:
    return _OPERATIONS[capability]
