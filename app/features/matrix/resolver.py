"""
Permission resolution for (role, action) pairs.

Pure functions over permission rows; no database access. The rule every
caller relies on: a pair with no permission row is denied, with no limit and
no conditions.
"""
from dataclasses import dataclass
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Protocol, Union

from app.core.exceptions import DuplicatePermissionError, ValidationFailedError
from app.features.matrix.models import PermissionStatus

if TYPE_CHECKING:
    from app.features.matrix.snapshot import MatrixSnapshot


class PermissionLike(Protocol):
    role_id: str
    action_id: str
    status: PermissionStatus
    limit_value: int | None
    conditions: str | None


PermissionKey = tuple[str, str]
PermissionIndex = Mapping[PermissionKey, PermissionLike]

# Older screens spelled "granted" as "allowed"
_STATUS_ALIASES = {"allowed": PermissionStatus.GRANTED}

_TOGGLE_CYCLE = {
    PermissionStatus.DENIED: PermissionStatus.GRANTED,
    PermissionStatus.GRANTED: PermissionStatus.CONDITIONAL,
    PermissionStatus.CONDITIONAL: PermissionStatus.DENIED,
}


@dataclass(frozen=True)
class ResolvedPermission:
    """Effective state of one matrix cell."""
    status: PermissionStatus
    limit_value: int | None = None
    conditions: str | None = None


DEFAULT_DENY = ResolvedPermission(status=PermissionStatus.DENIED)


def parse_status(value: Union[str, PermissionStatus]) -> PermissionStatus:
    """
    Convert user input to a PermissionStatus.

    Accepts the canonical values and the legacy "allowed" spelling
    (case-insensitive, surrounding whitespace ignored).
    """
    if isinstance(value, PermissionStatus):
        return value
    normalized = str(value).strip().lower()
    if normalized in _STATUS_ALIASES:
        return _STATUS_ALIASES[normalized]
    try:
        return PermissionStatus(normalized)
    except ValueError:
        raise ValidationFailedError(
            f"Invalid permission status {value!r}; expected granted, denied or conditional"
        ) from None


def index_permissions(permissions: Iterable[PermissionLike]) -> dict[PermissionKey, PermissionLike]:
    """
    Index permission rows by (role_id, action_id).

    Raises:
        DuplicatePermissionError: if two rows share a pair.
    """
    index: dict[PermissionKey, PermissionLike] = {}
    for permission in permissions:
        key = (permission.role_id, permission.action_id)
        if key in index:
            raise DuplicatePermissionError(
                f"More than one permission for role {key[0]} and action {key[1]}"
            )
        index[key] = permission
    return index


def find_permission(
    permissions: Union[PermissionIndex, Iterable[PermissionLike]],
    role_id: str,
    action_id: str,
) -> PermissionLike | None:
    """Return the row for the pair, or None. Uses the index when given one."""
    if isinstance(permissions, Mapping):
        return permissions.get((role_id, action_id))
    for permission in permissions:
        if permission.role_id == role_id and permission.action_id == action_id:
            return permission
    return None


def resolve(
    permissions: Union[PermissionIndex, Iterable[PermissionLike]],
    role_id: str,
    action_id: str,
) -> ResolvedPermission:
    """
    Resolve the effective permission of a role for an action.

    Args:
        permissions: an index from index_permissions, or any iterable of rows
        role_id: role to resolve for
        action_id: action to resolve for

    Returns:
        The row's status, limit and conditions verbatim, or DEFAULT_DENY when
        no row exists.
    """
    permission = find_permission(permissions, role_id, action_id)
    if permission is None:
        return DEFAULT_DENY
    return ResolvedPermission(
        status=permission.status,
        limit_value=permission.limit_value,
        conditions=permission.conditions,
    )


def next_status(status: PermissionStatus) -> PermissionStatus:
    """Advance a cell one step: denied -> granted -> conditional -> denied."""
    return _TOGGLE_CYCLE[status]


@dataclass(frozen=True)
class EffectiveAccess:
    """What one user may do for one action, after role and exclusions."""
    action_id: str
    action_name: str
    category: str | None
    status: PermissionStatus
    limit_value: int | None = None
    conditions: str | None = None
    excluded: bool = False
    exclusion_reason: str | None = None


def effective_access(
    snapshot: "MatrixSnapshot",
    role_id: str | None,
    exclusions: Mapping[str, str | None],
) -> list[EffectiveAccess]:
    """
    Resolve every action in the catalog for one user.

    Args:
        snapshot: catalog snapshot
        role_id: the user's role, or None when no role is assigned
        exclusions: action_id -> reason for the user's exclusions

    A user with no role is denied everything. An exclusion denies its action
    whatever the role says.
    """
    access = []
    for action in snapshot.actions:
        if role_id is None:
            resolved = DEFAULT_DENY
        else:
            resolved = resolve(snapshot.index, role_id, action.id)

        if action.id in exclusions:
            access.append(EffectiveAccess(
                action_id=action.id,
                action_name=action.name,
                category=action.category,
                status=PermissionStatus.DENIED,
                excluded=True,
                exclusion_reason=exclusions[action.id],
            ))
            continue

        access.append(EffectiveAccess(
            action_id=action.id,
            action_name=action.name,
            category=action.category,
            status=resolved.status,
            limit_value=resolved.limit_value,
            conditions=resolved.conditions,
        ))
    return access
