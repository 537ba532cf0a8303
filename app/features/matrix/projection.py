"""
Grid and export views of a matrix snapshot.

project() builds the filtered grid shown on screen; flatten() and render_csv()
build the export, which always covers the whole catalog whatever the filter.
"""
import csv
import io
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from app.features.matrix.models import PermissionStatus
from app.features.matrix.resolver import ResolvedPermission, resolve
from app.features.matrix.snapshot import ActionRecord, MatrixSnapshot, RoleRecord


ALL_CATEGORIES = "all"
ALL_ROLES = "all"

CSV_HEADER = ("Role", "Action", "Status", "Limit", "Conditions", "Category")


@dataclass(frozen=True)
class MatrixFilter:
    """
    Grid filters. category (exact) and search (case-insensitive) narrow the
    rows; role narrows the columns to one role id. "all" disables either.
    """
    category: str = ALL_CATEGORIES
    search: str = ""
    role: str = ALL_ROLES


@dataclass(frozen=True)
class MatrixCell:
    role_id: str
    action_id: str
    permission: ResolvedPermission


@dataclass(frozen=True)
class MatrixRow:
    action: ActionRecord
    cells: tuple[MatrixCell, ...]


@dataclass(frozen=True)
class MatrixGrid:
    roles: tuple[RoleRecord, ...]
    rows: tuple[MatrixRow, ...]


@dataclass(frozen=True)
class ExportRow:
    role: str
    action: str
    status: str
    limit: str
    conditions: str
    category: str

    def as_tuple(self) -> tuple[str, ...]:
        return (self.role, self.action, self.status, self.limit, self.conditions, self.category)


def _matches(action: ActionRecord, matrix_filter: MatrixFilter) -> bool:
    if matrix_filter.category != ALL_CATEGORIES and action.category != matrix_filter.category:
        return False
    term = matrix_filter.search.lower()
    if not term:
        return True
    return term in action.name.lower() or term in (action.description or "").lower()


def filter_actions(actions: Iterable[ActionRecord], matrix_filter: MatrixFilter) -> list[ActionRecord]:
    """Actions in the filter's category whose name or description contains the search term."""
    return [action for action in actions if _matches(action, matrix_filter)]


def filter_roles(roles: Iterable[RoleRecord], matrix_filter: MatrixFilter) -> tuple[RoleRecord, ...]:
    if matrix_filter.role == ALL_ROLES:
        return tuple(roles)
    return tuple(role for role in roles if role.id == matrix_filter.role)


def project(snapshot: MatrixSnapshot, matrix_filter: MatrixFilter | None = None) -> MatrixGrid:
    """
    Build the grid: one row per filtered action, one cell per shown role.

    Row and column order follow the snapshot. An unknown role id leaves the
    grid without columns.
    """
    matrix_filter = matrix_filter or MatrixFilter()
    roles = filter_roles(snapshot.roles, matrix_filter)
    rows = []
    for action in filter_actions(snapshot.actions, matrix_filter):
        cells = tuple(
            MatrixCell(
                role_id=role.id,
                action_id=action.id,
                permission=resolve(snapshot.index, role.id, action.id),
            )
            for role in roles
        )
        rows.append(MatrixRow(action=action, cells=cells))
    return MatrixGrid(roles=roles, rows=tuple(rows))


def flatten(snapshot: MatrixSnapshot) -> list[ExportRow]:
    """
    Export rows for every role x action pair, ignoring any filter.

    Missing rows export as "denied"; missing limit, conditions or category
    export as empty strings.
    """
    rows = []
    for role in snapshot.roles:
        for action in snapshot.actions:
            resolved = resolve(snapshot.index, role.id, action.id)
            rows.append(ExportRow(
                role=role.name,
                action=action.name,
                status=resolved.status.value,
                limit="" if resolved.limit_value is None else str(resolved.limit_value),
                conditions=resolved.conditions or "",
                category=action.category or "",
            ))
    return rows


def render_csv(rows: Iterable[ExportRow]) -> str:
    """Render export rows as CSV with every field double-quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(row.as_tuple())
    return buffer.getvalue()


def export_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"authorization-matrix-{today.isoformat()}.csv"


def categories(actions: Iterable[ActionRecord]) -> list[str]:
    """Distinct non-empty categories in first-seen order."""
    seen: dict[str, None] = {}
    for action in actions:
        if action.category:
            seen.setdefault(action.category, None)
    return list(seen)


def summarize(snapshot: MatrixSnapshot, profile_count: int) -> dict[str, int]:
    """Dashboard counters: catalog size, users and stored permissions per status."""
    by_status = Counter(p.status for p in snapshot.permissions)
    return {
        "roles": len(snapshot.roles),
        "actions": len(snapshot.actions),
        "users": profile_count,
        "granted": by_status[PermissionStatus.GRANTED],
        "conditional": by_status[PermissionStatus.CONDITIONAL],
        "denied": by_status[PermissionStatus.DENIED],
        "unset": len(snapshot.roles) * len(snapshot.actions) - len(snapshot.permissions),
    }
