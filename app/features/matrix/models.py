"""
Role, Action, Permission and PermissionExclusion models.

The permissions table is the matrix itself: one row per (role, action) pair at
most. A missing row means the pair is denied.
"""
import enum

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from app.core.database.base import Base, TimestampMixin


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.new())


class PermissionStatus(str, enum.Enum):
    """Access state for one (role, action) pair."""
    GRANTED = "granted"
    DENIED = "denied"
    CONDITIONAL = "conditional"


# Names of the reserved policy roles; see app.features.users.capabilities
SYSTEM_ROLE_NAMES = ("View Only", "Edit & View", "Admin")


class Role(Base, TimestampMixin):
    """
    Organizational role, one column of the matrix.

    System roles (View Only, Edit & View, Admin) also decide what a user may
    do in this console and are protected from deletion.
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3B82F6")
    is_system_role: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, system={self.is_system_role})>"


class Action(Base, TimestampMixin):
    """
    Operation whose access is governed by the matrix, one row of the matrix.
    """
    __tablename__ = "actions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Action(id={self.id}, name={self.name!r}, category={self.category!r})>"


class Permission(Base, TimestampMixin):
    """
    Access state of one role for one action.

    Examples:
    - status="granted"
    - status="granted", limit_value=10000 (approval ceiling)
    - status="conditional", conditions="Department level only"
    """
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "action_id", name="uq_permissions_role_action"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("actions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status: Mapped[PermissionStatus] = mapped_column(
        Enum(
            PermissionStatus,
            name="permission_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=PermissionStatus.DENIED,
    )
    limit_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    conditions: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Permission(id={self.id}, role_id={self.role_id}, "
            f"action_id={self.action_id}, status={self.status.value})>"
        )


class PermissionExclusion(Base, TimestampMixin):
    """
    Per-user override that denies one action regardless of the user's role.
    """
    __tablename__ = "permission_exclusions"
    __table_args__ = (
        UniqueConstraint("user_id", "action_id", name="uq_permission_exclusions_user_action"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("actions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PermissionExclusion(user_id={self.user_id}, action_id={self.action_id})>"
