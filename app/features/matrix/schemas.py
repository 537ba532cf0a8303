"""
Pydantic schemas for the authorization matrix.

Request and response models for roles, actions, permission cells, the grid and
its summary.
"""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.core.exceptions import ValidationFailedError
from app.features.matrix.models import PermissionStatus
from app.features.matrix.resolver import parse_status


def _status_validator(value: Any) -> PermissionStatus:
    try:
        return parse_status(value)
    except ValidationFailedError as e:
        raise ValueError(e.message) from None


def _strip_required(value: Optional[str]) -> str:
    if value is None:
        raise ValueError("may not be null")
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    color: str = Field("#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$", description="Display color")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class RoleUpdate(BaseModel):
    """Schema for updating a role. Unset fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> str:
        return _strip_required(v)

    @field_validator("color")
    @classmethod
    def color_not_null(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("may not be null")
        return v


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    is_system_role: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Action Schemas
# ============================================================================

class ActionBase(BaseModel):
    """Base action schema."""
    name: str = Field(..., min_length=1, max_length=200, description="Unique action name")
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[str] = Field(None, max_length=100, description="Grouping label, e.g. 'Financial'")


class ActionCreate(ActionBase):
    """Schema for creating a new action."""

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class ActionUpdate(BaseModel):
    """Schema for updating an action. Unset fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[str] = Field(None, max_length=100)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> str:
        return _strip_required(v)


class ActionResponse(ActionBase):
    """Schema for action response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionSet(BaseModel):
    """
    Schema for setting one matrix cell.

    limit_value and conditions are only changed when present in the body;
    send null to clear them.
    """
    role_id: str = Field(..., description="Role ID")
    action_id: str = Field(..., description="Action ID")
    status: PermissionStatus = Field(..., description="granted, denied or conditional ('allowed' is accepted)")
    limit_value: Optional[int] = Field(None, ge=0, description="Numeric cap, e.g. an approval ceiling")
    conditions: Optional[str] = Field(None, max_length=1000, description="Free-text qualifier")

    normalize_status = field_validator("status", mode="before")(_status_validator)


class PermissionToggle(BaseModel):
    """Schema for advancing a cell one step in the toggle cycle."""
    role_id: str = Field(..., description="Role ID")
    action_id: str = Field(..., description="Action ID")


class PermissionResponse(BaseModel):
    """Schema for a stored permission row."""
    id: str
    role_id: str
    action_id: str
    status: PermissionStatus
    limit_value: Optional[int] = None
    conditions: Optional[str] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ResolvedPermissionResponse(BaseModel):
    """Effective state of one cell; a missing row resolves to denied."""
    role_id: str
    action_id: str
    status: PermissionStatus
    limit_value: Optional[int] = None
    conditions: Optional[str] = None


# ============================================================================
# Grid Schemas
# ============================================================================

class MatrixRole(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    color: str
    is_system_role: bool

    model_config = ConfigDict(from_attributes=True)


class MatrixAction(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MatrixCellResponse(BaseModel):
    role_id: str
    status: PermissionStatus
    limit_value: Optional[int] = None
    conditions: Optional[str] = None


class MatrixRowResponse(BaseModel):
    action: MatrixAction
    cells: List[MatrixCellResponse]


class MatrixResponse(BaseModel):
    """Grid: columns are roles, rows are the actions left after filtering."""
    roles: List[MatrixRole]
    rows: List[MatrixRowResponse]
    category: str
    search: str
    role: str


class MatrixSummary(BaseModel):
    roles: int
    actions: int
    users: int
    granted: int
    conditional: int
    denied: int
    unset: int
