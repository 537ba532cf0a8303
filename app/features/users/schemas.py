"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.matrix.models import PermissionStatus
from app.features.users.capabilities import Capability


class ProfileResponse(BaseModel):
    """Schema for profile responses."""
    id: str
    full_name: str | None = None
    email: str | None = None
    role_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MeResponse(BaseModel):
    """The caller's profile together with what they are allowed to do."""
    profile: ProfileResponse
    role_name: str | None = None
    capability: Capability
    operations: list[str]


class UserCreate(BaseModel):
    """
    Schema for creating a console user.

    The account is created in Appwrite first, then a profile is stored with
    the chosen role.
    """
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=256)
    full_name: str | None = Field(None, max_length=255)
    role_id: str = Field(..., min_length=1, description="Role to assign")


class RoleAssignment(BaseModel):
    """Assign a role to a user; null clears the assignment."""
    role_id: str | None = None


class EffectiveAccessEntry(BaseModel):
    action_id: str
    action_name: str
    category: str | None = None
    status: PermissionStatus
    limit_value: int | None = None
    conditions: str | None = None
    excluded: bool = False
    exclusion_reason: str | None = None

    model_config = {"from_attributes": True}


class UserAccessResponse(BaseModel):
    """Every action's effective status for one user."""
    user_id: str
    role_id: str | None = None
    role_name: str | None = None
    role_assigned: bool
    access: list[EffectiveAccessEntry]


class ExclusionCreate(BaseModel):
    """Deny one action to one user regardless of their role."""
    action_id: str = Field(..., min_length=1)
    reason: str | None = Field(None, max_length=1000)


class ExclusionResponse(BaseModel):
    id: str
    user_id: str
    action_id: str
    reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
