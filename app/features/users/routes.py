"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core import config
from app.core.database.store import EntityStore, get_store
from app.core.exceptions import ConstraintViolationError, RecordNotFoundError, StoreError
from app.core.rate_limit import limiter
from app.features.matrix.resolver import effective_access
from app.features.matrix.snapshot import load_snapshot
from app.features.users.auth import IdentityProvider, get_identity_provider
from app.features.users.capabilities import can_administer, permitted_operations
from app.features.users.dependencies import (
    Principal,
    get_current_principal,
    get_current_profile,
    require_admin,
    role_name_of,
)
from app.features.users.models import Profile
from app.features.users.schemas import (
    EffectiveAccessEntry,
    ExclusionCreate,
    ExclusionResponse,
    MeResponse,
    ProfileResponse,
    RoleAssignment,
    UserAccessResponse,
    UserCreate,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])


def _require_self_or_admin(principal: Principal, user_id: str) -> None:
    if principal.profile_id != user_id and not can_administer(principal.capability):
        log.warning("%s tried to read access of %s", principal.profile_id, user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )


@router.get("/me", response_model=MeResponse)
async def get_current_user_profile(
    profile: Annotated[Profile, Depends(get_current_profile)],
    principal: Annotated[Principal, Depends(get_current_principal)]
):
    """Get current authenticated user's profile, role name and capability."""
    return MeResponse(
        profile=ProfileResponse.model_validate(profile),
        role_name=principal.role_name,
        capability=principal.capability,
        operations=sorted(permitted_operations(principal.capability)),
    )


@router.get("/", response_model=list[ProfileResponse])
async def list_users(
    store: Annotated[EntityStore, Depends(get_store)],
    principal: Annotated[Principal, Depends(get_current_principal)]
):
    """List all profiles."""
    return await store.select("profiles", order_by=("email",))


@router.post("/", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.USER_CREATE_RATE_LIMIT)
async def create_user(
    request: Request,
    body: UserCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    identity: Annotated[IdentityProvider, Depends(get_identity_provider)],
    admin: Annotated[Principal, Depends(require_admin)]
):
    """
    Create a console user (admin only).

    The body is validated and the role checked before Appwrite is called, so a
    bad request never leaves an orphaned account behind. If the profile insert
    fails after sign-up, the Appwrite account is deleted again.
    """
    await store.get("roles", body.role_id)
    if await store.first("profiles", email=body.email) is not None:
        raise ConstraintViolationError(f"A user with email {body.email} already exists")

    account_id = await identity.sign_up(body.email, body.password, body.full_name)
    try:
        profile = await store.insert(
            "profiles",
            id=account_id,
            email=body.email,
            full_name=body.full_name,
            role_id=body.role_id,
        )
    except StoreError:
        log.error("Profile insert failed; removing Appwrite account %s", account_id)
        await identity.delete_account(account_id)
        raise
    log.info("%s created user %s with role %s", admin.profile_id, account_id, body.role_id)
    return profile


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_user_by_id(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    principal: Annotated[Principal, Depends(get_current_principal)]
):
    """Get a profile by ID."""
    return await store.get("profiles", user_id)


# Admin-only routes
@router.patch("/{user_id}/role", response_model=ProfileResponse)
async def assign_role(
    user_id: str,
    assignment: RoleAssignment,
    store: Annotated[EntityStore, Depends(get_store)],
    admin: Annotated[Principal, Depends(require_admin)]
):
    """Reassign a user's role, or clear it with null (admin only)."""
    await store.get("profiles", user_id)

    # Prevent self-demotion
    if user_id == admin.profile_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own role"
        )

    if assignment.role_id is not None:
        await store.get("roles", assignment.role_id)

    profile = await store.update("profiles", user_id, {"role_id": assignment.role_id})
    log.info("%s set role of %s to %s", admin.profile_id, user_id, assignment.role_id)
    return profile


@router.get("/{user_id}/access", response_model=UserAccessResponse)
async def get_user_access(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    principal: Annotated[Principal, Depends(get_current_principal)]
):
    """Effective status of every action for one user (self, or admin)."""
    _require_self_or_admin(principal, user_id)
    profile = await store.get("profiles", user_id)

    snapshot = await load_snapshot(store)
    exclusions = await store.select("permission_exclusions", user_id=user_id)
    access = effective_access(
        snapshot,
        profile.role_id,
        {exclusion.action_id: exclusion.reason for exclusion in exclusions},
    )

    return UserAccessResponse(
        user_id=user_id,
        role_id=profile.role_id,
        role_name=await role_name_of(store, profile.role_id),
        role_assigned=profile.role_id is not None,
        access=[EffectiveAccessEntry.model_validate(entry) for entry in access],
    )


# ============================================================================
# Exclusion Routes
# ============================================================================

@router.get("/{user_id}/exclusions", response_model=list[ExclusionResponse])
async def list_exclusions(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    principal: Annotated[Principal, Depends(get_current_principal)]
):
    """List a user's exclusions (self, or admin)."""
    _require_self_or_admin(principal, user_id)
    await store.get("profiles", user_id)
    return await store.select("permission_exclusions", user_id=user_id)


@router.post(
    "/{user_id}/exclusions",
    response_model=ExclusionResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_exclusion(
    user_id: str,
    body: ExclusionCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    admin: Annotated[Principal, Depends(require_admin)]
):
    """Deny one action to a user regardless of their role (admin only)."""
    await store.get("profiles", user_id)
    await store.get("actions", body.action_id)

    exclusion = await store.insert(
        "permission_exclusions",
        user_id=user_id,
        action_id=body.action_id,
        reason=body.reason,
    )
    log.info("%s excluded %s from action %s", admin.profile_id, user_id, body.action_id)
    return exclusion


@router.delete("/{user_id}/exclusions/{exclusion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exclusion(
    user_id: str,
    exclusion_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    admin: Annotated[Principal, Depends(require_admin)]
):
    """Remove an exclusion (admin only)."""
    exclusion = await store.get("permission_exclusions", exclusion_id)
    if exclusion.user_id != user_id:
        raise RecordNotFoundError(f"permission_exclusions row {exclusion_id} not found")

    await store.delete("permission_exclusions", exclusion_id)
    log.info("%s removed exclusion %s from %s", admin.profile_id, exclusion_id, user_id)
    return None
