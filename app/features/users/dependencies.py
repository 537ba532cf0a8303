"""
FastAPI dependencies for authentication and capability gating.
"""
from dataclasses import dataclass
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.database.store import EntityStore, get_store
from app.features.users.auth import IdentityProvider, get_identity_provider, verify_jwt_token
from app.features.users.capabilities import Capability, can_administer, can_edit, capability_of
from app.features.users.models import Profile
from app.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    """The caller, with their capability resolved once for the request."""
    profile_id: str
    email: str | None
    role_id: str | None
    role_name: str | None
    capability: Capability


async def role_name_of(store: EntityStore, role_id: str | None) -> str | None:
    if role_id is None:
        return None
    role = await store.first("roles", id=role_id)
    return role.name if role is not None else None


async def get_current_profile(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    store: Annotated[EntityStore, Depends(get_store)],
    identity: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> Profile:
    """
    Get the profile of the authenticated caller.

    This dependency:
    1. Extracts JWT from Authorization header
    2. Decodes it and reads the Appwrite account id
    3. Looks up the profile, creating one with no role on first sight

    Usage:
        @router.get("/me")
        async def get_me(profile: Profile = Depends(get_current_profile)):
            return profile
    """
    payload = verify_jwt_token(credentials.credentials)
    account_id = payload.get("userId")

    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    profile = await store.first("profiles", id=account_id)
    if profile is None:
        account = await identity.get_account(account_id)
        profile = await store.insert(
            "profiles",
            id=account_id,
            email=account.get("email"),
            full_name=account.get("name"),
        )
        log.info("Created profile for account %s with no role", account_id)

    return profile


async def get_current_principal(
    profile: Annotated[Profile, Depends(get_current_profile)],
    store: Annotated[EntityStore, Depends(get_store)],
) -> Principal:
    """Resolve the caller's role name and capability."""
    role_name = await role_name_of(store, profile.role_id)
    return Principal(
        profile_id=profile.id,
        email=profile.email,
        role_id=profile.role_id,
        role_name=role_name,
        capability=capability_of(role_name),
    )


async def get_current_capability(
    principal: Annotated[Principal, Depends(get_current_principal)]
) -> Capability:
    return principal.capability


async def require_edit(
    principal: Annotated[Principal, Depends(get_current_principal)]
) -> Principal:
    """
    Require permission-editing capability.

    Usage:
        @router.put("/permissions")
        async def set_cell(principal: Principal = Depends(require_edit)):
            ...
    """
    if not can_edit(principal.capability):
        log.warning("Edit denied for %s (role=%r)", principal.profile_id, principal.role_name)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Edit privileges required",
        )
    return principal


async def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)]
) -> Principal:
    """Require admin capability (user, role and action management)."""
    if not can_administer(principal.capability):
        log.warning("Admin action denied for %s (role=%r)", principal.profile_id, principal.role_name)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return principal
