"""
Authentication utilities for Appwrite JWT verification and account creation.
"""
import jwt
from typing import Optional
from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from appwrite.client import Client
from appwrite.id import ID
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from app.core import config
from app.core.exceptions import IdentityProviderError
from app.utils import get_logger


log = get_logger(__name__)


class AppwriteClient:
    """Singleton Appwrite client for server-side operations."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create Appwrite client instance."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_jwt_token(token: str) -> dict:
    """
    Verify Appwrite JWT token and return payload.

    Args:
        token: JWT token from Authorization header

    Returns:
        Decoded JWT payload containing user information

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        # Decode JWT without signature verification
        # Appwrite handles token signing - we trust tokens and verify user exists in Appwrite
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )

        return payload

    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


class IdentityProvider:
    """
    Account operations the console needs from the identity provider.

    Swapped for a fake in tests through the get_identity_provider dependency.
    """

    async def get_account(self, account_id: str) -> dict:
        raise NotImplementedError

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> str:
        raise NotImplementedError

    async def delete_account(self, account_id: str) -> None:
        raise NotImplementedError


class AppwriteIdentityProvider(IdentityProvider):
    """
    IdentityProvider backed by the Appwrite Users service.

    The Appwrite SDK is synchronous, so every call runs in the threadpool to
    keep the event loop free.
    """

    def __init__(self, client: Client | None = None):
        self.users = Users(client or AppwriteClient.get_client())

    async def get_account(self, account_id: str) -> dict:
        """
        Get user information from Appwrite.

        Raises:
            HTTPException: If user not found or API error
        """
        try:
            return await run_in_threadpool(self.users.get, account_id)
        except AppwriteException as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Failed to verify user: {str(e)}",
            )

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> str:
        """
        Create an Appwrite account and return its id.

        Raises:
            IdentityProviderError: If Appwrite rejects the account (e.g. email taken)
        """
        try:
            account = await run_in_threadpool(
                self.users.create,
                user_id=ID.unique(),
                email=email,
                password=password,
                name=full_name,
            )
        except AppwriteException as e:
            log.warning("Appwrite rejected account for %s: %s", email, e)
            raise IdentityProviderError(f"Failed to create account: {e.message}") from e
        log.info("Created Appwrite account %s for %s", account["$id"], email)
        return account["$id"]

    async def delete_account(self, account_id: str) -> None:
        """
        Remove an Appwrite account, used to undo a sign-up whose profile was
        never stored.

        Raises:
            IdentityProviderError: If Appwrite refuses the delete
        """
        try:
            await run_in_threadpool(self.users.delete, account_id)
        except AppwriteException as e:
            log.error("Failed to delete Appwrite account %s: %s", account_id, e)
            raise IdentityProviderError(f"Failed to delete account: {e.message}") from e
        log.info("Deleted Appwrite account %s", account_id)


def get_identity_provider() -> IdentityProvider:
    """FastAPI dependency returning the configured identity provider."""
    return AppwriteIdentityProvider()
