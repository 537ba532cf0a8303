"""Test helpers shared by the fixtures and the HTTP tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from app.features.users.auth import IdentityProvider

TOKEN_SECRET = "signature-is-not-checked-by-the-api-0123456789"


def make_token(account_id: str, *, expires_in: timedelta = timedelta(hours=1)) -> str:
    payload = {"userId": account_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, TOKEN_SECRET, algorithm="HS256")


def auth_headers(account_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(account_id)}"}


class FakeIdentityProvider(IdentityProvider):
    """Records calls instead of talking to Appwrite."""

    def __init__(self) -> None:
        self.sign_ups: list[str] = []
        self.deleted: list[str] = []
        # when set, the next sign-up returns this id instead of a fresh one
        self.next_account_id: str | None = None

    async def get_account(self, account_id: str) -> dict:
        return {"$id": account_id, "email": f"{account_id}@example.test", "name": account_id}

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> str:
        self.sign_ups.append(email)
        if self.next_account_id is not None:
            account_id, self.next_account_id = self.next_account_id, None
            return account_id
        return f"account-{len(self.sign_ups)}"

    async def delete_account(self, account_id: str) -> None:
        self.deleted.append(account_id)
