"""Shared fixtures: a throwaway SQLite database, seeded catalog and an HTTP client."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.database.engine import build_engine, build_sessionmaker, create_tables, get_db
from app.core.database.store import EntityStore
from app.core.rate_limit import limiter
from app.features.users.auth import get_identity_provider
from app.main import app
from scripts.seed_matrix import seed_actions, seed_permissions, seed_roles
from tests.support import FakeIdentityProvider


@dataclass(frozen=True)
class SeededMatrix:
    roles: dict[str, str]
    actions: dict[str, str]
    admin_id: str = "admin-account"
    editor_id: str = "editor-account"
    viewer_id: str = "viewer-account"
    unassigned_id: str = "unassigned-account"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'matrix.db'}")
    await create_tables(engine)
    try:
        yield build_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory) -> AsyncIterator[EntityStore]:
    async with session_factory() as session:
        yield EntityStore(session)


@pytest_asyncio.fixture
async def seeded(session_factory) -> SeededMatrix:
    async with session_factory() as session:
        store = EntityStore(session)
        roles = await seed_roles(store)
        actions = await seed_actions(store)
        await seed_permissions(store, roles, actions)

        seeded = SeededMatrix(roles=roles, actions=actions)
        for account_id, role_name in (
            (seeded.admin_id, "Admin"),
            (seeded.editor_id, "Edit & View"),
            (seeded.viewer_id, "View Only"),
        ):
            await store.insert(
                "profiles",
                id=account_id,
                email=f"{account_id}@example.test",
                full_name=account_id,
                role_id=roles[role_name],
            )
        await store.insert(
            "profiles",
            id=seeded.unassigned_id,
            email=f"{seeded.unassigned_id}@example.test",
        )
    return seeded


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest_asyncio.fixture
async def client(session_factory, identity) -> AsyncIterator[AsyncClient]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client

    app.dependency_overrides.clear()
