"""
Entity store: table-addressed access to the matrix records.

Wraps an AsyncSession behind select/get/insert/update/delete calls keyed by
table name, and turns SQLAlchemy failures into StoreError subclasses. Every
write commits immediately; a failed write is rolled back before the error is
raised, so no partial state is left behind.

Usage:
    store = EntityStore(db)
    role = await store.insert("roles", name="Manager")
    await store.update("roles", role.id, {"description": "Department lead"})
"""
from typing import Any, Sequence

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import Base
from app.core.database.engine import get_db
from app.core.exceptions import (
    ConstraintViolationError,
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from app.utils import get_logger


log = get_logger(__name__)


def _table_registry() -> dict[str, type[Base]]:
    from app.features.users.models import Profile
    from app.features.matrix.models import Role, Action, Permission, PermissionExclusion

    return {
        model.__tablename__: model
        for model in (Role, Action, Permission, Profile, PermissionExclusion)
    }


class EntityStore:
    """Generic query/insert/update interface over the matrix tables."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._tables = _table_registry()

    def model(self, table: str) -> type[Base]:
        try:
            return self._tables[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    async def select(self, table: str, order_by: Sequence[str] = (), **filters: Any) -> list[Any]:
        """Return rows of `table` whose columns equal the given filters."""
        model = self.model(table)
        stmt = select(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        for column in order_by:
            stmt = stmt.order_by(getattr(model, column))
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise self._translate(e, table) from e
        return list(result.scalars().all())

    async def first(self, table: str, **filters: Any) -> Any | None:
        rows = await self.select(table, **filters)
        return rows[0] if rows else None

    async def get(self, table: str, row_id: str) -> Any:
        """Return the row with the given id or raise RecordNotFoundError."""
        model = self.model(table)
        try:
            row = await self.session.get(model, row_id)
        except SQLAlchemyError as e:
            raise self._translate(e, table) from e
        if row is None:
            raise RecordNotFoundError(f"{table} row {row_id} not found")
        return row

    async def insert(self, table: str, **values: Any) -> Any:
        row = self.model(table)(**values)
        self.session.add(row)
        await self._commit(table)
        await self.session.refresh(row)
        log.debug("Inserted %s row %s", table, row.id)
        return row

    async def update(self, table: str, row_id: str, patch: dict[str, Any]) -> Any:
        """Apply `patch` to the row in place; keys absent from it are left unchanged."""
        row = await self.get(table, row_id)
        for key, value in patch.items():
            setattr(row, key, value)
        await self._commit(table)
        await self.session.refresh(row)
        log.debug("Updated %s row %s: %s", table, row_id, sorted(patch))
        return row

    async def delete(self, table: str, row_id: str) -> None:
        row = await self.get(table, row_id)
        await self.session.delete(row)
        await self._commit(table)
        log.debug("Deleted %s row %s", table, row_id)

    async def _commit(self, table: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._translate(e, table) from e

    @staticmethod
    def _translate(exc: SQLAlchemyError, table: str) -> StoreError:
        if isinstance(exc, IntegrityError):
            log.warning("Constraint violation on %s: %s", table, exc.orig)
            return ConstraintViolationError(f"Write to {table} violates a constraint")
        if isinstance(exc, OperationalError):
            log.warning("Store unavailable while accessing %s: %s", table, exc.orig)
            return StoreUnavailableError("The data store is unavailable")
        log.warning("Store error on %s: %s", table, exc)
        return StoreError(f"Store operation on {table} failed")


async def get_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    """FastAPI dependency providing an EntityStore bound to the request session."""
    return EntityStore(db)
