"""Base Repository Pattern for VoiceAI.

Generic async CRUD shared by the user, call, report and notification
repositories. Repositories only flush; the caller owns the transaction.
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voiceai.core.exceptions import RecordAlreadyExistsError, RecordNotFoundError
from voiceai.db.base import Base

# Type variable for model classes
ModelT = TypeVar("ModelT", bound=Base)


def as_uuid(value: UUID | str) -> UUID:
    """Coerce a string primary key to UUID."""
    return value if isinstance(value, UUID) else UUID(str(value))


class BaseRepository(Generic[ModelT]):
    """Generic base repository with async CRUD operations.

    Usage:
        class NotificationRepository(BaseRepository[NotificationModel]):
            def __init__(self, session: AsyncSession):
                super().__init__(NotificationModel, session)
    """

    def __init__(self, model: type[ModelT], session: AsyncSession):
        self._model = model
        self._session = session

    def _where(self, stmt: Any, filters: dict[str, Any]) -> Any:
        """Apply column equality filters; unknown columns are ignored."""
        for field, value in filters.items():
            column = getattr(self._model, field, None)
            if column is not None:
                stmt = stmt.where(column == value)
        return stmt

    async def get(self, id: UUID | str) -> ModelT | None:
        """Get a single record by primary key, or None."""
        stmt = select(self._model).where(self._model.id == as_uuid(id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, id: UUID | str) -> ModelT:
        """Get a single record by ID.

        Raises:
            RecordNotFoundError: If record not found
        """
        obj = await self.get(id)
        if obj is None:
            raise RecordNotFoundError(
                f"{self._model.__name__} with id {id} not found",
                details={"id": str(id)},
            )
        return obj

    async def create(self, obj_in: ModelT) -> ModelT:
        """Insert a record and return it with server defaults loaded.

        The insert runs in a savepoint, so a rejected row leaves the rest
        of the caller's transaction untouched.

        Raises:
            RecordAlreadyExistsError: A unique constraint rejected the row.
        """
        try:
            async with self._session.begin_nested():
                self._session.add(obj_in)
                await self._session.flush()
        except IntegrityError as e:
            raise RecordAlreadyExistsError(
                f"{self._model.__name__} already exists",
                cause=e,
            ) from e
        await self._session.refresh(obj_in)
        return obj_in

    async def update(self, id: UUID | str, values: dict[str, Any]) -> ModelT | None:
        """Set fields on one record. Returns None when the id is unknown."""
        db_obj = await self.get(id)
        if db_obj is None:
            return None

        for field, value in values.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def count(self, **filters: Any) -> int:
        stmt = self._where(select(func.count()).select_from(self._model), filters)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def find_one(self, **filters: Any) -> ModelT | None:
        stmt = self._where(select(self._model), filters).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def bulk_update(
        self,
        filters: dict[str, Any],
        updates: dict[str, Any],
    ) -> int:
        """Update every record matching filters.

        Returns:
            Number of records updated
        """
        stmt = self._where(update(self._model), filters)
        stmt = stmt.values(**updates).execution_options(synchronize_session="fetch")
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount
