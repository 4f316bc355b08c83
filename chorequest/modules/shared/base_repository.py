"""
Base Repository Pattern

Purpose
-------
Provides a type-safe, generic repository abstraction for database operations
following SQLAlchemy 2.0 async patterns. Repositories encapsulate data access
and give every model the same small query vocabulary.

Design Notes
------------
This base repository provides:
- Type-safe reads (by key, by key list, by condition)
- Existence/counting utilities
- Inserts and bulk conditional updates
- Structured debug logging for every call

What this class does NOT do:
- Manage transactions (services use DatabaseService for that)
- Contain business logic

Usage
-----
    class CharacterRepository(BaseRepository[Character]):
        async def find_by_users(
            self, session: AsyncSession, user_ids: list[str]
        ) -> list[Character]:
            return await self.find_many_where(
                session, Character.user_id.in_(user_ids)
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key."""
        instance = await session.get(self.model_class, id_value)

        self.log.debug(
            f"Repository.get: {self._model_name}",
            extra={
                "model": self._model_name,
                "id": id_value,
                "found": instance is not None,
            },
        )
        return instance

    async def get_many(self, session: AsyncSession, id_values: Sequence[Any]) -> List[T]:
        """
        Get multiple records by primary keys.

        Returns fewer instances than requested when some keys do not exist.
        An empty key list short-circuits without a query.
        """
        if not id_values:
            return []

        stmt = select(self.model_class).where(
            self.model_class.id.in_(list(id_values))  # type: ignore[attr-defined]
        )
        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.get_many: {self._model_name}",
            extra={
                "model": self._model_name,
                "requested_count": len(id_values),
                "found_count": len(instances),
            },
        )
        return instances

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
    ) -> Optional[T]:
        """First record matching conditions, in `order_by` order if given."""
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        stmt = stmt.limit(1)

        result = await session.execute(stmt)
        instance = result.scalars().first()

        self.log.debug(
            f"Repository.find_one_where: {self._model_name}",
            extra={"model": self._model_name, "found": instance is not None},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found_count": len(instances),
                "limit": limit,
            },
        )
        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        total = int(result.scalar_one())

        self.log.debug(
            f"Repository.count: {self._model_name}",
            extra={"model": self._model_name, "count": total},
        )
        return total

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def add(self, session: AsyncSession, instance: T) -> T:
        """
        Add a new record and flush so database constraints fire immediately.

        Raises
        ------
        sqlalchemy.exc.IntegrityError
            If the insert violates a constraint.
        """
        session.add(instance)
        await session.flush()

        self.log.debug(
            f"Repository.add: {self._model_name}",
            extra={"model": self._model_name, "id": getattr(instance, "id", None)},
        )
        return instance

    async def update_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: dict[str, Any],
    ) -> int:
        """
        Bulk UPDATE of every row matching conditions.

        Returns the number of rows the database reports as matched.
        """
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        affected = int(result.rowcount or 0)

        self.log.debug(
            f"Repository.update_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "columns": sorted(values),
                "affected_count": affected,
            },
        )
        return affected
