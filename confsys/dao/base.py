"""Generic base DAO — CRUD over the ORM plus a few Core helpers."""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

_LIKE_ESCAPE = "\\"


def like_pattern(fragment: str) -> str:
    """Return a ``%fragment%`` pattern with LIKE wildcards in *fragment* escaped."""
    escaped = (
        fragment.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class BaseDAO(Generic[ModelT]):
    """Base data-access object. Subclasses set ``model`` class attribute.

    Primary keys may be a scalar or, for association tables, a tuple in
    column order, exactly as :meth:`AsyncSession.get` expects.
    """

    model: type[ModelT]

    @staticmethod
    def _require_pk(pk: Any) -> None:
        """Raise ValueError if *pk* is None."""
        if pk is None:
            raise ValueError("pk must not be None")

    def _check_columns(self, values: dict[str, Any]) -> None:
        immutable = {"id", "created_at", "updated_at"}
        column_keys = set(self.model.__mapper__.column_attrs.keys())
        for key in values:
            if key in immutable:
                raise AttributeError(f"'{key}' is immutable and cannot be updated")
            if key not in column_keys:
                raise AttributeError(f"{self.model.__name__} has no column '{key}'")

    async def get_by_id(self, session: AsyncSession, pk: Any) -> ModelT | None:
        self._require_pk(pk)
        return await session.get(self.model, pk)

    async def get_for_update(self, session: AsyncSession, pk: Any) -> ModelT | None:
        """Load a row with ``SELECT ... FOR UPDATE``.

        Concurrent read-modify-write sequences on the same row serialize on
        the row lock until the surrounding transaction ends.
        """
        self._require_pk(pk)
        return await session.get(self.model, pk, with_for_update=True)

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        obj = self.model(**values)
        session.add(obj)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def update(self, session: AsyncSession, pk: Any, **values: Any) -> ModelT | None:
        self._require_pk(pk)
        obj = await session.get(self.model, pk)
        if obj is None:
            return None
        self._check_columns(values)
        for key, val in values.items():
            setattr(obj, key, val)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def update_unique(
        self, session: AsyncSession, obj: ModelT, **values: Any
    ) -> ModelT | None:
        """Apply *values* to a loaded row inside a savepoint.

        Returns None, with the savepoint rolled back, when a unique index
        rejects the new values. *obj* is expired in that case and must not
        be read again.
        """
        self._check_columns(values)
        try:
            async with session.begin_nested():
                for key, val in values.items():
                    setattr(obj, key, val)
                await session.flush()
        except IntegrityError:
            return None
        await session.refresh(obj)
        return obj

    async def delete(self, session: AsyncSession, pk: Any) -> bool:
        self._require_pk(pk)
        obj = await session.get(self.model, pk)
        if obj is None:
            return False
        await session.delete(obj)
        await session.flush()
        return True

    async def count(self, session: AsyncSession, **filters: Any) -> int:
        """Return the number of rows matching *filters* (all rows if none)."""
        stmt = select(func.count()).select_from(self.model)
        for key, val in filters.items():
            stmt = stmt.where(getattr(self.model, key) == val)
        result = await session.execute(stmt)
        return result.scalar_one()
