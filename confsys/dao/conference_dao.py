"""ConferenceDAO — conferences table operations."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO, like_pattern
from confsys.models.conference import Conference


class ConferenceDAO(BaseDAO[Conference]):
    model = Conference

    async def exists_by_name(
        self,
        session: AsyncSession,
        name: str,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        """Case-insensitive name check, optionally ignoring one conference."""
        stmt = select(Conference.id).where(func.lower(Conference.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Conference.id != exclude_id)
        result = await session.execute(stmt.limit(1))
        return result.first() is not None

    async def create_unique(
        self,
        session: AsyncSession,
        *,
        name: str,
        description: str,
    ) -> Conference | None:
        """Insert a conference; None if the unique name index rejected it."""
        stmt = (
            insert(Conference)
            .values(name=name, description=description)
            .on_conflict_do_nothing()
            .returning(Conference)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def search(
        self,
        session: AsyncSession,
        name: str = "",
        description: str = "",
    ) -> list[Conference]:
        """Case-insensitive substring search; blank arguments do not filter."""
        stmt = select(Conference)
        if name.strip():
            stmt = stmt.where(Conference.name.ilike(like_pattern(name.strip()), escape="\\"))
        if description.strip():
            stmt = stmt.where(
                Conference.description.ilike(like_pattern(description.strip()), escape="\\")
            )
        result = await session.execute(stmt.order_by(Conference.name))
        return list(result.scalars().all())
