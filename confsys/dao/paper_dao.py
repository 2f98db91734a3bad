"""PaperDAO — papers table operations."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO, like_pattern
from confsys.models.paper import Paper


class PaperDAO(BaseDAO[Paper]):
    model = Paper

    async def exists_by_title(
        self,
        session: AsyncSession,
        title: str,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        """Case-insensitive title check, optionally ignoring one paper."""
        stmt = select(Paper.id).where(func.lower(Paper.title) == title.lower())
        if exclude_id is not None:
            stmt = stmt.where(Paper.id != exclude_id)
        result = await session.execute(stmt.limit(1))
        return result.first() is not None

    async def create_unique(
        self,
        session: AsyncSession,
        *,
        title: str,
        abstract_text: str,
        authors: list[str],
        keywords: list[str],
    ) -> Paper | None:
        """Insert a paper; None if the unique title index rejected it."""
        stmt = (
            insert(Paper)
            .values(
                title=title,
                abstract_text=abstract_text,
                authors=authors,
                keywords=keywords,
            )
            .on_conflict_do_nothing()
            .returning(Paper)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_by_conference(
        self, session: AsyncSession, conference_id: uuid.UUID
    ) -> list[Paper]:
        stmt = (
            select(Paper)
            .where(Paper.conference_id == conference_id)
            .order_by(Paper.created_at, Paper.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def search(
        self,
        session: AsyncSession,
        title: str = "",
        author: str = "",
        abstract_text: str = "",
    ) -> list[Paper]:
        """Case-insensitive substring search over title, author names and abstract.

        Blank arguments do not filter. Author matching runs against the
        comma-joined author list.
        """
        stmt = select(Paper)
        if title.strip():
            stmt = stmt.where(Paper.title.ilike(like_pattern(title.strip()), escape="\\"))
        if author.strip():
            joined = func.array_to_string(Paper.authors, ",")
            stmt = stmt.where(joined.ilike(like_pattern(author.strip()), escape="\\"))
        if abstract_text.strip():
            stmt = stmt.where(
                Paper.abstract_text.ilike(like_pattern(abstract_text.strip()), escape="\\")
            )
        result = await session.execute(stmt.order_by(Paper.title))
        return list(result.scalars().all())
