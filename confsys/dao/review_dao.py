"""ReviewDAO — reviews table operations."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO
from confsys.models.paper import Paper
from confsys.models.review import Review
from confsys.models.user import User


class ReviewDAO(BaseDAO[Review]):
    model = Review

    async def get_for_reviewer(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Review | None:
        stmt = select(Review).where(
            Review.paper_id == paper_id,
            Review.reviewer_id == reviewer_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_by_paper(
        self, session: AsyncSession, paper_id: uuid.UUID
    ) -> list[tuple[Review, User]]:
        """Return (review, reviewer) pairs in assignment order."""
        stmt = (
            select(Review, User)
            .join(User, User.id == Review.reviewer_id)
            .where(Review.paper_id == paper_id)
            .order_by(Review.assigned_at, Review.id)
        )
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def count_pending_by_conference(
        self, session: AsyncSession, conference_id: uuid.UUID
    ) -> int:
        """Number of unscored reviews on papers submitted to the conference."""
        stmt = (
            select(func.count())
            .select_from(Review)
            .join(Paper, Paper.id == Review.paper_id)
            .where(
                Paper.conference_id == conference_id,
                Review.reviewed_at.is_(None),
            )
        )
        result = await session.execute(stmt)
        return result.scalar_one()
