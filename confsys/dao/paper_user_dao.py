"""PaperUserDAO — paper_users table operations (authors and reviewers)."""

import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO
from confsys.models.enums import PaperRole
from confsys.models.paper_user import PaperUser
from confsys.models.user import User


class PaperUserDAO(BaseDAO[PaperUser]):
    model = PaperUser

    async def get_role(
        self, session: AsyncSession, paper_id: uuid.UUID, user_id: uuid.UUID
    ) -> PaperRole | None:
        """Return the user's role on the paper, or None if unrelated."""
        membership = await session.get(PaperUser, (paper_id, user_id))
        return membership.role if membership is not None else None

    async def has_role(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        user_id: uuid.UUID,
        role: PaperRole,
    ) -> bool:
        return await self.get_role(session, paper_id, user_id) == role

    async def add(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        user_id: uuid.UUID,
        role: PaperRole,
    ) -> bool:
        """Insert a membership. Returns False if the user already had one on the paper."""
        stmt = (
            insert(PaperUser)
            .values(paper_id=paper_id, user_id=user_id, role=role)
            .on_conflict_do_nothing(index_elements=["paper_id", "user_id"])
            .returning(PaperUser.user_id)
        )
        result = await session.execute(stmt)
        return result.first() is not None

    async def list_members(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        role: PaperRole | None = None,
    ) -> list[tuple[PaperUser, User]]:
        """Return (membership, user) pairs for the paper, oldest first."""
        stmt = (
            select(PaperUser, User)
            .join(User, User.id == PaperUser.user_id)
            .where(PaperUser.paper_id == paper_id)
            .order_by(PaperUser.assigned_at)
        )
        if role is not None:
            stmt = stmt.where(PaperUser.role == role)
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def count_by_role(
        self, session: AsyncSession, paper_id: uuid.UUID, role: PaperRole
    ) -> int:
        return await self.count(session, paper_id=paper_id, role=role)
