"""ConferenceUserDAO — conference_users table operations (chairs)."""

import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO
from confsys.models.conference_user import ConferenceUser
from confsys.models.user import User


class ConferenceUserDAO(BaseDAO[ConferenceUser]):
    model = ConferenceUser

    async def is_chair(
        self, session: AsyncSession, conference_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        return await session.get(ConferenceUser, (conference_id, user_id)) is not None

    async def add(
        self, session: AsyncSession, conference_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        """Add a chair. Returns False when the membership already existed."""
        stmt = (
            insert(ConferenceUser)
            .values(conference_id=conference_id, user_id=user_id)
            .on_conflict_do_nothing(index_elements=["conference_id", "user_id"])
            .returning(ConferenceUser.user_id)
        )
        result = await session.execute(stmt)
        return result.first() is not None

    async def list_chairs(self, session: AsyncSession, conference_id: uuid.UUID) -> list[User]:
        stmt = (
            select(User)
            .join(ConferenceUser, ConferenceUser.user_id == User.id)
            .where(ConferenceUser.conference_id == conference_id)
            .order_by(ConferenceUser.assigned_at)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def chaired_conference_ids(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        conference_ids: list[uuid.UUID],
    ) -> set[uuid.UUID]:
        """Return the subset of *conference_ids* the user chairs, in one query."""
        if not conference_ids:
            return set()
        stmt = select(ConferenceUser.conference_id).where(
            ConferenceUser.user_id == user_id,
            ConferenceUser.conference_id.in_(conference_ids),
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())
