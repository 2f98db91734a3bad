"""UserDAO — users and user_roles table operations."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO
from confsys.models.enums import RoleType
from confsys.models.user import User
from confsys.models.user_role import UserRole


class UserDAO(BaseDAO[User]):
    model = User

    async def get_by_username(self, session: AsyncSession, username: str) -> User | None:
        """Look up a user by username, ignoring case (usernames are unique that way)."""
        stmt = select(User).where(func.lower(User.username) == username.lower())
        result = await session.execute(stmt)
        return result.scalars().first()

    async def create_unique(
        self,
        session: AsyncSession,
        *,
        username: str,
        full_name: str,
        password_hash: str,
    ) -> User | None:
        """Insert a user, or return None if the username is already taken."""
        stmt = (
            insert(User)
            .values(username=username, full_name=full_name, password_hash=password_hash)
            .on_conflict_do_nothing()
            .returning(User)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    # ── global roles ─────────────────────────────────────────────────────

    async def list_roles(self, session: AsyncSession, user_id: uuid.UUID) -> set[RoleType]:
        stmt = select(UserRole.role).where(UserRole.user_id == user_id)
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def has_role(self, session: AsyncSession, user_id: uuid.UUID, role: RoleType) -> bool:
        return await session.get(UserRole, (user_id, role)) is not None

    async def grant_role(self, session: AsyncSession, user_id: uuid.UUID, role: RoleType) -> bool:
        """Grant *role* to the user. Returns False when it was already held."""
        stmt = (
            insert(UserRole)
            .values(user_id=user_id, role=role)
            .on_conflict_do_nothing(index_elements=["user_id", "role"])
            .returning(UserRole.user_id)
        )
        result = await session.execute(stmt)
        return result.first() is not None
