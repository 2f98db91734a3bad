"""RoleService — global account capabilities."""

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.user_dao import UserDAO
from confsys.models.enums import RoleType

log = structlog.get_logger(__name__)


class RoleService:
    """Grants AUTHOR / PC_CHAIR / REVIEWER capabilities. Granting is idempotent."""

    def __init__(self, user_dao: UserDAO) -> None:
        self._user_dao = user_dao

    async def grant(self, session: AsyncSession, user_id: uuid.UUID, role: RoleType) -> bool:
        """Grant *role*; returns True only when the user did not hold it yet."""
        granted = await self._user_dao.grant_role(session, user_id, role)
        if granted:
            log.info("role.granted", user_id=str(user_id), role=role.value)
        return granted

    async def roles_of(self, session: AsyncSession, user_id: uuid.UUID) -> frozenset[RoleType]:
        return frozenset(await self._user_dao.list_roles(session, user_id))
