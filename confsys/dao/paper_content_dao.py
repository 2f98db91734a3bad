"""PaperContentDAO — paper_contents table operations."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.base import BaseDAO
from confsys.models.paper_content import PaperContent


class PaperContentDAO(BaseDAO[PaperContent]):
    model = PaperContent

    async def get_by_paper(self, session: AsyncSession, paper_id: uuid.UUID) -> PaperContent | None:
        return await self.get_by_id(session, paper_id)
