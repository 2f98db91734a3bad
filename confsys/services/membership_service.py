"""Membership resolver — who may act on which conference or paper.

Global capabilities (``RoleType``) say what an account may do in general;
memberships say on which resource. Every workflow operation resolves the
membership first and turns a failed check into an error according to an
explicit :class:`AuthPolicy`:

- ``HIDE``: report the resource as missing (``NotFoundError``), so that
  non-members cannot discover which conferences or papers exist.
- ``REVEAL``: report ``AccessDeniedError``; used where the resource is
  already discoverable (paper file download).
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.conference_user_dao import ConferenceUserDAO
from confsys.dao.paper_user_dao import PaperUserDAO
from confsys.dao.review_dao import ReviewDAO
from confsys.models.enums import PaperRole, RoleType
from confsys.models.paper import Paper
from confsys.services import AccessDeniedError, NotFoundError, ServiceError

log = structlog.get_logger(__name__)

CONFERENCE_NOT_FOUND_MSG = "Conference not found with id: {}"
PAPER_NOT_FOUND_MSG = "Paper not found with id: {}"
ACCESS_DENIED_MSG = "Access denied"


@dataclass(frozen=True)
class Caller:
    """The authenticated account performing an action."""

    user_id: uuid.UUID
    full_name: str
    roles: frozenset[RoleType] = field(default_factory=frozenset)

    def has_role(self, role: RoleType) -> bool:
        return role in self.roles


class AuthPolicy(enum.Enum):
    HIDE = "hide"
    REVEAL = "reveal"


class PaperRelation(str, enum.Enum):
    """Strongest relationship a caller has with a paper, for projections."""

    PC_CHAIR = "PC_CHAIR"
    REVIEWER = "REVIEWER"
    AUTHOR = "AUTHOR"


def _deny(policy: AuthPolicy, not_found_msg: str) -> ServiceError:
    if policy is AuthPolicy.REVEAL:
        return AccessDeniedError(ACCESS_DENIED_MSG)
    return NotFoundError(not_found_msg)


class MembershipResolver:
    """Stateless lookups over conference and paper memberships."""

    def __init__(
        self,
        conference_user_dao: ConferenceUserDAO,
        paper_user_dao: PaperUserDAO,
        review_dao: ReviewDAO,
    ) -> None:
        self._conference_user_dao = conference_user_dao
        self._paper_user_dao = paper_user_dao
        self._review_dao = review_dao

    # ── lookups ───────────────────────────────────────────────────────

    async def is_chair(
        self, session: AsyncSession, conference_id: uuid.UUID | None, user_id: uuid.UUID
    ) -> bool:
        if conference_id is None:
            return False
        return await self._conference_user_dao.is_chair(session, conference_id, user_id)

    async def has_paper_role(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        user_id: uuid.UUID,
        role: PaperRole,
    ) -> bool:
        return await self._paper_user_dao.has_role(session, paper_id, user_id, role)

    async def is_reviewer(
        self, session: AsyncSession, paper_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        """True when the user holds a review row (scored or not) for the paper."""
        review = await self._review_dao.get_for_reviewer(session, paper_id, user_id)
        return review is not None

    async def paper_relation(
        self, session: AsyncSession, paper: Paper, caller: Caller | None
    ) -> PaperRelation | None:
        """Chair of the paper's conference wins over reviewer, reviewer over author."""
        if caller is None:
            return None
        if await self.is_chair(session, paper.conference_id, caller.user_id):
            return PaperRelation.PC_CHAIR
        if await self.is_reviewer(session, paper.id, caller.user_id):
            return PaperRelation.REVIEWER
        if await self.has_paper_role(session, paper.id, caller.user_id, PaperRole.AUTHOR):
            return PaperRelation.AUTHOR
        return None

    # ── requirements ──────────────────────────────────────────────────

    async def require_chair(
        self,
        session: AsyncSession,
        conference_id: uuid.UUID | None,
        caller: Caller,
        policy: AuthPolicy = AuthPolicy.HIDE,
        *,
        not_found_msg: str | None = None,
    ) -> None:
        """Raise unless *caller* chairs the conference.

        *not_found_msg* overrides the hidden-resource message, for checks made
        on behalf of a paper rather than the conference itself.
        """
        if await self.is_chair(session, conference_id, caller.user_id):
            return
        log.info(
            "membership.not_chair",
            user_id=str(caller.user_id),
            conference_id=str(conference_id),
        )
        raise _deny(policy, not_found_msg or CONFERENCE_NOT_FOUND_MSG.format(conference_id))

    async def require_paper_role(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        caller: Caller,
        role: PaperRole,
        policy: AuthPolicy = AuthPolicy.HIDE,
    ) -> None:
        if await self.has_paper_role(session, paper_id, caller.user_id, role):
            return
        log.info(
            "membership.missing_paper_role",
            user_id=str(caller.user_id),
            paper_id=str(paper_id),
            role=role.value,
        )
        raise _deny(policy, PAPER_NOT_FOUND_MSG.format(paper_id))

    async def require_paper_access(
        self,
        session: AsyncSession,
        paper: Paper,
        caller: Caller,
        policy: AuthPolicy = AuthPolicy.REVEAL,
    ) -> PaperRelation:
        """Raise unless *caller* is an author, an assigned reviewer or a chair."""
        relation = await self.paper_relation(session, paper, caller)
        if relation is not None:
            return relation
        log.info(
            "membership.no_paper_access",
            user_id=str(caller.user_id),
            paper_id=str(paper.id),
        )
        raise _deny(policy, PAPER_NOT_FOUND_MSG.format(paper.id))
