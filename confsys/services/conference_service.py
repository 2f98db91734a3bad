"""ConferenceService — conference lifecycle, chairs and lookup."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.conference_dao import ConferenceDAO
from confsys.dao.conference_user_dao import ConferenceUserDAO
from confsys.dao.paper_dao import PaperDAO
from confsys.dao.user_dao import UserDAO
from confsys.models.conference import Conference
from confsys.models.enums import ConferencePhase, RoleType
from confsys.services import DuplicateResourceError, NotFoundError, ValidationError
from confsys.services.lifecycle import advance_phase, require_phase
from confsys.services.membership_service import (
    CONFERENCE_NOT_FOUND_MSG,
    AuthPolicy,
    Caller,
    MembershipResolver,
)
from confsys.services.review_service import ReviewService
from confsys.services.role_service import RoleService

log = structlog.get_logger(__name__)

NAME_MAX_LENGTH = 50
_DUPLICATE_NAME_MSG = "A conference with the provided name already exists"


def _validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("The name field is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Conference name must not exceed {NAME_MAX_LENGTH} characters")
    return name


class ConferenceService:
    """Stateless service for the conference workflow.

    Every mutating operation resolves chair membership with the HIDE policy:
    a caller who does not chair the conference is told it does not exist.
    """

    def __init__(
        self,
        conference_dao: ConferenceDAO,
        conference_user_dao: ConferenceUserDAO,
        paper_dao: PaperDAO,
        user_dao: UserDAO,
        membership: MembershipResolver,
        role_service: RoleService,
        review_service: ReviewService,
    ) -> None:
        self._conference_dao = conference_dao
        self._conference_user_dao = conference_user_dao
        self._paper_dao = paper_dao
        self._user_dao = user_dao
        self._membership = membership
        self._role_service = role_service
        self._review_service = review_service

    # ── helpers ───────────────────────────────────────────────────────

    async def _load(
        self, session: AsyncSession, conference_id: uuid.UUID, *, for_update: bool = False
    ) -> Conference:
        if for_update:
            conference = await self._conference_dao.get_for_update(session, conference_id)
        else:
            conference = await self._conference_dao.get_by_id(session, conference_id)
        if conference is None:
            raise NotFoundError(CONFERENCE_NOT_FOUND_MSG.format(conference_id))
        return conference

    async def _load_as_chair(
        self,
        session: AsyncSession,
        caller: Caller,
        conference_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Conference:
        conference = await self._load(session, conference_id, for_update=for_update)
        await self._membership.require_chair(session, conference.id, caller, AuthPolicy.HIDE)
        return conference

    async def _detail(
        self, session: AsyncSession, conference: Conference, is_chair: bool
    ) -> dict:
        chairs = await self._conference_user_dao.list_chairs(session, conference.id)
        papers = (
            await self._paper_dao.list_by_conference(session, conference.id) if is_chair else []
        )
        return {
            "conference": conference,
            "chairs": chairs,
            "papers": papers,
            "is_chair": is_chair,
        }

    # ── create / update ───────────────────────────────────────────────

    async def create(
        self,
        session: AsyncSession,
        caller: Caller,
        *,
        name: str,
        description: str = "",
    ) -> Conference:
        """Create a conference in CREATED with the caller as its first chair."""
        name = _validate_name(name)
        if await self._conference_dao.exists_by_name(session, name):
            raise DuplicateResourceError(_DUPLICATE_NAME_MSG)

        conference = await self._conference_dao.create_unique(
            session, name=name, description=(description or "").strip()
        )
        if conference is None:
            raise DuplicateResourceError(_DUPLICATE_NAME_MSG)

        await self._conference_user_dao.add(session, conference.id, caller.user_id)
        await self._role_service.grant(session, caller.user_id, RoleType.PC_CHAIR)

        log.info(
            "conference.created",
            conference_id=str(conference.id),
            user_id=str(caller.user_id),
        )
        return conference

    async def update(
        self,
        session: AsyncSession,
        caller: Caller,
        conference_id: uuid.UUID,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Conference:
        """Change name and/or description. Blank values count as absent."""
        conference = await self._load_as_chair(session, caller, conference_id)

        values: dict[str, str] = {}
        if name is not None and name.strip():
            values["name"] = _validate_name(name)
            if await self._conference_dao.exists_by_name(
                session, values["name"], exclude_id=conference.id
            ):
                raise DuplicateResourceError(_DUPLICATE_NAME_MSG)
        if description is not None and description.strip():
            values["description"] = description.strip()
        if not values:
            raise ValidationError(
                "At least one valid property must be provided to update conference"
            )

        updated = await self._conference_dao.update_unique(session, conference, **values)
        if updated is None:
            raise DuplicateResourceError(_DUPLICATE_NAME_MSG)
        log.info("conference.updated", conference_id=str(conference_id), fields=sorted(values))
        return updated

    async def add_chair(
        self,
        session: AsyncSession,
        caller: Caller,
        conference_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """Make *user_id* a chair of the conference; an existing chair is a duplicate."""
        conference = await self._load_as_chair(session, caller, conference_id)
        user = await self._user_dao.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"User not found with id: {user_id}")

        if not await self._conference_user_dao.add(session, conference.id, user.id):
            raise DuplicateResourceError(
                f"User with id: {user.id} is already PCChair for conference with id: "
                f"{conference.id}"
            )
        await self._role_service.grant(session, user.id, RoleType.PC_CHAIR)
        log.info(
            "conference.chair_added",
            conference_id=str(conference.id),
            user_id=str(user.id),
        )

    # ── phase progression ─────────────────────────────────────────────

    async def _advance(
        self,
        session: AsyncSession,
        caller: Caller,
        conference_id: uuid.UUID,
        target: ConferencePhase,
    ) -> Conference:
        # row lock: two chairs advancing the same conference serialize here
        conference = await self._load_as_chair(session, caller, conference_id, for_update=True)
        previous = advance_phase(conference, target)
        conference = await self._conference_dao.update(session, conference.id, phase=target)
        log.info(
            "conference.phase_advanced",
            conference_id=str(conference.id),
            from_phase=previous.value,
            to_phase=target.value,
            user_id=str(caller.user_id),
        )
        return conference

    async def start_submission(
        self, session: AsyncSession, caller: Caller, conference_id: uuid.UUID
    ) -> Conference:
        return await self._advance(session, caller, conference_id, ConferencePhase.SUBMISSION)

    async def start_assignment(
        self, session: AsyncSession, caller: Caller, conference_id: uuid.UUID
    ) -> Conference:
        return await self._advance(session, caller, conference_id, ConferencePhase.ASSIGNMENT)

    async def start_review(
        self, session: AsyncSession, caller: Caller, conference_id: uuid.UUID
    ) -> Conference:
        return await self._advance(session, caller, conference_id, ConferencePhase.REVIEW)

    async def start_decision(
        self, session: AsyncSession, caller: Caller, conference_id: uuid.UUID
    ) -> Conference:
        """Advance to DECISION. Unscored reviews do not block; they are reported."""
        conference = await self._advance(
            session, caller, conference_id, ConferencePhase.DECISION
        )
        pending = await self._review_service.pending_count(session, conference.id)
        if pending:
            log.warning(
                "conference.decision_with_pending_reviews",
                conference_id=str(conference.id),
                pending=pending,
            )
        return conference

    async def start_final(
        self, session: AsyncSession, caller: Caller, conference_id: uuid.UUID
    ) -> Conference:
        return await self._advance(session, caller, conference_id, ConferencePhase.FINAL)

    # ── reads ─────────────────────────────────────────────────────────

    async def get(
        self, session: AsyncSession, caller: Caller | None, conference_id: uuid.UUID
    ) -> dict:
        """Return the conference with its chairs; papers only for a chair.

        Anonymous callers get the public detail.
        """
        conference = await self._load(session, conference_id)
        is_chair = caller is not None and await self._membership.is_chair(
            session, conference.id, caller.user_id
        )
        return await self._detail(session, conference, is_chair)

    async def search(
        self,
        session: AsyncSession,
        caller: Caller | None,
        *,
        name: str = "",
        description: str = "",
    ) -> list[dict]:
        conferences = await self._conference_dao.search(
            session, name=name or "", description=description or ""
        )
        chaired: set[uuid.UUID] = set()
        if caller is not None:
            chaired = await self._conference_user_dao.chaired_conference_ids(
                session, caller.user_id, [c.id for c in conferences]
            )
        return [await self._detail(session, c, c.id in chaired) for c in conferences]

    # ── delete ────────────────────────────────────────────────────────

    async def delete(
        self, session: AsyncSession, caller: Caller, conference_id: uuid.UUID
    ) -> None:
        """Delete a conference that has not opened for submission yet.

        Chair memberships go with it; papers keep existing, detached.
        """
        conference = await self._load_as_chair(session, caller, conference_id, for_update=True)
        require_phase(conference, ConferencePhase.CREATED, "can not be deleted")
        await self._conference_dao.delete(session, conference.id)
        log.info("conference.deleted", conference_id=str(conference_id), user_id=str(caller.user_id))
