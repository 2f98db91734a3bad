"""ReviewService — the review ledger.

One row per (paper, reviewer) pair. The row is opened unscored when the
reviewer is assigned and completed exactly once when the score is recorded.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.review_dao import ReviewDAO
from confsys.models.review import SCORE_MAX, SCORE_MIN, Review
from confsys.models.user import User
from confsys.services import NotFoundError, StateConflictError, ValidationError
from confsys.services.membership_service import PAPER_NOT_FOUND_MSG

log = structlog.get_logger(__name__)

SCORE_RANGE_MSG = f"Score must be in the range of [{SCORE_MIN} - {SCORE_MAX}]"


def validate_review(score: float, comment: str) -> None:
    """Raise :class:`ValidationError` for an out-of-range score or blank comment."""
    if score is None or math.isnan(score) or not SCORE_MIN <= score <= SCORE_MAX:
        raise ValidationError(SCORE_RANGE_MSG)
    if comment is None or not comment.strip():
        raise ValidationError("The comment field is required")


class ReviewService:
    def __init__(self, review_dao: ReviewDAO) -> None:
        self._review_dao = review_dao

    async def open(
        self, session: AsyncSession, paper_id: uuid.UUID, reviewer_id: uuid.UUID
    ) -> Review:
        review = await self._review_dao.create(
            session, paper_id=paper_id, reviewer_id=reviewer_id
        )
        log.info("review.opened", paper_id=str(paper_id), reviewer_id=str(reviewer_id))
        return review

    async def require_open(
        self, session: AsyncSession, paper_id: uuid.UUID, reviewer_id: uuid.UUID
    ) -> Review:
        """Return the reviewer's unscored row, locked for update.

        A reviewer without a row on the paper is told the paper does not
        exist; a row that is already scored is a state conflict.
        """
        review = await self._review_dao.get_for_reviewer(
            session, paper_id, reviewer_id, for_update=True
        )
        if review is None:
            raise NotFoundError(PAPER_NOT_FOUND_MSG.format(paper_id))
        if review.is_scored:
            raise StateConflictError(
                f"Review was already submitted for paper with id: {paper_id}"
            )
        return review

    async def record(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        score: float,
        comment: str,
    ) -> Review:
        validate_review(score, comment)
        review = await self.require_open(session, paper_id, reviewer_id)
        updated = await self._review_dao.update(
            session,
            review.id,
            score=score,
            comment=comment.strip(),
            reviewed_at=datetime.now(timezone.utc),
        )
        log.info(
            "review.recorded",
            paper_id=str(paper_id),
            reviewer_id=str(reviewer_id),
            score=score,
        )
        return updated

    async def list_for_paper(
        self, session: AsyncSession, paper_id: uuid.UUID
    ) -> list[tuple[Review, User]]:
        return await self._review_dao.list_by_paper(session, paper_id)

    async def pending_count(self, session: AsyncSession, conference_id: uuid.UUID) -> int:
        """Unscored reviews on the conference's papers. Informational only."""
        return await self._review_dao.count_pending_by_conference(session, conference_id)
