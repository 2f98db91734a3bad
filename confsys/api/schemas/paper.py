"""Paper request/response schemas.

The projection depends on the caller's relationship with the paper:

- no relationship: :class:`PaperPublic` (approved papers only)
- author: :class:`PaperAuthorView`, reviews without reviewer identities
- reviewer: :class:`PaperReviewerView`
- chair of the paper's conference: :class:`PaperChairView`
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from confsys.api.schemas.user import UserSummary
from confsys.models.enums import Decision, PaperState
from confsys.services.membership_service import PaperRelation


class SubmitPaperRequest(BaseModel):
    conference_id: uuid.UUID


class AddCoAuthorRequest(BaseModel):
    user_id: uuid.UUID


class AssignReviewerRequest(BaseModel):
    user_id: uuid.UUID


class ReviewRequest(BaseModel):
    # range checked by the service so the error maps to 400
    score: float
    comment: str


class DecisionRequest(BaseModel):
    decision: Decision


# ── reviews ──────────────────────────────────────────────────────────


class AuthorReview(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID
    reviewed_at: datetime | None
    comment: str | None
    score: float | None


class ReviewResponse(AuthorReview):
    reviewer: str


# ── papers ───────────────────────────────────────────────────────────


class PaperPublic(BaseModel):
    view: Literal["public"] = "public"
    id: uuid.UUID
    created_at: datetime
    title: str
    abstract_text: str
    authors: list[str]
    keywords: list[str]


class PaperAuthorView(PaperPublic):
    view: Literal["author"] = "author"
    state: PaperState
    conference_id: uuid.UUID | None
    registered_authors: list[UserSummary]
    reviews: list[AuthorReview]


class PaperReviewerView(PaperPublic):
    view: Literal["reviewer"] = "reviewer"
    state: PaperState
    conference_id: uuid.UUID | None
    reviews: list[ReviewResponse]


class PaperChairView(PaperPublic):
    view: Literal["chair"] = "chair"
    state: PaperState
    conference_id: uuid.UUID | None
    registered_authors: list[UserSummary]
    reviews: list[ReviewResponse]


PaperView = Annotated[
    Union[PaperPublic, PaperAuthorView, PaperReviewerView, PaperChairView],
    Field(discriminator="view"),
]


def review_response(review, reviewer) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        paper_id=review.paper_id,
        reviewed_at=review.reviewed_at,
        comment=review.comment,
        score=review.score,
        reviewer=reviewer.username,
    )


def _author_review(review) -> AuthorReview:
    return AuthorReview(
        id=review.id,
        paper_id=review.paper_id,
        reviewed_at=review.reviewed_at,
        comment=review.comment,
        score=review.score,
    )


def paper_view(detail: dict) -> PaperPublic:
    """Project a PaperService read model for the caller who asked for it."""
    paper = detail["paper"]
    relation = detail["relation"]
    base = {
        "id": paper.id,
        "created_at": paper.created_at,
        "title": paper.title,
        "abstract_text": paper.abstract_text,
        "authors": list(paper.authors),
        "keywords": list(paper.keywords),
    }
    if relation is None:
        return PaperPublic(**base)

    tracked = {"state": paper.state, "conference_id": paper.conference_id}
    registered = [UserSummary.model_validate(u) for u in detail["authors"]]
    if relation is PaperRelation.AUTHOR:
        return PaperAuthorView(
            **base,
            **tracked,
            registered_authors=registered,
            reviews=[_author_review(r) for r, _ in detail["reviews"]],
        )
    reviews = [review_response(r, u) for r, u in detail["reviews"]]
    if relation is PaperRelation.REVIEWER:
        return PaperReviewerView(**base, **tracked, reviews=reviews)
    return PaperChairView(**base, **tracked, registered_authors=registered, reviews=reviews)
