"""Conference request/response schemas.

Chairs of a conference get :class:`ConferenceChairView`; everyone else,
anonymous callers included, gets :class:`ConferencePublic`.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

from confsys.api.schemas.user import UserSummary
from confsys.models.enums import ConferencePhase, PaperState


class CreateConferenceRequest(BaseModel):
    name: str
    description: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class UpdateConferenceRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class AddChairRequest(BaseModel):
    user_id: uuid.UUID


class ConferencePaperSummary(BaseModel):
    id: uuid.UUID
    title: str
    authors: list[str]
    state: PaperState
    created_at: datetime


class ConferencePublic(BaseModel):
    view: Literal["public"] = "public"
    id: uuid.UUID
    name: str
    description: str
    chairs: list[UserSummary]


class ConferenceChairView(ConferencePublic):
    view: Literal["chair"] = "chair"
    phase: ConferencePhase
    created_at: datetime
    papers: list[ConferencePaperSummary]


ConferenceView = Annotated[
    Union[ConferencePublic, ConferenceChairView], Field(discriminator="view")
]


def conference_view(detail: dict) -> ConferencePublic | ConferenceChairView:
    """Project a ConferenceService read model for the caller who asked for it."""
    conference = detail["conference"]
    base = {
        "id": conference.id,
        "name": conference.name,
        "description": conference.description,
        "chairs": [UserSummary.model_validate(u) for u in detail["chairs"]],
    }
    if not detail["is_chair"]:
        return ConferencePublic(**base)
    return ConferenceChairView(
        **base,
        phase=conference.phase,
        created_at=conference.created_at,
        papers=[
            ConferencePaperSummary(
                id=p.id,
                title=p.title,
                authors=list(p.authors),
                state=p.state,
                created_at=p.created_at,
            )
            for p in detail["papers"]
        ],
    )
