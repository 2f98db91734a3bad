"""Conferences router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.api.deps import (
    get_conference_service,
    get_current_caller,
    get_optional_caller,
    get_session,
)
from confsys.api.schemas.conference import (
    AddChairRequest,
    ConferencePublic,
    ConferenceView,
    CreateConferenceRequest,
    UpdateConferenceRequest,
    conference_view,
)
from confsys.services.conference_service import ConferenceService
from confsys.services.membership_service import Caller

router = APIRouter()


@router.get("", response_model=list[ConferenceView])
async def search_conferences(
    name: str = Query(""),
    description: str = Query(""),
    session: AsyncSession = Depends(get_session),
    caller: Caller | None = Depends(get_optional_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> list[ConferencePublic]:
    results = await svc.search(session, caller, name=name, description=description)
    return [conference_view(detail) for detail in results]


@router.post("", response_model=ConferenceView, status_code=201)
async def create_conference(
    body: CreateConferenceRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> ConferencePublic:
    conference = await svc.create(
        session, caller, name=body.name, description=body.description
    )
    return conference_view(await svc.get(session, caller, conference.id))


@router.get("/{conference_id}", response_model=ConferenceView)
async def get_conference(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller | None = Depends(get_optional_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> ConferencePublic:
    return conference_view(await svc.get(session, caller, conference_id))


@router.patch("/{conference_id}", response_model=ConferenceView)
async def update_conference(
    conference_id: uuid.UUID,
    body: UpdateConferenceRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> ConferencePublic:
    await svc.update(
        session, caller, conference_id, name=body.name, description=body.description
    )
    return conference_view(await svc.get(session, caller, conference_id))


@router.delete("/{conference_id}", status_code=204)
async def delete_conference(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.delete(session, caller, conference_id)


@router.post("/{conference_id}/chairs", status_code=204)
async def add_chair(
    conference_id: uuid.UUID,
    body: AddChairRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.add_chair(session, caller, conference_id, body.user_id)


# ── phase progression ────────────────────────────────────────────────


@router.put("/{conference_id}/submission", status_code=204)
async def start_submission(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.start_submission(session, caller, conference_id)


@router.put("/{conference_id}/assignment", status_code=204)
async def start_assignment(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.start_assignment(session, caller, conference_id)


@router.put("/{conference_id}/review", status_code=204)
async def start_review(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.start_review(session, caller, conference_id)


@router.put("/{conference_id}/decision", status_code=204)
async def start_decision(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.start_decision(session, caller, conference_id)


@router.put("/{conference_id}/final", status_code=204)
async def start_final(
    conference_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: ConferenceService = Depends(get_conference_service),
) -> None:
    await svc.start_final(session, caller, conference_id)
