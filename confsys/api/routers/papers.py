"""Papers router.

Create and update take multipart form data: list fields (authors,
keywords) are comma-separated and the document is the ``file`` part.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.api.deps import (
    get_current_caller,
    get_optional_caller,
    get_paper_service,
    get_session,
)
from confsys.api.schemas.paper import (
    AddCoAuthorRequest,
    AssignReviewerRequest,
    DecisionRequest,
    PaperPublic,
    PaperView,
    ReviewRequest,
    SubmitPaperRequest,
    paper_view,
)
from confsys.services.membership_service import Caller
from confsys.services.paper_service import PaperService, UploadedFile
from confsys.storage.file_store import PDF_EXTENSION, TEX_EXTENSION

router = APIRouter()

_MEDIA_TYPES = {
    PDF_EXTENSION: "application/pdf",
    TEX_EXTENSION: "application/x-tex",
}


def _split_csv(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return value.split(",")


async def _read_upload(file: UploadFile | None) -> UploadedFile | None:
    if file is None:
        return None
    return UploadedFile(file_name=file.filename or "", content=await file.read())


@router.get("", response_model=list[PaperView])
async def search_papers(
    title: str = Query(""),
    author: str = Query(""),
    abstract_text: str = Query(""),
    session: AsyncSession = Depends(get_session),
    caller: Caller | None = Depends(get_optional_caller),
    svc: PaperService = Depends(get_paper_service),
) -> list[PaperPublic]:
    results = await svc.search(
        session, caller, title=title, author=author, abstract_text=abstract_text
    )
    return [paper_view(detail) for detail in results]


@router.post("", response_model=PaperView, status_code=201)
async def create_paper(
    title: str = Form(...),
    abstract_text: str = Form(...),
    authors: str = Form(...),
    keywords: str = Form(...),
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> PaperPublic:
    paper = await svc.create(
        session,
        caller,
        title=title,
        abstract_text=abstract_text,
        authors=_split_csv(authors),
        keywords=_split_csv(keywords),
        file=await _read_upload(file),
    )
    return paper_view(await svc.get(session, caller, paper.id))


@router.get("/{paper_id}", response_model=PaperView)
async def get_paper(
    paper_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller | None = Depends(get_optional_caller),
    svc: PaperService = Depends(get_paper_service),
) -> PaperPublic:
    return paper_view(await svc.get(session, caller, paper_id))


@router.patch("/{paper_id}", response_model=PaperView)
async def update_paper(
    paper_id: uuid.UUID,
    title: str | None = Form(None),
    abstract_text: str | None = Form(None),
    authors: str | None = Form(None),
    keywords: str | None = Form(None),
    file: UploadFile | None = File(None),
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> PaperPublic:
    await svc.update(
        session,
        caller,
        paper_id,
        title=title,
        abstract_text=abstract_text,
        authors=_split_csv(authors),
        keywords=_split_csv(keywords),
        file=await _read_upload(file),
    )
    return paper_view(await svc.get(session, caller, paper_id))


@router.get("/{paper_id}/download")
async def download_paper(
    paper_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> Response:
    document = await svc.download(session, caller, paper_id)
    return Response(
        content=document.content,
        media_type=_MEDIA_TYPES.get(document.file_extension, "application/octet-stream"),
        headers={
            "Content-Disposition": f'attachment; filename="{document.original_file_name}"'
        },
    )


@router.post("/{paper_id}/authors", status_code=204)
async def add_co_author(
    paper_id: uuid.UUID,
    body: AddCoAuthorRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> None:
    await svc.add_co_author(session, caller, paper_id, body.user_id)


@router.post("/{paper_id}/submission", status_code=204)
async def submit_paper(
    paper_id: uuid.UUID,
    body: SubmitPaperRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> None:
    await svc.submit(session, caller, paper_id, body.conference_id)


@router.post("/{paper_id}/reviewers", status_code=204)
async def assign_reviewer(
    paper_id: uuid.UUID,
    body: AssignReviewerRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> None:
    await svc.assign_reviewer(session, caller, paper_id, body.user_id)


@router.post("/{paper_id}/reviews", status_code=204)
async def review_paper(
    paper_id: uuid.UUID,
    body: ReviewRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> None:
    await svc.review(session, caller, paper_id, score=body.score, comment=body.comment)


@router.put("/{paper_id}/decision", status_code=204)
async def decide_paper(
    paper_id: uuid.UUID,
    body: DecisionRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> None:
    await svc.decide(session, caller, paper_id, body.decision)


@router.put("/{paper_id}/withdrawal", status_code=204)
async def withdraw_paper(
    paper_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    svc: PaperService = Depends(get_paper_service),
) -> None:
    await svc.withdraw(session, caller, paper_id)
