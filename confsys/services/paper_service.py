"""PaperService — paper workflow from creation to decision."""

from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.conference_dao import ConferenceDAO
from confsys.dao.paper_content_dao import PaperContentDAO
from confsys.dao.paper_dao import PaperDAO
from confsys.dao.paper_user_dao import PaperUserDAO
from confsys.dao.user_dao import UserDAO
from confsys.models.conference import Conference
from confsys.models.enums import ConferencePhase, Decision, PaperRole, PaperState, RoleType
from confsys.models.paper import Paper
from confsys.models.review import Review
from confsys.services import (
    DuplicateResourceError,
    NotFoundError,
    ServerError,
    StateConflictError,
    UnsupportedFileError,
    ValidationError,
)
from confsys.services.lifecycle import (
    DECISION_OUTCOMES,
    require_paper_state,
    require_phase,
    transition_paper,
)
from confsys.services.membership_service import (
    CONFERENCE_NOT_FOUND_MSG,
    PAPER_NOT_FOUND_MSG,
    AuthPolicy,
    Caller,
    MembershipResolver,
)
from confsys.services.review_service import ReviewService, validate_review
from confsys.services.role_service import RoleService
from confsys.storage.file_store import FileStore

log = structlog.get_logger(__name__)

TITLE_MAX_LENGTH = 100
FILE_NAME_MAX_LENGTH = 100
DEFAULT_MAX_REVIEWERS = 2

_FILE_NAME_RE = re.compile(r"^[a-zA-Z0-9\- ._]+$")
_DUPLICATE_TITLE_MSG = "A paper with the provided title already exists"
_REVIEWABLE_STATES = frozenset({PaperState.SUBMITTED, PaperState.REVIEWED})


@dataclass
class UploadedFile:
    """A document as received from the client."""

    file_name: str
    content: bytes


@dataclass
class PaperDownload:
    content: bytes
    original_file_name: str
    file_extension: str


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def _validate_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise ValidationError("You must provide the title of the paper")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must not exceed {TITLE_MAX_LENGTH} characters")
    return title


def _validate_abstract(abstract_text: str) -> str:
    if not abstract_text.strip():
        raise ValidationError("You must provide the abstract text of the paper")
    return abstract_text.strip()


def _validate_names(values: list[str], field: str, message: str) -> list[str]:
    if not values:
        raise ValidationError(f"You must provide at least one {field}")
    cleaned = [v.strip() for v in values]
    if any(not v for v in cleaned):
        raise ValidationError(message)
    return cleaned


def _validate_authors(authors: list[str]) -> list[str]:
    return _validate_names(authors, "author", "Every author you provide must have a name")


def _validate_keywords(keywords: list[str]) -> list[str]:
    return _validate_names(keywords, "keyword", "Every keyword you provide must have a value")


def _validate_file(file: UploadedFile, file_store: FileStore) -> str:
    """Check the client file name and content; return the detected extension."""
    name = file.file_name or ""
    if not _FILE_NAME_RE.match(name):
        raise ValidationError(
            "The file name must contain only alphanumeric characters, hyphen, "
            "underscores spaces, and periods"
        )
    if len(name) > FILE_NAME_MAX_LENGTH:
        raise ValidationError(f"File name must not exceed {FILE_NAME_MAX_LENGTH} characters")
    extension = file_store.extension_of(file.content)
    if extension is None:
        raise UnsupportedFileError(
            "The provided file is not supported. Make sure your file is either a pdf "
            "or a Latex one"
        )
    return extension


# ---------------------------------------------------------------------------
# PaperService
# ---------------------------------------------------------------------------


class PaperService:
    """Stateless service for the paper workflow.

    Authorization on mutations uses the HIDE policy; only :meth:`download`
    reveals that the paper exists to a caller who may not read it.
    """

    def __init__(
        self,
        paper_dao: PaperDAO,
        paper_user_dao: PaperUserDAO,
        paper_content_dao: PaperContentDAO,
        conference_dao: ConferenceDAO,
        user_dao: UserDAO,
        membership: MembershipResolver,
        role_service: RoleService,
        review_service: ReviewService,
        file_store: FileStore,
        max_reviewers: int | None = None,
    ) -> None:
        self._paper_dao = paper_dao
        self._paper_user_dao = paper_user_dao
        self._content_dao = paper_content_dao
        self._conference_dao = conference_dao
        self._user_dao = user_dao
        self._membership = membership
        self._role_service = role_service
        self._review_service = review_service
        self._file_store = file_store
        self._max_reviewers = max_reviewers

    @property
    def max_reviewers(self) -> int:
        """Reviewer cap per paper; ``CONFSYS_MAX_REVIEWERS`` unless set explicitly."""
        if self._max_reviewers is not None:
            return self._max_reviewers
        raw = os.getenv("CONFSYS_MAX_REVIEWERS", str(DEFAULT_MAX_REVIEWERS))
        try:
            return int(raw)
        except ValueError:
            log.error("paper.bad_max_reviewers", value=raw)
            raise ServerError("CONFSYS_MAX_REVIEWERS is not an integer") from None

    # ── helpers ───────────────────────────────────────────────────────

    async def _load(
        self, session: AsyncSession, paper_id: uuid.UUID, *, for_update: bool = False
    ) -> Paper:
        if for_update:
            paper = await self._paper_dao.get_for_update(session, paper_id)
        else:
            paper = await self._paper_dao.get_by_id(session, paper_id)
        if paper is None:
            raise NotFoundError(PAPER_NOT_FOUND_MSG.format(paper_id))
        return paper

    async def _load_as_author(
        self, session: AsyncSession, caller: Caller, paper_id: uuid.UUID
    ) -> Paper:
        paper = await self._load(session, paper_id, for_update=True)
        await self._membership.require_paper_role(
            session, paper.id, caller, PaperRole.AUTHOR, AuthPolicy.HIDE
        )
        return paper

    async def _load_as_chair(
        self, session: AsyncSession, caller: Caller, paper_id: uuid.UUID
    ) -> tuple[Paper, Conference]:
        """Load a paper whose conference the caller chairs.

        A paper that was never submitted has no chair, so it is hidden too.
        """
        paper = await self._load(session, paper_id, for_update=True)
        await self._membership.require_chair(
            session,
            paper.conference_id,
            caller,
            AuthPolicy.HIDE,
            not_found_msg=PAPER_NOT_FOUND_MSG.format(paper_id),
        )
        return paper, await self._load_conference(session, paper.conference_id)

    async def _load_conference(
        self, session: AsyncSession, conference_id: uuid.UUID | None
    ) -> Conference:
        conference = None
        if conference_id is not None:
            conference = await self._conference_dao.get_by_id(session, conference_id)
        if conference is None:
            raise NotFoundError(CONFERENCE_NOT_FOUND_MSG.format(conference_id))
        return conference

    async def _store_content(
        self,
        session: AsyncSession,
        paper_id: uuid.UUID,
        file: UploadedFile,
        extension: str,
    ) -> None:
        """Write the document under a fresh generated name and point the paper at it.

        The previous document, if any, is removed only once the request
        transaction commits.
        """
        generated = str(uuid.uuid4())
        await self._file_store.store(file.content, generated)

        content = await self._content_dao.get_by_paper(session, paper_id)
        if content is None:
            await self._content_dao.create(
                session,
                paper_id=paper_id,
                original_file_name=file.file_name,
                generated_file_name=generated,
                file_extension=extension,
            )
            return

        previous = content.generated_file_name
        await self._content_dao.update(
            session,
            paper_id,
            original_file_name=file.file_name,
            generated_file_name=generated,
            file_extension=extension,
        )
        self._file_store.discard_after_commit(session, previous)

    # ── create / update ───────────────────────────────────────────────

    async def create(
        self,
        session: AsyncSession,
        caller: Caller,
        *,
        title: str,
        abstract_text: str,
        authors: list[str],
        keywords: list[str],
        file: UploadedFile | None,
    ) -> Paper:
        """Create a paper in CREATED with the caller as its first author.

        The caller's full name joins the author list if it is not there yet.
        """
        title = _validate_title(title)
        authors = _validate_authors(authors)
        abstract_text = _validate_abstract(abstract_text)
        keywords = _validate_keywords(keywords)
        if file is None:
            raise ValidationError("You must provide the file of the paper")
        extension = _validate_file(file, self._file_store)

        if await self._paper_dao.exists_by_title(session, title):
            raise DuplicateResourceError(_DUPLICATE_TITLE_MSG)

        if caller.full_name not in authors:
            authors.append(caller.full_name)

        paper = await self._paper_dao.create_unique(
            session,
            title=title,
            abstract_text=abstract_text,
            authors=authors,
            keywords=keywords,
        )
        if paper is None:
            raise DuplicateResourceError(_DUPLICATE_TITLE_MSG)

        await self._paper_user_dao.add(session, paper.id, caller.user_id, PaperRole.AUTHOR)
        await self._role_service.grant(session, caller.user_id, RoleType.AUTHOR)
        await self._store_content(session, paper.id, file, extension)

        log.info("paper.created", paper_id=str(paper.id), user_id=str(caller.user_id))
        return paper

    async def update(
        self,
        session: AsyncSession,
        caller: Caller,
        paper_id: uuid.UUID,
        *,
        title: str | None = None,
        abstract_text: str | None = None,
        authors: list[str] | None = None,
        keywords: list[str] | None = None,
        file: UploadedFile | None = None,
    ) -> Paper:
        """Edit a paper that has not been submitted yet."""
        paper = await self._load_as_author(session, caller, paper_id)
        require_paper_state(paper, frozenset({PaperState.CREATED}), "can not be updated")

        if all(v is None for v in (title, abstract_text, authors, keywords, file)):
            raise ValidationError("You must provide at least one property to update the paper")

        values: dict = {}
        if title is not None:
            values["title"] = _validate_title(title)
            if await self._paper_dao.exists_by_title(
                session, values["title"], exclude_id=paper.id
            ):
                raise DuplicateResourceError(_DUPLICATE_TITLE_MSG)
        if abstract_text is not None:
            values["abstract_text"] = _validate_abstract(abstract_text)
        if authors is not None:
            values["authors"] = _validate_authors(authors)
        if keywords is not None:
            values["keywords"] = _validate_keywords(keywords)
        extension = _validate_file(file, self._file_store) if file is not None else None

        if values:
            updated = await self._paper_dao.update_unique(session, paper, **values)
            if updated is None:
                raise DuplicateResourceError(_DUPLICATE_TITLE_MSG)
            paper = updated
        if file is not None:
            await self._store_content(session, paper.id, file, extension)

        fields = sorted(values) + (["file"] if file is not None else [])
        log.info("paper.updated", paper_id=str(paper_id), fields=fields)
        return paper

    async def add_co_author(
        self,
        session: AsyncSession,
        caller: Caller,
        paper_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Paper:
        paper = await self._load_as_author(session, caller, paper_id)

        user = await self._user_dao.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"User not found with id: {user_id} to be added as co-author")

        if user.id == caller.user_id or await self._membership.has_paper_role(
            session, paper.id, user.id, PaperRole.AUTHOR
        ):
            raise DuplicateResourceError(
                f"User with name: {user.full_name} is already an author for the paper "
                f"with id: {paper_id}"
            )
        if not await self._paper_user_dao.add(session, paper.id, user.id, PaperRole.AUTHOR):
            # the user is reviewing this paper; one membership per paper
            raise DuplicateResourceError(
                f"User with id: {user.id} is already a member of the paper with id: {paper_id}"
            )
        await self._role_service.grant(session, user.id, RoleType.AUTHOR)

        # two authors may share a name, so the list is appended to unconditionally
        paper = await self._paper_dao.update(
            session, paper.id, authors=[*paper.authors, user.full_name]
        )
        log.info("paper.co_author_added", paper_id=str(paper_id), user_id=str(user.id))
        return paper

    # ── workflow ──────────────────────────────────────────────────────

    async def submit(
        self,
        session: AsyncSession,
        caller: Caller,
        paper_id: uuid.UUID,
        conference_id: uuid.UUID,
    ) -> Paper:
        paper = await self._load_as_author(session, caller, paper_id)
        conference = await self._load_conference(session, conference_id)
        require_phase(conference, ConferencePhase.SUBMISSION, "papers can not be submitted")
        if paper.conference_id is not None:
            raise StateConflictError(
                f"Paper with id: {paper_id} is already submitted to a conference"
            )
        transition_paper(paper, PaperState.SUBMITTED, "can not be submitted")

        paper = await self._paper_dao.update(
            session, paper.id, conference_id=conference.id, state=PaperState.SUBMITTED
        )
        log.info(
            "paper.submitted",
            paper_id=str(paper_id),
            conference_id=str(conference.id),
        )
        return paper

    async def assign_reviewer(
        self,
        session: AsyncSession,
        caller: Caller,
        paper_id: uuid.UUID,
        reviewer_id: uuid.UUID,
    ) -> Review:
        paper, conference = await self._load_as_chair(session, caller, paper_id)
        require_phase(
            conference, ConferencePhase.ASSIGNMENT, "reviewers can not be assigned"
        )
        require_paper_state(
            paper, frozenset({PaperState.SUBMITTED}), "a reviewer can not be assigned"
        )

        reviewer = await self._user_dao.get_by_id(session, reviewer_id)
        if reviewer is None:
            raise NotFoundError(f"User not found with id: {reviewer_id}")
        if not await self._user_dao.has_role(session, reviewer.id, RoleType.REVIEWER):
            raise ValidationError(f"User is not a reviewer with id: {reviewer.id}")
        if await self._membership.has_paper_role(
            session, paper.id, reviewer.id, PaperRole.AUTHOR
        ):
            raise DuplicateResourceError(
                f"User with id: {reviewer.id} is author of the paper with id: {paper_id}"
            )
        if await self._membership.is_reviewer(session, paper.id, reviewer.id):
            raise DuplicateResourceError(
                f"User already assigned as reviewer to paper with id: {paper_id}"
            )
        assigned = await self._paper_user_dao.count_by_role(
            session, paper.id, PaperRole.REVIEWER
        )
        if assigned >= self.max_reviewers:
            raise StateConflictError("Paper has the maximum number of reviewers")

        await self._paper_user_dao.add(session, paper.id, reviewer.id, PaperRole.REVIEWER)
        review = await self._review_service.open(session, paper.id, reviewer.id)
        log.info(
            "paper.reviewer_assigned",
            paper_id=str(paper_id),
            reviewer_id=str(reviewer.id),
            reviewers=assigned + 1,
        )
        return review

    async def review(
        self,
        session: AsyncSession,
        caller: Caller,
        paper_id: uuid.UUID,
        *,
        score: float,
        comment: str,
    ) -> Review:
        """Score the caller's assigned review; the paper becomes REVIEWED."""
        validate_review(score, comment)
        paper = await self._load(session, paper_id, for_update=True)
        await self._review_service.require_open(session, paper.id, caller.user_id)
        require_paper_state(paper, _REVIEWABLE_STATES, "can not be reviewed")
        conference = await self._load_conference(session, paper.conference_id)
        require_phase(conference, ConferencePhase.REVIEW, "papers can not be reviewed")

        review = await self._review_service.record(
            session, paper.id, caller.user_id, score, comment
        )
        if paper.state == PaperState.SUBMITTED:
            transition_paper(paper, PaperState.REVIEWED, "can not be reviewed")
            await self._paper_dao.update(session, paper.id, state=PaperState.REVIEWED)
        return review

    async def decide(
        self,
        session: AsyncSession,
        caller: Caller,
        paper_id: uuid.UUID,
        decision: Decision,
    ) -> Paper:
        paper, conference = await self._load_as_chair(session, caller, paper_id)
        require_phase(
            conference, ConferencePhase.DECISION, "the decision can not be recorded"
        )
        target = DECISION_OUTCOMES[decision]
        require_paper_state(
            paper, frozenset({PaperState.REVIEWED}), "can not be approved or rejected"
        )
        transition_paper(paper, target, "can not be approved or rejected")

        paper = await self._paper_dao.update(session, paper.id, state=target)
        log.info(
            "paper.decided",
            paper_id=str(paper_id),
            decision=decision.value,
            user_id=str(caller.user_id),
        )
        return paper

    async def withdraw(
        self, session: AsyncSession, caller: Caller, paper_id: uuid.UUID
    ) -> Paper:
        """Withdraw a submitted paper. Terminal: nothing can happen to it afterwards."""
        paper = await self._load_as_author(session, caller, paper_id)
        if paper.conference_id is None:
            raise StateConflictError(
                f"Paper is in the state: {paper.state.value} and can not be withdrawn"
            )
        transition_paper(paper, PaperState.WITHDRAWN, "can not be withdrawn")

        paper = await self._paper_dao.update(session, paper.id, state=PaperState.WITHDRAWN)
        log.info("paper.withdrawn", paper_id=str(paper_id), user_id=str(caller.user_id))
        return paper

    # ── reads ─────────────────────────────────────────────────────────

    async def _is_published(self, session: AsyncSession, paper: Paper) -> bool:
        """An approved paper becomes public once its conference is FINAL."""
        if paper.state != PaperState.APPROVED or paper.conference_id is None:
            return False
        conference = await self._conference_dao.get_by_id(session, paper.conference_id)
        return conference is not None and conference.phase == ConferencePhase.FINAL

    async def _detail(
        self, session: AsyncSession, paper: Paper, caller: Caller | None
    ) -> dict | None:
        """Return the read model for *caller*, or None if it may not see the paper."""
        relation = await self._membership.paper_relation(session, paper, caller)
        if relation is None:
            if not await self._is_published(session, paper):
                return None
            return {"paper": paper, "relation": None, "reviews": [], "authors": []}

        reviews = await self._review_service.list_for_paper(session, paper.id)
        members = await self._paper_user_dao.list_members(
            session, paper.id, role=PaperRole.AUTHOR
        )
        return {
            "paper": paper,
            "relation": relation,
            "reviews": reviews,
            "authors": [user for _, user in members],
        }

    async def get(
        self, session: AsyncSession, caller: Caller | None, paper_id: uuid.UUID
    ) -> dict:
        """Return the paper with the caller's relationship, its reviews and authors.

        Callers unrelated to the paper, anonymous ones included, only see
        approved papers of a finalized conference.
        """
        paper = await self._load(session, paper_id)
        detail = await self._detail(session, paper, caller)
        if detail is None:
            raise NotFoundError(PAPER_NOT_FOUND_MSG.format(paper_id))
        return detail

    async def search(
        self,
        session: AsyncSession,
        caller: Caller | None,
        *,
        title: str = "",
        author: str = "",
        abstract_text: str = "",
    ) -> list[dict]:
        """Search papers; results follow the same visibility rule as :meth:`get`."""
        papers = await self._paper_dao.search(
            session, title=title or "", author=author or "", abstract_text=abstract_text or ""
        )
        results = []
        for paper in papers:
            detail = await self._detail(session, paper, caller)
            if detail is not None:
                results.append(detail)
        return results

    async def download(
        self, session: AsyncSession, caller: Caller, paper_id: uuid.UUID
    ) -> PaperDownload:
        paper = await self._load(session, paper_id)
        await self._membership.require_paper_access(session, paper, caller, AuthPolicy.REVEAL)

        content = await self._content_dao.get_by_paper(session, paper.id)
        if content is None:
            # a paper always has a document; a missing row is a server fault
            log.error("paper.content_missing", paper_id=str(paper_id))
            raise ServerError()
        data = await self._file_store.retrieve(content.generated_file_name)
        return PaperDownload(
            content=data,
            original_file_name=content.original_file_name,
            file_extension=content.file_extension,
        )
