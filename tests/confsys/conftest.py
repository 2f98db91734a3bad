"""Shared fixtures for confsys tests.

Service and API tests mock DAO methods directly and need no database. The
workflow tests run the real services against the in-memory DAOs below,
which mirror the query semantics of the SQLAlchemy DAOs (case-insensitive
uniqueness, ordering, ON CONFLICT DO NOTHING results).
"""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from confsys.models.conference import Conference
from confsys.models.conference_user import ConferenceUser
from confsys.models.enums import ConferencePhase, PaperRole, PaperState, RoleType
from confsys.models.paper import Paper
from confsys.models.paper_content import PaperContent
from confsys.models.paper_user import PaperUser
from confsys.models.review import Review
from confsys.models.user import User
from confsys.services.conference_service import ConferenceService
from confsys.services.membership_service import Caller, MembershipResolver
from confsys.services.paper_service import PaperService
from confsys.services.review_service import ReviewService
from confsys.services.role_service import RoleService
from confsys.services.user_service import UserService
from confsys.storage.file_store import FileStore

EPOCH = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# In-memory tables
# ---------------------------------------------------------------------------


@dataclass
class InMemoryDB:
    users: dict[uuid.UUID, User] = field(default_factory=dict)
    roles: set[tuple[uuid.UUID, RoleType]] = field(default_factory=set)
    conferences: dict[uuid.UUID, Conference] = field(default_factory=dict)
    chairs: dict[tuple[uuid.UUID, uuid.UUID], ConferenceUser] = field(default_factory=dict)
    papers: dict[uuid.UUID, Paper] = field(default_factory=dict)
    paper_users: dict[tuple[uuid.UUID, uuid.UUID], PaperUser] = field(default_factory=dict)
    contents: dict[uuid.UUID, PaperContent] = field(default_factory=dict)
    reviews: dict[uuid.UUID, Review] = field(default_factory=dict)
    _clock: itertools.count = field(default_factory=itertools.count)

    def now(self) -> datetime:
        """Strictly increasing timestamps, so insertion order is observable."""
        return EPOCH + timedelta(microseconds=next(self._clock))


def _apply(obj, values: dict) -> None:
    for key, val in values.items():
        setattr(obj, key, val)


class _FakeDAO:
    def __init__(self, db: InMemoryDB) -> None:
        self.db = db

    def _table(self) -> dict:
        raise NotImplementedError

    async def get_by_id(self, session, pk):
        return self._table().get(pk)

    async def get_for_update(self, session, pk):
        return self._table().get(pk)

    async def update(self, session, pk, **values):
        obj = self._table().get(pk)
        if obj is None:
            return None
        _apply(obj, values)
        if hasattr(obj, "updated_at"):
            obj.updated_at = self.db.now()
        return obj


class FakeUserDAO(_FakeDAO):
    def _table(self):
        return self.db.users

    async def get_by_username(self, session, username):
        for user in self.db.users.values():
            if user.username.lower() == username.lower():
                return user
        return None

    async def create_unique(self, session, *, username, full_name, password_hash):
        if await self.get_by_username(session, username) is not None:
            return None
        now = self.db.now()
        user = User(
            id=uuid.uuid4(),
            username=username,
            full_name=full_name,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )
        self.db.users[user.id] = user
        return user

    async def list_roles(self, session, user_id):
        return {role for uid, role in self.db.roles if uid == user_id}

    async def has_role(self, session, user_id, role):
        return (user_id, role) in self.db.roles

    async def grant_role(self, session, user_id, role):
        if (user_id, role) in self.db.roles:
            return False
        self.db.roles.add((user_id, role))
        return True


class FakeConferenceDAO(_FakeDAO):
    def _table(self):
        return self.db.conferences

    async def exists_by_name(self, session, name, exclude_id=None):
        return any(
            c.name.lower() == name.lower() and c.id != exclude_id
            for c in self.db.conferences.values()
        )

    async def create_unique(self, session, *, name, description):
        if await self.exists_by_name(session, name):
            return None
        now = self.db.now()
        conference = Conference(
            id=uuid.uuid4(),
            name=name,
            description=description,
            phase=ConferencePhase.CREATED,
            created_at=now,
            updated_at=now,
        )
        self.db.conferences[conference.id] = conference
        return conference

    async def update_unique(self, session, obj, **values):
        if "name" in values and await self.exists_by_name(
            session, values["name"], exclude_id=obj.id
        ):
            return None
        return await self.update(session, obj.id, **values)

    async def delete(self, session, pk):
        if self.db.conferences.pop(pk, None) is None:
            return False
        for key in [k for k in self.db.chairs if k[0] == pk]:
            del self.db.chairs[key]
        for paper in self.db.papers.values():
            if paper.conference_id == pk:
                paper.conference_id = None
        return True

    async def search(self, session, name="", description=""):
        name, description = name.strip().lower(), description.strip().lower()
        found = [
            c
            for c in self.db.conferences.values()
            if name in c.name.lower() and description in c.description.lower()
        ]
        return sorted(found, key=lambda c: c.name)


class FakeConferenceUserDAO(_FakeDAO):
    def _table(self):
        return self.db.chairs

    async def is_chair(self, session, conference_id, user_id):
        return (conference_id, user_id) in self.db.chairs

    async def add(self, session, conference_id, user_id):
        if (conference_id, user_id) in self.db.chairs:
            return False
        self.db.chairs[(conference_id, user_id)] = ConferenceUser(
            conference_id=conference_id, user_id=user_id, assigned_at=self.db.now()
        )
        return True

    async def list_chairs(self, session, conference_id):
        rows = sorted(
            (m for m in self.db.chairs.values() if m.conference_id == conference_id),
            key=lambda m: m.assigned_at,
        )
        return [self.db.users[m.user_id] for m in rows]

    async def chaired_conference_ids(self, session, user_id, conference_ids):
        return {cid for cid in conference_ids if (cid, user_id) in self.db.chairs}


class FakePaperDAO(_FakeDAO):
    def _table(self):
        return self.db.papers

    async def exists_by_title(self, session, title, exclude_id=None):
        return any(
            p.title.lower() == title.lower() and p.id != exclude_id
            for p in self.db.papers.values()
        )

    async def create_unique(self, session, *, title, abstract_text, authors, keywords):
        if await self.exists_by_title(session, title):
            return None
        now = self.db.now()
        paper = Paper(
            id=uuid.uuid4(),
            title=title,
            abstract_text=abstract_text,
            authors=list(authors),
            keywords=list(keywords),
            state=PaperState.CREATED,
            conference_id=None,
            created_at=now,
            updated_at=now,
        )
        self.db.papers[paper.id] = paper
        return paper

    async def update_unique(self, session, obj, **values):
        if "title" in values and await self.exists_by_title(
            session, values["title"], exclude_id=obj.id
        ):
            return None
        return await self.update(session, obj.id, **values)

    async def list_by_conference(self, session, conference_id):
        return sorted(
            (p for p in self.db.papers.values() if p.conference_id == conference_id),
            key=lambda p: p.created_at,
        )

    async def search(self, session, title="", author="", abstract_text=""):
        title, author = title.strip().lower(), author.strip().lower()
        abstract_text = abstract_text.strip().lower()
        found = [
            p
            for p in self.db.papers.values()
            if title in p.title.lower()
            and author in ",".join(p.authors).lower()
            and abstract_text in p.abstract_text.lower()
        ]
        return sorted(found, key=lambda p: p.title)


class FakePaperUserDAO(_FakeDAO):
    def _table(self):
        return self.db.paper_users

    async def get_role(self, session, paper_id, user_id):
        membership = self.db.paper_users.get((paper_id, user_id))
        return membership.role if membership is not None else None

    async def has_role(self, session, paper_id, user_id, role):
        return await self.get_role(session, paper_id, user_id) == role

    async def add(self, session, paper_id, user_id, role):
        if (paper_id, user_id) in self.db.paper_users:
            return False
        self.db.paper_users[(paper_id, user_id)] = PaperUser(
            paper_id=paper_id, user_id=user_id, role=role, assigned_at=self.db.now()
        )
        return True

    async def list_members(self, session, paper_id, role=None):
        rows = sorted(
            (
                m
                for m in self.db.paper_users.values()
                if m.paper_id == paper_id and (role is None or m.role == role)
            ),
            key=lambda m: m.assigned_at,
        )
        return [(m, self.db.users[m.user_id]) for m in rows]

    async def count_by_role(self, session, paper_id, role):
        return len(await self.list_members(session, paper_id, role))


class FakePaperContentDAO(_FakeDAO):
    def _table(self):
        return self.db.contents

    async def get_by_paper(self, session, paper_id):
        return self.db.contents.get(paper_id)

    async def create(self, session, **values):
        now = self.db.now()
        content = PaperContent(created_at=now, updated_at=now, **values)
        self.db.contents[content.paper_id] = content
        return content


class FakeReviewDAO(_FakeDAO):
    def _table(self):
        return self.db.reviews

    async def create(self, session, *, paper_id, reviewer_id):
        review = Review(
            id=uuid.uuid4(),
            paper_id=paper_id,
            reviewer_id=reviewer_id,
            assigned_at=self.db.now(),
            reviewed_at=None,
            comment=None,
            score=None,
        )
        self.db.reviews[review.id] = review
        return review

    async def get_for_reviewer(self, session, paper_id, reviewer_id, *, for_update=False):
        for review in self.db.reviews.values():
            if review.paper_id == paper_id and review.reviewer_id == reviewer_id:
                return review
        return None

    async def list_by_paper(self, session, paper_id):
        rows = sorted(
            (r for r in self.db.reviews.values() if r.paper_id == paper_id),
            key=lambda r: r.assigned_at,
        )
        return [(r, self.db.users[r.reviewer_id]) for r in rows]

    async def count_pending_by_conference(self, session, conference_id):
        return sum(
            1
            for r in self.db.reviews.values()
            if r.reviewed_at is None
            and self.db.papers[r.paper_id].conference_id == conference_id
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> InMemoryDB:
    return InMemoryDB()


@pytest.fixture
def workflow(db, tmp_path):
    """Real services wired to in-memory DAOs and a temporary paper directory."""
    user_dao = FakeUserDAO(db)
    conference_dao = FakeConferenceDAO(db)
    conference_user_dao = FakeConferenceUserDAO(db)
    paper_dao = FakePaperDAO(db)
    paper_user_dao = FakePaperUserDAO(db)
    content_dao = FakePaperContentDAO(db)
    review_dao = FakeReviewDAO(db)

    membership = MembershipResolver(conference_user_dao, paper_user_dao, review_dao)
    roles = RoleService(user_dao)
    reviews = ReviewService(review_dao)
    file_store = FileStore(tmp_path / "papers")

    async def add_user(username: str, full_name: str, *granted: RoleType) -> Caller:
        profile = await users.register(
            None,
            username=username,
            full_name=full_name,
            password_hash="x",
            roles=frozenset(granted),
        )
        return Caller(
            user_id=profile.user.id,
            full_name=full_name,
            roles=frozenset(await user_dao.list_roles(None, profile.user.id)),
        )

    users = UserService(user_dao, roles)
    return SimpleNamespace(
        db=db,
        session=SimpleNamespace(info={}),
        file_store=file_store,
        users=users,
        roles=roles,
        reviews=reviews,
        membership=membership,
        conferences=ConferenceService(
            conference_dao,
            conference_user_dao,
            paper_dao,
            user_dao,
            membership,
            roles,
            reviews,
        ),
        papers=PaperService(
            paper_dao,
            paper_user_dao,
            content_dao,
            conference_dao,
            user_dao,
            membership,
            roles,
            reviews,
            file_store,
            max_reviewers=2,
        ),
        add_user=add_user,
    )


PDF_BYTES = b"%PDF-1.7\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"
TEX_BYTES = (
    b"\\documentclass{article}\n\\begin{document}\nHello\n\\end{document}\n"
)


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES


@pytest.fixture
def tex_bytes() -> bytes:
    return TEX_BYTES
