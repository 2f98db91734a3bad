"""Tests for the API layer.

Uses httpx.AsyncClient against the ASGI app. Services are mocked to isolate
the API layer from the database.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from confsys.models.conference import Conference
from confsys.models.enums import ConferencePhase, Decision, PaperState, RoleType
from confsys.models.paper import Paper
from confsys.models.review import Review
from confsys.models.user import User
from confsys.services import (
    AccessDeniedError,
    AuthenticationError,
    DuplicateResourceError,
    NotFoundError,
    ServerError,
    StateConflictError,
    UnsupportedFileError,
    ValidationError,
)
from confsys.services.auth_service import AccessToken, TokenPair
from confsys.services.membership_service import Caller, PaperRelation
from confsys.services.paper_service import PaperDownload
from confsys.services.user_service import UserProfile

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
USER_ID = uuid.uuid4()


def _user(**overrides) -> User:
    defaults = dict(
        id=USER_ID,
        username="alice",
        full_name="Alice Smith",
        password_hash="xxx",
        created_at=NOW,
        updated_at=NOW,
    )
    defaults.update(overrides)
    return User(**defaults)


def _caller() -> Caller:
    return Caller(user_id=USER_ID, full_name="Alice Smith", roles=frozenset({RoleType.AUTHOR}))


def _conference(**overrides) -> Conference:
    defaults = dict(
        id=uuid.uuid4(),
        name="PLDI",
        description="Programming languages",
        phase=ConferencePhase.SUBMISSION,
        created_at=NOW,
        updated_at=NOW,
    )
    defaults.update(overrides)
    return Conference(**defaults)


def _paper(**overrides) -> Paper:
    defaults = dict(
        id=uuid.uuid4(),
        title="Gradual Typing",
        abstract_text="We study gradual typing.",
        authors=["Alice Smith"],
        keywords=["types"],
        state=PaperState.REVIEWED,
        conference_id=uuid.uuid4(),
        created_at=NOW,
        updated_at=NOW,
    )
    defaults.update(overrides)
    return Paper(**defaults)


def _review(paper_id: uuid.UUID) -> Review:
    return Review(
        id=uuid.uuid4(),
        paper_id=paper_id,
        reviewer_id=uuid.uuid4(),
        assigned_at=NOW,
        reviewed_at=NOW,
        comment="Great paper",
        score=8.5,
    )


def _paper_detail(relation: PaperRelation | None, paper: Paper | None = None) -> dict:
    paper = paper or _paper()
    reviewer = _user(id=uuid.uuid4(), username="rev", full_name="Rita Reviewer")
    return {
        "paper": paper,
        "relation": relation,
        "reviews": [(_review(paper.id), reviewer)] if relation else [],
        "authors": [_user()] if relation else [],
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app():
    """Create a test app without lifespan (no real DB)."""
    from confsys.api import deps

    mock_session = AsyncMock()

    from fastapi import FastAPI

    from confsys.api.errors import register_error_handlers
    from confsys.api.routers import auth, conferences, papers, users

    application = FastAPI()
    register_error_handlers(application)
    application.include_router(auth.router, prefix="/api/v1/auth")
    application.include_router(users.router, prefix="/api/v1/users")
    application.include_router(conferences.router, prefix="/api/v1/conferences")
    application.include_router(papers.router, prefix="/api/v1/papers")

    async def _mock_session():
        yield mock_session

    application.dependency_overrides[deps.get_session] = _mock_session

    async def _mock_caller():
        return _caller()

    application.dependency_overrides[deps.get_current_caller] = _mock_caller
    application.dependency_overrides[deps.get_optional_caller] = _mock_caller

    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuthRouter:
    async def test_register(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.register = AsyncMock(return_value=TokenPair("access_tok", "refresh_tok"))
        app.dependency_overrides[deps.get_auth_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/auth/register",
            json={
                "username": " alice ",
                "full_name": "Alice Smith",
                "password": "Str0ng!Passw0rd",
                "roles": ["REVIEWER"],
            },
        )

        assert resp.status_code == 201
        assert resp.json()["access_token"] == "access_tok"
        kwargs = mock_svc.register.call_args.kwargs
        assert kwargs["username"] == "alice"
        assert kwargs["roles"] == frozenset({RoleType.REVIEWER})

    async def test_register_duplicate(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.register = AsyncMock(
            side_effect=DuplicateResourceError("The provided username already exists")
        )
        app.dependency_overrides[deps.get_auth_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "alice", "full_name": "A", "password": "x"},
        )
        assert resp.status_code == 409
        assert resp.json() == {"detail": "The provided username already exists"}

    async def test_register_unknown_role(self, client):
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "a", "full_name": "A", "password": "x", "roles": ["ADMIN"]},
        )
        assert resp.status_code == 422

    async def test_login(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.login = AsyncMock(return_value=TokenPair("access_tok", "refresh_tok"))
        app.dependency_overrides[deps.get_auth_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/auth/login", json={"username": "alice", "password": "secret"}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["refresh_token"] == "refresh_tok"
        assert data["token_type"] == "bearer"

    async def test_login_invalid_credentials(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.login = AsyncMock(
            side_effect=AuthenticationError("Username or password is incorrect")
        )
        app.dependency_overrides[deps.get_auth_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/auth/login", json={"username": "alice", "password": "wrong"}
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Username or password is incorrect"

    async def test_refresh(self, app, client):
        from confsys.api import deps

        mock_svc = MagicMock()
        mock_svc.refresh = MagicMock(return_value=AccessToken("new_access"))
        app.dependency_overrides[deps.get_auth_service] = lambda: mock_svc

        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": "tok"})
        assert resp.status_code == 200
        assert resp.json()["access_token"] == "new_access"

    async def test_me(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(
            return_value=UserProfile(
                user=_user(), roles=frozenset({RoleType.PC_CHAIR, RoleType.AUTHOR})
            )
        )
        app.dependency_overrides[deps.get_user_service] = lambda: mock_svc

        resp = await client.get("/api/v1/auth/me")

        assert resp.status_code == 200
        data = resp.json()
        assert data["username"] == "alice"
        assert data["roles"] == ["AUTHOR", "PC_CHAIR"]
        assert "password_hash" not in data


class TestUsersRouter:
    async def test_find_by_username(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.find_by_username = AsyncMock(
            return_value=UserProfile(user=_user(), roles=frozenset())
        )
        app.dependency_overrides[deps.get_user_service] = lambda: mock_svc

        resp = await client.get("/api/v1/users", params={"username": "alice"})

        assert resp.status_code == 200
        assert resp.json()["full_name"] == "Alice Smith"

    async def test_username_required(self, client):
        resp = await client.get("/api/v1/users")
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Conferences
# ---------------------------------------------------------------------------


class TestConferencesRouter:
    async def test_create_returns_chair_view(self, app, client):
        from confsys.api import deps

        conference = _conference(phase=ConferencePhase.CREATED)
        mock_svc = AsyncMock()
        mock_svc.create = AsyncMock(return_value=conference)
        mock_svc.get = AsyncMock(
            return_value={
                "conference": conference,
                "chairs": [_user()],
                "papers": [],
                "is_chair": True,
            }
        )
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/conferences", json={"name": " PLDI ", "description": "PL"}
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["view"] == "chair"
        assert data["phase"] == "CREATED"
        assert data["chairs"][0]["username"] == "alice"
        assert mock_svc.create.call_args.kwargs["name"] == "PLDI"

    async def test_get_public_view_hides_phase(self, app, client):
        from confsys.api import deps

        conference = _conference()
        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(
            return_value={
                "conference": conference,
                "chairs": [],
                "papers": [],
                "is_chair": False,
            }
        )
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/conferences/{conference.id}")

        assert resp.status_code == 200
        data = resp.json()
        assert data["view"] == "public"
        assert "phase" not in data
        assert "papers" not in data

    async def test_chair_view_lists_papers(self, app, client):
        from confsys.api import deps

        conference = _conference()
        paper = _paper(conference_id=conference.id, state=PaperState.SUBMITTED)
        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(
            return_value={
                "conference": conference,
                "chairs": [_user()],
                "papers": [paper],
                "is_chair": True,
            }
        )
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/conferences/{conference.id}")

        papers = resp.json()["papers"]
        assert papers[0]["title"] == "Gradual Typing"
        assert papers[0]["state"] == "SUBMITTED"

    async def test_search(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.search = AsyncMock(return_value=[])
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.get("/api/v1/conferences", params={"name": "pl"})

        assert resp.status_code == 200
        assert resp.json() == []
        assert mock_svc.search.call_args.kwargs == {"name": "pl", "description": ""}

    @pytest.mark.parametrize(
        "segment,method",
        [
            ("submission", "start_submission"),
            ("assignment", "start_assignment"),
            ("review", "start_review"),
            ("decision", "start_decision"),
            ("final", "start_final"),
        ],
    )
    async def test_phase_endpoints(self, app, client, segment, method):
        from confsys.api import deps

        mock_svc = AsyncMock()
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc
        cid = uuid.uuid4()

        resp = await client.put(f"/api/v1/conferences/{cid}/{segment}")

        assert resp.status_code == 204
        getattr(mock_svc, method).assert_awaited_once()
        assert getattr(mock_svc, method).call_args.args[2] == cid

    async def test_phase_conflict(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.start_review = AsyncMock(
            side_effect=StateConflictError(
                "Conference is in the phase: CREATED and can not start review"
            )
        )
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.put(f"/api/v1/conferences/{uuid.uuid4()}/review")

        assert resp.status_code == 409
        assert "can not start review" in resp.json()["detail"]

    async def test_add_chair(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc
        uid = uuid.uuid4()

        resp = await client.post(
            f"/api/v1/conferences/{uuid.uuid4()}/chairs", json={"user_id": str(uid)}
        )

        assert resp.status_code == 204
        assert mock_svc.add_chair.call_args.args[3] == uid

    async def test_add_existing_chair_conflict(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.add_chair.side_effect = DuplicateResourceError(
            "User with id: 1 is already PCChair for conference with id: 2"
        )
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.post(
            f"/api/v1/conferences/{uuid.uuid4()}/chairs", json={"user_id": str(uuid.uuid4())}
        )

        assert resp.status_code == 409
        assert "already PCChair" in resp.json()["detail"]

    async def test_delete(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        app.dependency_overrides[deps.get_conference_service] = lambda: mock_svc

        resp = await client.delete(f"/api/v1/conferences/{uuid.uuid4()}")
        assert resp.status_code == 204


# ---------------------------------------------------------------------------
# Papers
# ---------------------------------------------------------------------------


class TestPapersRouter:
    async def test_create_multipart(self, app, client):
        from confsys.api import deps

        paper = _paper(state=PaperState.CREATED, conference_id=None)
        mock_svc = AsyncMock()
        mock_svc.create = AsyncMock(return_value=paper)
        mock_svc.get = AsyncMock(return_value=_paper_detail(PaperRelation.AUTHOR, paper))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/papers",
            data={
                "title": "Gradual Typing",
                "abstract_text": "We study gradual typing.",
                "authors": "Alice Smith,Bob Jones",
                "keywords": "types,gradual",
            },
            files={"file": ("paper.pdf", b"%PDF-1.4\n", "application/pdf")},
        )

        assert resp.status_code == 201
        assert resp.json()["view"] == "author"
        kwargs = mock_svc.create.call_args.kwargs
        assert kwargs["authors"] == ["Alice Smith", "Bob Jones"]
        assert kwargs["keywords"] == ["types", "gradual"]
        assert kwargs["file"].file_name == "paper.pdf"
        assert kwargs["file"].content == b"%PDF-1.4\n"

    async def test_create_unsupported_file(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.create = AsyncMock(side_effect=UnsupportedFileError("not supported"))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.post(
            "/api/v1/papers",
            data={"title": "T", "abstract_text": "A", "authors": "X", "keywords": "k"},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert resp.status_code == 415

    async def test_update_only_sends_given_fields(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(return_value=_paper_detail(PaperRelation.AUTHOR))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.patch(
            f"/api/v1/papers/{uuid.uuid4()}", data={"keywords": "a,b"}
        )

        assert resp.status_code == 200
        kwargs = mock_svc.update.call_args.kwargs
        assert kwargs["keywords"] == ["a", "b"]
        assert kwargs["title"] is None
        assert kwargs["file"] is None

    async def test_author_view_hides_reviewer_identity(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(return_value=_paper_detail(PaperRelation.AUTHOR))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}")

        data = resp.json()
        assert data["view"] == "author"
        assert data["reviews"][0]["score"] == 8.5
        assert "reviewer" not in data["reviews"][0]
        assert data["registered_authors"][0]["username"] == "alice"

    async def test_chair_view_shows_reviewer(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(return_value=_paper_detail(PaperRelation.PC_CHAIR))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}")

        data = resp.json()
        assert data["view"] == "chair"
        assert data["state"] == "REVIEWED"
        assert data["reviews"][0]["reviewer"] == "rev"

    async def test_reviewer_view(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(return_value=_paper_detail(PaperRelation.REVIEWER))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}")

        data = resp.json()
        assert data["view"] == "reviewer"
        assert "registered_authors" not in data

    async def test_public_view(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.search = AsyncMock(
            return_value=[_paper_detail(None, _paper(state=PaperState.APPROVED))]
        )
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get("/api/v1/papers", params={"author": "alice"})

        data = resp.json()
        assert len(data) == 1
        assert data[0]["view"] == "public"
        assert "state" not in data[0]
        assert "reviews" not in data[0]

    async def test_download(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.download = AsyncMock(
            return_value=PaperDownload(
                content=b"%PDF-1.4\n", original_file_name="paper.pdf", file_extension=".pdf"
            )
        )
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}/download")

        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4\n"
        assert resp.headers["content-type"] == "application/pdf"
        assert 'filename="paper.pdf"' in resp.headers["content-disposition"]

    async def test_download_denied(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.download = AsyncMock(side_effect=AccessDeniedError("Access denied"))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}/download")
        assert resp.status_code == 403

    async def test_workflow_endpoints(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc
        pid, other = uuid.uuid4(), uuid.uuid4()

        responses = [
            await client.post(f"/api/v1/papers/{pid}/authors", json={"user_id": str(other)}),
            await client.post(
                f"/api/v1/papers/{pid}/submission", json={"conference_id": str(other)}
            ),
            await client.post(f"/api/v1/papers/{pid}/reviewers", json={"user_id": str(other)}),
            await client.post(
                f"/api/v1/papers/{pid}/reviews", json={"score": 8.5, "comment": "Good"}
            ),
            await client.put(f"/api/v1/papers/{pid}/decision", json={"decision": "APPROVED"}),
            await client.put(f"/api/v1/papers/{pid}/withdrawal"),
        ]

        assert [r.status_code for r in responses] == [204] * 6
        mock_svc.add_co_author.assert_awaited_once()
        mock_svc.submit.assert_awaited_once()
        mock_svc.assign_reviewer.assert_awaited_once()
        assert mock_svc.review.call_args.kwargs == {"score": 8.5, "comment": "Good"}
        assert mock_svc.decide.call_args.args[3] is Decision.APPROVED
        mock_svc.withdraw.assert_awaited_once()

    async def test_invalid_decision_value(self, client):
        resp = await client.put(
            f"/api/v1/papers/{uuid.uuid4()}/decision", json={"decision": "MAYBE"}
        )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


class TestErrorHandlers:
    @pytest.mark.parametrize(
        "exc,status",
        [
            (ValidationError("bad input"), 400),
            (AuthenticationError("no"), 401),
            (AccessDeniedError("Access denied"), 403),
            (NotFoundError("Paper not found"), 404),
            (DuplicateResourceError("dup"), 409),
            (StateConflictError("state"), 409),
            (UnsupportedFileError("type"), 415),
        ],
    )
    async def test_status_mapping(self, app, client, exc, status):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.get = AsyncMock(side_effect=exc)
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}")

        assert resp.status_code == status
        assert resp.json() == {"detail": str(exc)}

    async def test_server_error_is_generic(self, app, client):
        from confsys.api import deps

        mock_svc = AsyncMock()
        mock_svc.download = AsyncMock(side_effect=ServerError("disk at /var/papers failed"))
        app.dependency_overrides[deps.get_paper_service] = lambda: mock_svc

        resp = await client.get(f"/api/v1/papers/{uuid.uuid4()}/download")

        assert resp.status_code == 500
        assert "/var/papers" not in resp.json()["detail"]
        assert "internal error" in resp.json()["detail"]

    async def test_malformed_id_returns_422(self, client):
        resp = await client.get("/api/v1/papers/not-a-uuid")
        assert resp.status_code == 422
        assert "paper_id" in resp.json()["detail"]

    async def test_missing_token_returns_401(self, app, client):
        from confsys.api import deps

        del app.dependency_overrides[deps.get_current_caller]
        resp = await client.delete(f"/api/v1/conferences/{uuid.uuid4()}")
        assert resp.status_code == 401
        assert resp.json() == {"detail": "missing authorization header"}


class TestAppFactory:
    async def test_health_and_request_id(self):
        from confsys.api import create_app

        application = create_app()
        transport = ASGITransport(app=application)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        uuid.UUID(resp.headers["x-request-id"])


# ---------------------------------------------------------------------------
# Request session
# ---------------------------------------------------------------------------


class _FakeTransaction:
    def __init__(self, events: list[str]) -> None:
        self._events = events

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._events.append("rollback" if exc_type else "commit")
        return False


class _FakeSession:
    def __init__(self) -> None:
        self.info: dict = {}
        self.events: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def begin(self):
        return _FakeTransaction(self.events)


class TestGetSession:
    def _patch(self, monkeypatch):
        from confsys.api import deps

        session = _FakeSession()
        store = MagicMock()
        store.purge_discarded = AsyncMock(
            side_effect=lambda s: session.events.append("purge")
        )
        monkeypatch.setattr(deps, "_session_factory", lambda: session)
        monkeypatch.setattr(deps, "_file_store", store)
        return deps, session, store

    async def test_discarded_documents_purged_after_commit(self, monkeypatch):
        deps, session, store = self._patch(monkeypatch)

        gen = deps.get_session()
        assert await gen.__anext__() is session
        with pytest.raises(StopAsyncIteration):
            await gen.__anext__()

        assert session.events == ["commit", "purge"]
        store.purge_discarded.assert_awaited_once_with(session)

    async def test_failed_request_keeps_documents(self, monkeypatch):
        deps, session, store = self._patch(monkeypatch)

        gen = deps.get_session()
        await gen.__anext__()
        with pytest.raises(RuntimeError):
            await gen.athrow(RuntimeError("handler failed"))

        assert session.events == ["rollback"]
        store.purge_discarded.assert_not_awaited()
