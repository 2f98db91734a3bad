"""Dependency injection — session, caller identity, and service singletons."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from confsys.dao.conference_dao import ConferenceDAO
from confsys.dao.conference_user_dao import ConferenceUserDAO
from confsys.dao.paper_content_dao import PaperContentDAO
from confsys.dao.paper_dao import PaperDAO
from confsys.dao.paper_user_dao import PaperUserDAO
from confsys.dao.review_dao import ReviewDAO
from confsys.dao.user_dao import UserDAO
from confsys.services import AuthenticationError
from confsys.services.auth_service import AuthService
from confsys.services.conference_service import ConferenceService
from confsys.services.membership_service import Caller, MembershipResolver
from confsys.services.paper_service import PaperService
from confsys.services.review_service import ReviewService
from confsys.services.role_service import RoleService
from confsys.services.user_service import UserService
from confsys.storage.file_store import FileStore

# ---------------------------------------------------------------------------
# DAO singletons
# ---------------------------------------------------------------------------
_user_dao = UserDAO()
_conference_dao = ConferenceDAO()
_conference_user_dao = ConferenceUserDAO()
_paper_dao = PaperDAO()
_paper_user_dao = PaperUserDAO()
_paper_content_dao = PaperContentDAO()
_review_dao = ReviewDAO()

# ---------------------------------------------------------------------------
# Service singletons
# ---------------------------------------------------------------------------
_file_store = FileStore()
_membership = MembershipResolver(_conference_user_dao, _paper_user_dao, _review_dao)
_role_service = RoleService(_user_dao)
_user_service = UserService(_user_dao, _role_service)
_auth_service = AuthService(_user_dao, _user_service)
_review_service = ReviewService(_review_dao)
_conference_service = ConferenceService(
    _conference_dao,
    _conference_user_dao,
    _paper_dao,
    _user_dao,
    _membership,
    _role_service,
    _review_service,
)
_paper_service = PaperService(
    _paper_dao,
    _paper_user_dao,
    _paper_content_dao,
    _conference_dao,
    _user_dao,
    _membership,
    _role_service,
    _review_service,
    _file_store,
)

# ---------------------------------------------------------------------------
# Engine / session factory (initialised by app lifespan)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    url = database_url or os.environ.get(
        "CONFSYS_DATABASE_URL", "postgresql+asyncpg://localhost/confsys"
    )
    _engine = create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=1800,
    )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    """Dispose the async engine, closing all pooled connections."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a per-request session; the whole action commits or rolls back."""
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    async with _session_factory() as session:
        async with session.begin():
            yield session
        await _file_store.purge_discarded(session)


# ---------------------------------------------------------------------------
# Caller dependencies
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


async def get_current_caller(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Caller:
    """Resolve the Bearer token into the caller identity. Required."""
    if credentials is None:
        raise AuthenticationError("missing authorization header")
    return await _auth_service.get_current_caller(session, credentials.credentials)


async def get_optional_caller(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Caller | None:
    """Like :func:`get_current_caller` but anonymous reads are allowed.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return await _auth_service.get_current_caller(session, credentials.credentials)


# ---------------------------------------------------------------------------
# Service getters (for Depends())
# ---------------------------------------------------------------------------


def get_auth_service() -> AuthService:
    return _auth_service


def get_user_service() -> UserService:
    return _user_service


def get_conference_service() -> ConferenceService:
    return _conference_service


def get_paper_service() -> PaperService:
    return _paper_service
