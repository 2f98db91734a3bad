"""AuthService — password hashing, JWT tokens and caller resolution."""

import os
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.user_dao import UserDAO
from confsys.models.enums import RoleType
from confsys.services import AuthenticationError
from confsys.services.membership_service import Caller
from confsys.services.user_service import UserService, validate_registration

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def _hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


# ---------------------------------------------------------------------------
# JWT configuration
# ---------------------------------------------------------------------------

# Pre-computed hash so unknown usernames cost as much as wrong passwords
_DUMMY_HASH = bcrypt.hashpw(b"dummy", bcrypt.gensalt()).decode()

_ALGORITHM = "HS256"
_ACCESS_TOKEN_EXPIRE = timedelta(minutes=30)
_REFRESH_TOKEN_EXPIRE = timedelta(days=7)

_ENV_JWT_SECRET = "CONFSYS_JWT_SECRET"

_BAD_CREDENTIALS_MSG = "Username or password is incorrect"


def _get_secret() -> str:
    """Read JWT secret from environment. Raises if not set."""
    secret = os.environ.get(_ENV_JWT_SECRET)
    if not secret:
        raise RuntimeError(f"{_ENV_JWT_SECRET} environment variable is required")
    return secret


def _encode(sub: str, token_type: str, expires_in: timedelta) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": sub, "type": token_type, "exp": now + expires_in},
        _get_secret(),
        algorithm=_ALGORITHM,
    )


def _decode(token: str, expected_type: str) -> str:
    """Return the ``sub`` claim of a valid token of *expected_type*."""
    try:
        payload = jwt.decode(token, _get_secret(), algorithms=[_ALGORITHM])
    except JWTError:
        raise AuthenticationError(f"invalid {expected_type} token")

    if payload.get("type") != expected_type:
        raise AuthenticationError("invalid token type")

    sub = payload.get("sub")
    if not sub:
        raise AuthenticationError("invalid token payload")
    return sub


# ---------------------------------------------------------------------------
# Token data classes
# ---------------------------------------------------------------------------


class TokenPair:
    """Access + refresh token pair returned by register and login."""

    __slots__ = ("access_token", "refresh_token", "token_type")

    def __init__(self, access_token: str, refresh_token: str) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.token_type = "bearer"


class AccessToken:
    """Single access token returned by refresh."""

    __slots__ = ("access_token", "token_type")

    def __init__(self, access_token: str) -> None:
        self.access_token = access_token
        self.token_type = "bearer"


def _issue_pair(user_id: uuid.UUID) -> TokenPair:
    sub = str(user_id)
    return TokenPair(
        _encode(sub, "access", _ACCESS_TOKEN_EXPIRE),
        _encode(sub, "refresh", _REFRESH_TOKEN_EXPIRE),
    )


# ---------------------------------------------------------------------------
# AuthService
# ---------------------------------------------------------------------------


class AuthService:
    """Stateless authentication service.

    The workflow services never see tokens: this class turns a bearer token
    into the :class:`Caller` they take as an explicit argument.
    """

    def __init__(self, user_dao: UserDAO, user_service: UserService) -> None:
        self._user_dao = user_dao
        self._user_service = user_service

    async def register(
        self,
        session: AsyncSession,
        *,
        username: str,
        full_name: str,
        password: str,
        roles: frozenset[RoleType] = frozenset(),
    ) -> TokenPair:
        """Validate and create an account, then log it in."""
        validate_registration(username, full_name, password)
        profile = await self._user_service.register(
            session,
            username=username,
            full_name=full_name,
            password_hash=_hash_password(password),
            roles=roles,
        )
        return _issue_pair(profile.user.id)

    async def login(self, session: AsyncSession, username: str, password: str) -> TokenPair:
        """Verify credentials and return an access + refresh token pair.

        Does not distinguish between "user not found" and "wrong password".
        """
        user = await self._user_dao.get_by_username(session, username)
        if user is None:
            _verify_password(password, _DUMMY_HASH)
            raise AuthenticationError(_BAD_CREDENTIALS_MSG)
        if not _verify_password(password, user.password_hash):
            raise AuthenticationError(_BAD_CREDENTIALS_MSG)
        return _issue_pair(user.id)

    def refresh(self, refresh_token: str) -> AccessToken:
        """Validate a refresh token and issue a new access token. No database query."""
        sub = _decode(refresh_token, "refresh")
        return AccessToken(_encode(sub, "access", _ACCESS_TOKEN_EXPIRE))

    async def get_current_caller(self, session: AsyncSession, token: str) -> Caller:
        """Decode an access token into the caller identity with its capabilities.

        Capabilities are re-read on every request, so a role granted during
        one request (e.g. PC_CHAIR on conference creation) applies to the next.
        """
        sub = _decode(token, "access")
        try:
            user_id = uuid.UUID(sub)
        except ValueError:
            raise AuthenticationError("invalid token payload")

        user = await self._user_dao.get_by_id(session, user_id)
        if user is None:
            raise AuthenticationError("user not found")

        roles = await self._user_dao.list_roles(session, user.id)
        return Caller(user_id=user.id, full_name=user.full_name, roles=frozenset(roles))
