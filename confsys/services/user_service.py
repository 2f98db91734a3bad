"""UserService — account registration and lookup."""

from __future__ import annotations

import re
import string
import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.dao.user_dao import UserDAO
from confsys.models.enums import RoleType
from confsys.models.user import User
from confsys.services import DuplicateResourceError, NotFoundError, ValidationError
from confsys.services.role_service import RoleService

log = structlog.get_logger(__name__)

USERNAME_MAX_LENGTH = 20
FULL_NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 12
PASSWORD_MAX_LENGTH = 128

_FULL_NAME_RE = re.compile(r"^[a-zA-Z ]*$")

# (predicate, message) pairs checked in order; the first failure is reported
_PASSWORD_RULES = (
    (
        lambda p: PASSWORD_MIN_LENGTH <= len(p) <= PASSWORD_MAX_LENGTH,
        f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} "
        "characters in length",
    ),
    (
        lambda p: any(c in string.ascii_uppercase for c in p),
        "Password must contain 1 or more uppercase characters",
    ),
    (
        lambda p: any(c in string.ascii_lowercase for c in p),
        "Password must contain 1 or more lowercase characters",
    ),
    (
        lambda p: any(c in string.digits for c in p),
        "Password must contain 1 or more digit characters",
    ),
    (
        lambda p: any(c in string.punctuation for c in p),
        "Password must contain 1 or more special characters",
    ),
)


def validate_registration(username: str, full_name: str, password: str) -> None:
    """Raise :class:`ValidationError` describing the first invalid field."""
    if not username.strip():
        raise ValidationError("The username field is required")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Invalid username. Username must not exceed {USERNAME_MAX_LENGTH} characters"
        )
    if not full_name.strip():
        raise ValidationError("The full name field is required")
    if len(full_name) > FULL_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Invalid full name. Full name must not exceed {FULL_NAME_MAX_LENGTH} characters"
        )
    if not _FULL_NAME_RE.match(full_name):
        raise ValidationError(
            "Invalid full name. Full name should contain only characters and spaces"
        )
    for check, message in _PASSWORD_RULES:
        if not check(password):
            raise ValidationError(message)


@dataclass
class UserProfile:
    """A user together with its global capabilities."""

    user: User
    roles: frozenset[RoleType]


class UserService:
    def __init__(self, user_dao: UserDAO, role_service: RoleService) -> None:
        self._user_dao = user_dao
        self._role_service = role_service

    async def register(
        self,
        session: AsyncSession,
        *,
        username: str,
        full_name: str,
        password_hash: str,
        roles: frozenset[RoleType] = frozenset(),
    ) -> UserProfile:
        """Persist a new account and grant it the requested capabilities.

        Input validation happens in :func:`validate_registration` before the
        password is hashed; this method only enforces username uniqueness.
        """
        if await self._user_dao.get_by_username(session, username) is not None:
            raise DuplicateResourceError("The provided username already exists")
        user = await self._user_dao.create_unique(
            session,
            username=username,
            full_name=full_name,
            password_hash=password_hash,
        )
        if user is None:
            raise DuplicateResourceError("The provided username already exists")

        for role in sorted(roles, key=lambda r: r.value):
            await self._role_service.grant(session, user.id, role)
        log.info("user.registered", user_id=str(user.id), roles=sorted(r.value for r in roles))
        return UserProfile(user=user, roles=frozenset(roles))

    async def find_by_username(self, session: AsyncSession, username: str) -> UserProfile:
        user = await self._user_dao.get_by_username(session, username)
        if user is None:
            raise NotFoundError(f"User not found with username: {username}")
        roles = await self._role_service.roles_of(session, user.id)
        return UserProfile(user=user, roles=roles)

    async def get(self, session: AsyncSession, user_id: uuid.UUID) -> UserProfile:
        user = await self._user_dao.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"User not found with id: {user_id}")
        roles = await self._role_service.roles_of(session, user.id)
        return UserProfile(user=user, roles=roles)
