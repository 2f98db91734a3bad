"""User response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from confsys.models.enums import RoleType
from confsys.services.user_service import UserProfile


class UserSummary(BaseModel):
    """Public identity of a user, as listed on conferences and papers."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    full_name: str


class UserResponse(UserSummary):
    roles: list[RoleType]
    created_at: datetime

    @classmethod
    def from_profile(cls, profile: UserProfile) -> UserResponse:
        user = profile.user
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            roles=sorted(profile.roles, key=lambda r: r.value),
            created_at=user.created_at,
        )
