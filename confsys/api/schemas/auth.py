"""Auth request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, field_validator

from confsys.models.enums import RoleType


class RegisterRequest(BaseModel):
    username: str
    full_name: str
    password: str
    roles: set[RoleType] = set()

    @field_validator("username", "full_name", mode="before")
    @classmethod
    def _strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
