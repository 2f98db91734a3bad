"""Auth router — register, login, refresh, me."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.api.deps import (
    get_auth_service,
    get_current_caller,
    get_session,
    get_user_service,
)
from confsys.api.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
)
from confsys.api.schemas.user import UserResponse
from confsys.services.auth_service import AuthService, TokenPair
from confsys.services.membership_service import Caller
from confsys.services.user_service import UserService

router = APIRouter()


def _pair_response(pair: TokenPair) -> TokenPairResponse:
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
    )


@router.post("/register", response_model=TokenPairResponse, status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    pair = await auth.register(
        session,
        username=body.username,
        full_name=body.full_name,
        password=body.password,
        roles=frozenset(body.roles),
    )
    return _pair_response(pair)


@router.post("/login", response_model=TokenPairResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    pair = await auth.login(session, body.username, body.password)
    return _pair_response(pair)


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(
    body: RefreshRequest,
    auth: AuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    token = auth.refresh(body.refresh_token)
    return AccessTokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
    )


@router.get("/me", response_model=UserResponse)
async def me(
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await users.get(session, caller.user_id)
    return UserResponse.from_profile(profile)
