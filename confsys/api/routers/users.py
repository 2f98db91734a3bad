"""Users router — lookup by username."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.api.deps import get_current_caller, get_session, get_user_service
from confsys.api.schemas.user import UserResponse
from confsys.services.membership_service import Caller
from confsys.services.user_service import UserService

router = APIRouter()


@router.get("", response_model=UserResponse)
async def find_user(
    username: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    _caller: Caller = Depends(get_current_caller),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    profile = await users.find_by_username(session, username)
    return UserResponse.from_profile(profile)
