from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.database import get_session
from koda.core.security import get_current_user
from koda.src.users.models import User
from koda.src.users.schemas import (
    MeResponse,
    PrivacySettings,
    PrivacyUpdate,
    ProfileUpdate,
    UserResponse,
)
from koda.src.users.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
me_router = APIRouter(prefix="/me", tags=["me"])


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    """Get current authenticated user."""
    return user


@me_router.get("", response_model=MeResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MeResponse:
    """The current user with their privacy settings."""
    return await UserService(session).get_me(user.id)


@me_router.patch("/profile", response_model=UserResponse)
async def update_profile(
    changes: ProfileUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update name, username or city. A taken username is a 409."""
    return await UserService(session).update_profile(user.id, changes)


@me_router.patch("/privacy", response_model=PrivacySettings)
async def update_privacy(
    changes: PrivacyUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> PrivacySettings:
    return await UserService(session).update_privacy(user.id, changes)
