from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.database import get_session
from koda.core.logging import get_logger
from koda.core.security import get_current_user
from koda.src.friends.schemas import (
    FeedResponse,
    FriendCalendarResponse,
    FriendRequestCreate,
    FriendshipResponse,
)
from koda.src.friends.service import FriendsService
from koda.src.users.models import User

logger = get_logger(__name__)

router = APIRouter(tags=["friends"])


@router.get("/friends/{owner_id}/calendar", response_model=FriendCalendarResponse)
async def get_friend_calendar(
    owner_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FriendCalendarResponse:
    """A friend's upcoming events, redacted to the sharing terms."""
    return await FriendsService(session).get_friend_calendar(current_user.id, owner_id)


@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FeedResponse:
    """Upcoming shared events of the current user's friends."""
    logger.debug(f"Feed request from user {current_user.id}")
    return await FriendsService(session).get_feed(current_user.id)


@router.post(
    "/friends/requests",
    response_model=FriendshipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_friend_request(
    request: FriendRequestCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FriendshipResponse:
    """Send a friend request."""
    return await FriendsService(session).send_request(current_user.id, request.user_id)


@router.post("/friends/requests/{friendship_id}/accept", response_model=FriendshipResponse)
async def accept_friend_request(
    friendship_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FriendshipResponse:
    return await FriendsService(session).respond(current_user.id, friendship_id, accept=True)


@router.post("/friends/requests/{friendship_id}/decline", response_model=FriendshipResponse)
async def decline_friend_request(
    friendship_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FriendshipResponse:
    return await FriendsService(session).respond(current_user.id, friendship_id, accept=False)


@router.post("/blocks/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def block_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    """Block a user and end any friendship with them."""
    await FriendsService(session).block(current_user.id, user_id)


@router.delete("/blocks/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    await FriendsService(session).unblock(current_user.id, user_id)
