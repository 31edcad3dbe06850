from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.exceptions import BadRequestException, NotFoundException
from koda.core.logging import get_logger
from koda.core.timeutils import utcnow
from koda.src.events.models import EventVisibility
from koda.src.events.repository import EventRepository
from koda.src.friends.policies import (
    filter_events_for_viewer,
    get_friend_calendar_permission,
    redact_event,
)
from koda.src.friends.models import Friendship, FriendshipStatus
from koda.src.friends.repository import FriendshipRepository
from koda.src.friends.schemas import FeedFriend, FeedResponse, FriendCalendarResponse
from koda.src.users.models import DetailLevel
from koda.src.users.repository import UserRepository

logger = get_logger(__name__)

FEED_DAYS = 7
FEED_VISIBILITIES = [EventVisibility.FRIENDS, EventVisibility.PUBLIC]


class FriendsService:
    """Service for what friends can see of each other's calendars."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.friendships = FriendshipRepository(session)
        self.users = UserRepository(session)
        self.events = EventRepository(session)

    async def get_friend_calendar(
        self, viewer_id: int, owner_id: int, days: int = FEED_DAYS
    ) -> FriendCalendarResponse:
        """An owner's upcoming events, redacted for the viewer."""
        permission = await get_friend_calendar_permission(
            self.friendships, self.users, owner_id, viewer_id
        )
        if not permission.allowed:
            logger.debug(f"User {viewer_id} may not view calendar of {owner_id}")
            return FriendCalendarResponse(owner_id=owner_id, events=[])

        now = utcnow()
        events = await self.events.get_events_in_window(
            owner_id, now, now + timedelta(days=days)
        )
        return FriendCalendarResponse(
            owner_id=owner_id,
            detail_level=permission.detail_level,
            events=filter_events_for_viewer(events, permission),
        )

    async def get_feed(self, user_id: int) -> FeedResponse:
        """Friends' shared events for the coming week, busiest friends first."""
        friendships = await self.friendships.get_calendar_friendships(user_id)
        if not friendships:
            return FeedResponse(friends=[])

        detail_levels = {f.other(user_id): f.detail_level for f in friendships}
        friend_ids = list(detail_levels)
        users = await self.users.get_by_ids(friend_ids)

        now = utcnow()
        events = await self.events.get_events_for_owners(
            friend_ids, now, now + timedelta(days=FEED_DAYS), FEED_VISIBILITIES
        )
        events_by_friend: dict[int, list] = {friend_id: [] for friend_id in friend_ids}
        for event in events:
            events_by_friend[event.owner_id].append(event)

        friends = []
        for friend_id in friend_ids:
            friend = users.get(friend_id)
            if friend is None:
                continue
            detail_level = (
                detail_levels[friend_id]
                or friend.default_detail_level
                or DetailLevel.BUSY_ONLY
            )
            friend_events = [redact_event(e, detail_level) for e in events_by_friend[friend_id]]
            friends.append(
                FeedFriend(
                    id=friend.id,
                    name=friend.name,
                    username=friend.username,
                    detail_level=detail_level,
                    event_count=len(friend_events),
                    events=friend_events,
                )
            )

        friends.sort(key=lambda f: f.event_count, reverse=True)
        return FeedResponse(friends=friends)

    async def send_request(self, requester_id: int, addressee_id: int) -> Friendship:
        """Ask another user to be friends.

        Raises:
            BadRequestException: If the target is the requester, either user
                has blocked the other, or a request or friendship already exists
            NotFoundException: If the target user does not exist
        """
        if requester_id == addressee_id:
            raise BadRequestException("You cannot send a friend request to yourself")
        if await self.users.find_by_id(addressee_id) is None:
            raise NotFoundException("User not found")
        if await self.friendships.is_blocked(requester_id, addressee_id):
            raise BadRequestException("Cannot send a friend request to this user")

        existing = await self.friendships.get_between(requester_id, addressee_id)
        if existing is not None:
            if existing.status != FriendshipStatus.DECLINED:
                raise BadRequestException("A friend request or friendship already exists")
            # A declined request may be asked again
            await self.friendships.delete_between(requester_id, addressee_id)

        friendship = await self.friendships.create_request(requester_id, addressee_id)
        await self.session.commit()
        logger.info(f"User {requester_id} sent a friend request to {addressee_id}")
        return friendship

    async def respond(self, user_id: int, friendship_id: int, accept: bool) -> Friendship:
        """Accept or decline a pending request addressed to ``user_id``."""
        friendship = await self.friendships.get_by_id(friendship_id)
        if friendship is None or friendship.addressee_id != user_id:
            raise NotFoundException("Friend request not found")
        if friendship.status != FriendshipStatus.PENDING:
            raise BadRequestException("Friend request is not pending")

        friendship.status = FriendshipStatus.ACCEPTED if accept else FriendshipStatus.DECLINED
        await self.session.commit()
        logger.info(f"User {user_id} {friendship.status.value.lower()} request {friendship_id}")
        return friendship

    async def block(self, blocker_id: int, blocked_id: int) -> None:
        """Block a user. Any request or friendship between the two is removed."""
        if blocker_id == blocked_id:
            raise BadRequestException("You cannot block yourself")
        if await self.users.find_by_id(blocked_id) is None:
            raise NotFoundException("User not found")

        if await self.friendships.get_block(blocker_id, blocked_id) is None:
            await self.friendships.add_block(blocker_id, blocked_id)
        removed = await self.friendships.delete_between(blocker_id, blocked_id)
        await self.session.commit()
        logger.info(f"User {blocker_id} blocked {blocked_id}, removed {removed} friendships")

    async def unblock(self, blocker_id: int, blocked_id: int) -> None:
        block = await self.friendships.get_block(blocker_id, blocked_id)
        if block is None:
            raise NotFoundException("Block not found")
        await self.friendships.delete_block(block)
        await self.session.commit()
