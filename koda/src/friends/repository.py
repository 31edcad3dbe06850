from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from koda.src.friends.models import Block, Friendship, FriendshipStatus


class FriendshipRepository:
    """Repository for friendships and blocks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_blocked(self, user_a: int, user_b: int) -> bool:
        """Whether either user has blocked the other."""
        result = await self.session.execute(
            select(Block.id).where(
                or_(
                    and_(Block.blocker_id == user_a, Block.blocked_id == user_b),
                    and_(Block.blocker_id == user_b, Block.blocked_id == user_a),
                )
            )
        )
        return result.first() is not None

    async def get_accepted(self, user_a: int, user_b: int) -> Friendship | None:
        """The accepted friendship between two users, in either direction."""
        result = await self.session.execute(
            select(Friendship).where(
                Friendship.status == FriendshipStatus.ACCEPTED,
                or_(
                    and_(Friendship.requester_id == user_a, Friendship.addressee_id == user_b),
                    and_(Friendship.requester_id == user_b, Friendship.addressee_id == user_a),
                ),
            )
        )
        return result.scalars().first()

    async def get_calendar_friendships(self, user_id: int) -> list[Friendship]:
        """Accepted friendships of a user that allow calendar viewing."""
        result = await self.session.execute(
            select(Friendship)
            .where(
                Friendship.status == FriendshipStatus.ACCEPTED,
                Friendship.can_view_calendar.is_(True),
                or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
            )
            .order_by(Friendship.id)
        )
        return list(result.scalars().all())

    async def get_between(self, user_a: int, user_b: int) -> Friendship | None:
        """Any friendship row between two users, in either direction."""
        result = await self.session.execute(
            select(Friendship).where(_pair(user_a, user_b))
        )
        return result.scalars().first()

    async def get_by_id(self, friendship_id: int) -> Friendship | None:
        result = await self.session.execute(
            select(Friendship).where(Friendship.id == friendship_id)
        )
        return result.scalar_one_or_none()

    async def create_request(self, requester_id: int, addressee_id: int) -> Friendship:
        friendship = Friendship(
            requester_id=requester_id,
            addressee_id=addressee_id,
            status=FriendshipStatus.PENDING,
        )
        self.session.add(friendship)
        await self.session.flush()
        return friendship

    async def delete_between(self, user_a: int, user_b: int) -> int:
        """Delete friendships between two users. Returns count deleted."""
        result = await self.session.execute(delete(Friendship).where(_pair(user_a, user_b)))
        return result.rowcount

    async def get_block(self, blocker_id: int, blocked_id: int) -> Block | None:
        result = await self.session.execute(
            select(Block).where(Block.blocker_id == blocker_id, Block.blocked_id == blocked_id)
        )
        return result.scalar_one_or_none()

    async def add_block(self, blocker_id: int, blocked_id: int) -> Block:
        block = Block(blocker_id=blocker_id, blocked_id=blocked_id)
        self.session.add(block)
        await self.session.flush()
        return block

    async def delete_block(self, block: Block) -> None:
        await self.session.delete(block)
        await self.session.flush()


def _pair(user_a: int, user_b: int):
    return or_(
        and_(Friendship.requester_id == user_a, Friendship.addressee_id == user_b),
        and_(Friendship.requester_id == user_b, Friendship.addressee_id == user_a),
    )
