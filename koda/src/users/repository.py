from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from koda.src.users.models import AccountVisibility, User, UserSettings


class UserRepository:
    """Repository for handling user database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, user_id: int) -> User | None:
        """Get user by ID, or None if it does not exist."""
        query = select(User).where(User.id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_ids(self, user_ids: list[int]) -> dict[int, User]:
        """Get several users keyed by ID.

        Args:
            user_ids: User IDs

        Returns:
            dict[int, User]: Found users; missing IDs are absent
        """
        if not user_ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(user_ids)))
        return {user.id: user for user in result.scalars().all()}

    async def find_by_username(self, username: str) -> User | None:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def update(self, user: User, **fields) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await self.session.flush()
        return user

    async def get_settings(self, user_id: int) -> UserSettings | None:
        result = await self.session.execute(
            select(UserSettings).where(UserSettings.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_settings(self, user_id: int) -> UserSettings:
        """A user's settings row, created with defaults on first use."""
        settings = await self.get_settings(user_id)
        if settings is None:
            settings = UserSettings(
                user_id=user_id,
                account_visibility=AccountVisibility.FRIENDS_ONLY,
                allow_suggestions=True,
            )
            self.session.add(settings)
            await self.session.flush()
        return settings
