from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.exceptions import AlreadyExistsException
from koda.core.logging import get_logger
from koda.src.users.models import User
from koda.src.users.repository import UserRepository
from koda.src.users.schemas import (
    MeResponse,
    PrivacySettings,
    PrivacyUpdate,
    ProfileUpdate,
    UserResponse,
)

logger = get_logger(__name__)


class UserService:
    """Service for a user's own profile and privacy settings."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = UserRepository(session)

    async def get_me(self, user_id: int) -> MeResponse:
        user = await self.repository.find_by_id(user_id)
        settings = await self.repository.get_settings(user.id)
        privacy = PrivacySettings(default_detail_level=user.default_detail_level)
        if settings is not None:
            privacy.account_visibility = settings.account_visibility
            privacy.allow_suggestions = settings.allow_suggestions
        return MeResponse(user=UserResponse.model_validate(user), privacy=privacy)

    async def update_profile(self, user_id: int, changes: ProfileUpdate) -> User:
        """Update profile fields.

        Raises:
            AlreadyExistsException: If another user already has the username
        """
        user = await self.repository.find_by_id(user_id)
        fields = changes.model_dump(exclude_unset=True)

        username = fields.get("username")
        if username is not None:
            holder = await self.repository.find_by_username(username)
            if holder is not None and holder.id != user_id:
                raise AlreadyExistsException("Username is already taken")

        user = await self.repository.update(user, **fields)
        await self.session.commit()
        logger.info(f"Updated profile of user {user_id}")
        return user

    async def update_privacy(self, user_id: int, changes: PrivacyUpdate) -> PrivacySettings:
        """Persist privacy changes. The detail level lives on the user row."""
        user = await self.repository.find_by_id(user_id)
        settings = await self.repository.get_or_create_settings(user_id)
        fields = changes.model_dump(exclude_unset=True)

        if "default_detail_level" in fields:
            user.default_detail_level = fields.pop("default_detail_level")
        for name, value in fields.items():
            setattr(settings, name, value)
        await self.session.commit()
        logger.info(f"Updated privacy settings of user {user_id}")

        return PrivacySettings(
            account_visibility=settings.account_visibility,
            default_detail_level=user.default_detail_level,
            allow_suggestions=settings.allow_suggestions,
        )
