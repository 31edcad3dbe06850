import enum

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String

from koda.core.database import Base


class DetailLevel(str, enum.Enum):
    """How much of a calendar a friend may see."""

    BUSY_ONLY = "BUSY_ONLY"
    DETAILS = "DETAILS"


class User(Base):
    """User model."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=True)
    username = Column(String, unique=True, index=True, nullable=True)
    city = Column(String, nullable=True)
    default_detail_level = Column(
        Enum(DetailLevel, name="detail_level"),
        nullable=False,
        default=DetailLevel.BUSY_ONLY,
    )
    is_active = Column(Boolean, default=True)


class AccountVisibility(str, enum.Enum):
    """Who can find an account."""

    PUBLIC = "PUBLIC"
    FRIENDS_ONLY = "FRIENDS_ONLY"
    PRIVATE = "PRIVATE"


class UserSettings(Base):
    """Per-user privacy preferences."""

    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    account_visibility = Column(
        Enum(AccountVisibility, name="account_visibility"),
        nullable=False,
        default=AccountVisibility.FRIENDS_ONLY,
    )
    allow_suggestions = Column(Boolean, nullable=False, default=True)
