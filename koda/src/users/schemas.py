from pydantic import BaseModel, ConfigDict, Field, model_validator

from koda.src.users.models import AccountVisibility, DetailLevel


class UserResponse(BaseModel):
    """User response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str | None = None
    name: str | None = None
    username: str | None = None
    city: str | None = None
    default_detail_level: DetailLevel = DetailLevel.BUSY_ONLY
    is_active: bool = True


class ProfileUpdate(BaseModel):
    """Profile fields a user may change. Omitted fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    username: str | None = Field(
        default=None, min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$"
    )
    city: str | None = Field(default=None, max_length=100)


class PrivacySettings(BaseModel):
    """Privacy preferences as returned to their owner."""

    account_visibility: AccountVisibility = AccountVisibility.FRIENDS_ONLY
    default_detail_level: DetailLevel = DetailLevel.BUSY_ONLY
    allow_suggestions: bool = True


class PrivacyUpdate(BaseModel):
    account_visibility: AccountVisibility | None = None
    default_detail_level: DetailLevel | None = None
    allow_suggestions: bool | None = None

    @model_validator(mode="after")
    def check_not_null(self) -> "PrivacyUpdate":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self


class MeResponse(BaseModel):
    """The current user with their privacy settings."""

    user: UserResponse
    privacy: PrivacySettings
