from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from koda.core.database import Base
from koda.core.timeutils import utcnow


class GoogleCalendarConnection(Base):
    """Per-user link to a Google Calendar."""

    __tablename__ = "google_calendar_connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    calendar_id: Mapped[str] = mapped_column(String(255), nullable=False, default="primary")
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sync_window_past_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    sync_window_future_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_sync_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_sync_error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_sync_failed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<GoogleCalendarConnection(user_id={self.user_id}, calendar_id={self.calendar_id})>"


class GoogleEventMapping(Base):
    """Links a local event to its Google Calendar counterpart."""

    __tablename__ = "google_event_mappings"
    __table_args__ = (
        UniqueConstraint("user_id", "google_event_id", name="uq_mapping_user_google_event"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    koda_event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    google_event_id: Mapped[str] = mapped_column(String(1024), nullable=False)
    google_etag: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_pushed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<GoogleEventMapping(koda_event_id={self.koda_event_id}, "
            f"google_event_id={self.google_event_id})>"
        )
