import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from koda.core.database import Base
from koda.core.timeutils import utcnow


class EventVisibility(str, enum.Enum):
    PRIVATE = "PRIVATE"
    FRIENDS = "FRIENDS"
    PUBLIC = "PUBLIC"


class AttendeeRole(str, enum.Enum):
    HOST = "HOST"
    ATTENDEE = "ATTENDEE"


class AttendeeStatus(str, enum.Enum):
    INVITED = "INVITED"
    GOING = "GOING"
    DECLINED = "DECLINED"


class AttendeeAnonymity(str, enum.Enum):
    """Whether other guests see who an attendee is."""

    NAMED = "NAMED"
    ANONYMOUS = "ANONYMOUS"


class EventSource(str, enum.Enum):
    """Where an event was authored. GOOGLE events only ever come from a pull."""

    KODA = "KODA"
    GOOGLE = "GOOGLE"


class Event(Base):
    """Event model for storing calendar events."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timezone: Mapped[str] = mapped_column(String(100), nullable=False, default="UTC")
    is_all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    visibility: Mapped[EventVisibility] = mapped_column(
        Enum(EventVisibility, name="event_visibility"),
        nullable=False,
        default=EventVisibility.FRIENDS,
    )
    source: Mapped[EventSource] = mapped_column(
        Enum(EventSource, name="event_source"),
        nullable=False,
        default=EventSource.KODA,
        index=True,
    )
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    sync_to_google: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Stamped in Python so updated_at orders precisely against last_pushed_at
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    # Relationship to user
    owner = relationship("User", backref="events")

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, owner_id={self.owner_id})>"


class Attendee(Base):
    """A user's place on an event's guest list."""

    __tablename__ = "attendees"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_attendee_event_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[AttendeeRole] = mapped_column(
        Enum(AttendeeRole, name="attendee_role"), nullable=False, default=AttendeeRole.ATTENDEE
    )
    status: Mapped[AttendeeStatus] = mapped_column(
        Enum(AttendeeStatus, name="attendee_status"),
        nullable=False,
        default=AttendeeStatus.INVITED,
    )
    anonymity: Mapped[AttendeeAnonymity] = mapped_column(
        Enum(AttendeeAnonymity, name="attendee_anonymity"),
        nullable=False,
        default=AttendeeAnonymity.NAMED,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
