"""Add event attendees and user privacy settings

Revision ID: add_attendees_and_user_settings
Revises: add_google_sync_and_friends
Create Date: 2026-10-20 10:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "add_attendees_and_user_settings"
down_revision: str | None = "add_google_sync_and_friends"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

attendee_role = sa.Enum("HOST", "ATTENDEE", name="attendee_role")
attendee_status = sa.Enum("INVITED", "GOING", "DECLINED", name="attendee_status")
attendee_anonymity = sa.Enum("NAMED", "ANONYMOUS", name="attendee_anonymity")
account_visibility = sa.Enum("PUBLIC", "FRIENDS_ONLY", "PRIVATE", name="account_visibility")


def upgrade() -> None:
    op.create_table(
        "attendees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", attendee_role, nullable=False, server_default="ATTENDEE"),
        sa.Column("status", attendee_status, nullable=False, server_default="INVITED"),
        sa.Column("anonymity", attendee_anonymity, nullable=False, server_default="NAMED"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_attendee_event_user"),
    )
    op.create_index("ix_attendees_event_id", "attendees", ["event_id"])
    op.create_index("ix_attendees_user_id", "attendees", ["user_id"])

    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("account_visibility", account_visibility, nullable=False, server_default="FRIENDS_ONLY"),
        sa.Column("allow_suggestions", sa.Boolean(), nullable=False, server_default=sa.true()),
    )


def downgrade() -> None:
    op.drop_table("user_settings")
    op.drop_table("attendees")
    bind = op.get_bind()
    for enum_type in (account_visibility, attendee_anonymity, attendee_status, attendee_role):
        enum_type.drop(bind, checkfirst=True)
