"""Initial users and events tables

Revision ID: initial_users_and_events
Revises:
Create Date: 2026-10-01 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "initial_users_and_events"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

detail_level = sa.Enum("BUSY_ONLY", "DETAILS", name="detail_level")
event_visibility = sa.Enum("PRIVATE", "FRIENDS", "PUBLIC", name="event_visibility")
event_source = sa.Enum("KODA", "GOOGLE", name="event_source")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("default_detail_level", detail_level, nullable=False, server_default="BUSY_ONLY"),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location_name", sa.String(500), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(100), nullable=False, server_default="UTC"),
        sa.Column("is_all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("visibility", event_visibility, nullable=False, server_default="FRIENDS"),
        sa.Column("source", event_source, nullable=False, server_default="KODA"),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("sync_to_google", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_events_owner_id", "events", ["owner_id"])
    op.create_index("ix_events_source", "events", ["source"])
    op.create_index("ix_events_external_id", "events", ["external_id"])


def downgrade() -> None:
    op.drop_table("events")
    op.drop_table("users")
    event_source.drop(op.get_bind(), checkfirst=True)
    event_visibility.drop(op.get_bind(), checkfirst=True)
    detail_level.drop(op.get_bind(), checkfirst=True)
