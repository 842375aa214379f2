"""create initial tables

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


MATCH_STATUS = sa.Enum("pending", "accepted", "rejected", name="match_status")
ROOM_TYPE = sa.Enum("Waiting", "Matching", "Private", "Public", name="room_type")
ROOM_STATUS = sa.Enum("Active", "Inactive", "Full", "Closed", "Expired", name="room_status")
GENDER_FILTER = sa.Enum("Male", "Female", "Mixed", name="gender_filter")
PARTICIPANT_ROLE = sa.Enum("Owner", "Moderator", "Member", name="participant_role")
PARTICIPANT_STATUS = sa.Enum("Online", "Away", "Offline", "Speaking", name="participant_status")
MESSAGE_TYPE = sa.Enum(
    "Text", "Emoji", "Reaction", "System", "Gift", "Join", "Leave", name="message_type"
)
REACTION_TYPE = sa.Enum(
    "Heart", "Like", "Laugh", "Wow", "Sad", "Angry", "Fire", "Clap", name="reaction_type"
)


def _timestamp(name: str, *, nullable: bool = False, server_default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now() if server_default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=10), nullable=True),
        sa.Column("bio", sa.String(length=500), nullable=True),
        sa.Column("profile_image_url", sa.String(length=500), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("last_login_at", nullable=True, server_default=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "interests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
        sa.Column("description", sa.String(length=200), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "user_interests",
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column(
            "interest_id",
            sa.Integer(),
            sa.ForeignKey("interests.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        _timestamp("created_at"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("receiver_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pair_key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("status", MATCH_STATUS, nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("responded_at", nullable=True, server_default=False),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_matches_sender_id", "matches", ["sender_id"])
    op.create_index("ix_matches_receiver_status", "matches", ["receiver_id", "status"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("room_type", ROOM_TYPE, nullable=False),
        sa.Column("status", ROOM_STATUS, nullable=False, server_default="Active"),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("current_participants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("gender_filter", GENDER_FILTER, nullable=True),
        sa.Column("min_age", sa.Integer(), nullable=True),
        sa.Column("max_age", sa.Integer(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        _timestamp("expires_at", nullable=True, server_default=False),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("premium_price", sa.Numeric(10, 2), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_rooms_type_status", "rooms", ["room_type", "status", "is_active"])

    op.create_table(
        "room_participants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("profile_image_url", sa.String(length=500), nullable=True),
        sa.Column("role", PARTICIPANT_ROLE, nullable=False, server_default="Member"),
        sa.Column("status", PARTICIPANT_STATUS, nullable=False, server_default="Online"),
        sa.Column("is_microphone_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_speaking", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("grid_position", sa.Integer(), nullable=True),
        _timestamp("joined_at"),
        _timestamp("left_at", nullable=True, server_default=False),
        _timestamp("last_activity_at"),
        sa.Column("total_time_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("connection_id", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("room_id", "user_id", name="uq_room_participant_user"),
        sa.UniqueConstraint("room_id", "grid_position", name="uq_room_participant_grid"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_room_participants_room_id", "room_participants", ["room_id"])
    op.create_index("ix_room_participants_user_active", "room_participants", ["user_id", "is_active"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "sender_id",
            sa.Integer(),
            sa.ForeignKey("room_participants.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", MESSAGE_TYPE, nullable=False, server_default="Text"),
        sa.Column(
            "reply_to_message_id",
            sa.Integer(),
            sa.ForeignKey("messages.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True, server_default=False),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_messages_room_created", "messages", ["room_id", "created_at"])

    op.create_table(
        "message_reactions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "message_id",
            sa.Integer(),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reaction_type", REACTION_TYPE, nullable=False),
        sa.Column("emoji", sa.String(length=10), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "message_id", "user_id", "reaction_type", name="uq_message_reaction_user_type"
        ),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_message_reactions_message_id", "message_reactions", ["message_id"])


def downgrade() -> None:
    op.drop_index("ix_message_reactions_message_id", table_name="message_reactions")
    op.drop_table("message_reactions")
    op.drop_index("ix_messages_room_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_room_participants_user_active", table_name="room_participants")
    op.drop_index("ix_room_participants_room_id", table_name="room_participants")
    op.drop_table("room_participants")
    op.drop_index("ix_rooms_type_status", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("ix_matches_receiver_status", table_name="matches")
    op.drop_index("ix_matches_sender_id", table_name="matches")
    op.drop_table("matches")
    op.drop_table("user_interests")
    op.drop_table("interests")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        REACTION_TYPE,
        MESSAGE_TYPE,
        PARTICIPANT_STATUS,
        PARTICIPANT_ROLE,
        GENDER_FILTER,
        ROOM_STATUS,
        ROOM_TYPE,
        MATCH_STATUS,
    ):
        enum.drop(bind, checkfirst=True)
