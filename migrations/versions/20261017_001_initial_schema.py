"""Initial schema: users, chat_sessions, matches, chat_requests, messages

Revision ID: 20261017_001
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261017_001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("subject", sa.String(128), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("in_queue", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(16), nullable=True),
        sa.Column("gender_preference", sa.String(16), nullable=True),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("photos", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_subject", "users", ["subject"], unique=True)
    op.create_index("ix_users_in_queue", "users", ["in_queue"])

    op.create_table(
        "chat_sessions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_a", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_b", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("u_lo", sa.BigInteger(), nullable=False),
        sa.Column("u_hi", sa.BigInteger(), nullable=False),
        sa.Column("phase", sa.String(16), nullable=False, server_default="speed_dating"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("a_wants_continue", sa.Boolean(), nullable=True),
        sa.Column("b_wants_continue", sa.Boolean(), nullable=True),
        sa.Column("a_wants_skip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("b_wants_skip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint("user_a <> user_b", name="chk_session_no_self"),
        sa.CheckConstraint("phase IN ('speed_dating','extended')", name="chk_session_phase"),
        sa.CheckConstraint("status IN ('active','waiting_reveal','ended')", name="chk_session_status"),
    )
    op.create_index("ix_chat_sessions_user_a", "chat_sessions", ["user_a"])
    op.create_index("ix_chat_sessions_user_b", "chat_sessions", ["user_b"])
    op.create_index("ix_chat_sessions_status", "chat_sessions", ["status"])
    op.execute(
        """
        CREATE UNIQUE INDEX idx_session_pair_active
        ON chat_sessions(u_lo, u_hi)
        WHERE status = 'active'
    """
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_a", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_b", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("u_lo", sa.BigInteger(), nullable=False),
        sa.Column("u_hi", sa.BigInteger(), nullable=False),
        sa.Column(
            "chat_session_id",
            sa.BigInteger(),
            sa.ForeignKey("chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("matched_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("user_a <> user_b", name="chk_match_no_self"),
    )
    op.create_index("ix_matches_user_a", "matches", ["user_a"])
    op.create_index("ix_matches_user_b", "matches", ["user_b"])
    op.create_index("idx_match_pair", "matches", ["u_lo", "u_hi"])

    op.create_table(
        "chat_requests",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("from_user", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("to_user", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("match_id", sa.BigInteger(), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("status IN ('pending','accepted','declined')", name="chk_request_status"),
    )
    op.create_index("ix_chat_requests_from_user", "chat_requests", ["from_user"])
    op.create_index("ix_chat_requests_match_id", "chat_requests", ["match_id"])
    op.create_index("idx_requests_to_user_status", "chat_requests", ["to_user", "status"])
    op.execute(
        """
        CREATE UNIQUE INDEX uq_request_pending_per_match
        ON chat_requests(match_id)
        WHERE status = 'pending'
    """
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "chat_session_id",
            sa.BigInteger(),
            sa.ForeignKey("chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("idx_messages_session_created", "messages", ["chat_session_id", "created_at"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("chat_requests")
    op.drop_table("matches")
    op.drop_table("chat_sessions")
    op.drop_table("users")
