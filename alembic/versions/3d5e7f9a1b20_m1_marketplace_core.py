"""m1_marketplace_core

Revision ID: 3d5e7f9a1b20
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from app.db.triggers import (
    DROP_TOKEN_TRANSACTIONS_APPEND_ONLY,
    TOKEN_TRANSACTIONS_APPEND_ONLY_FUNCTION,
    TOKEN_TRANSACTIONS_APPEND_ONLY_TRIGGER,
)

revision: str = "3d5e7f9a1b20"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("subscription_plan", sa.String(16), nullable=False, server_default=sa.text("'NONE'")),
        sa.Column("subscription_starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('WORKER','COMPANY','INDIVIDUAL')", name="ck_users_role"),
    )
    op.create_index("idx_users_role", "users", ["role"])
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "missions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_by_user_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("city", sa.String(128), nullable=False),
        sa.Column("featured_listing", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("token_cost", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('DRAFT','PUBLISHED','CLOSED','CANCELLED')", name="ck_missions_status"),
        sa.CheckConstraint("token_cost IS NULL OR token_cost > 0", name="ck_missions_token_cost_positive"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
    )
    op.create_index("idx_missions_creator_created", "missions", ["created_by_user_id", "created_at"])

    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("initiated_by_user_id", sa.BigInteger(), nullable=False),
        sa.Column("participant_user_id", sa.BigInteger(), nullable=False),
        sa.Column("mission_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "initiated_by_user_id <> participant_user_id",
            name="ck_conversations_distinct_participants",
        ),
        sa.ForeignKeyConstraint(["initiated_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["participant_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["mission_id"], ["missions.id"]),
    )
    op.create_index(
        "idx_conversations_initiator_created",
        "conversations",
        ["initiated_by_user_id", "created_at"],
    )
    op.create_index(
        "idx_conversations_pair",
        "conversations",
        ["initiated_by_user_id", "participant_user_id"],
    )

    op.create_table(
        "token_ledgers",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("total_purchased", sa.Integer(), nullable=False),
        sa.Column("total_refunded", sa.Integer(), nullable=False),
        sa.Column("total_used", sa.Integer(), nullable=False),
        sa.Column("total_expired", sa.Integer(), nullable=False),
        sa.Column("last_purchase_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_usage_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_token_ledgers_balance_non_negative"),
        sa.CheckConstraint(
            "total_purchased >= 0 AND total_refunded >= 0 AND total_used >= 0 AND total_expired >= 0",
            name="ck_token_ledgers_totals_non_negative",
        ),
        sa.CheckConstraint(
            "balance = total_purchased + total_refunded - total_used - total_expired",
            name="ck_token_ledgers_balance_matches_totals",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "token_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_before", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("mission_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("idempotency_key", sa.String(96), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_token_transactions_amount_positive"),
        sa.CheckConstraint("kind IN ('PURCHASE','USED','REFUND','EXPIRED')", name="ck_token_transactions_kind"),
        sa.CheckConstraint(
            "balance_before >= 0 AND balance_after >= 0",
            name="ck_token_transactions_balances_non_negative",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["mission_id"], ["missions.id"]),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"]),
        sa.UniqueConstraint("idempotency_key", name="uq_token_transactions_idempotency_key"),
    )
    op.create_index("idx_token_transactions_user_id", "token_transactions", ["user_id", "id"])
    op.create_index("idx_token_transactions_mission", "token_transactions", ["mission_id"])
    op.create_index("idx_token_transactions_conversation", "token_transactions", ["conversation_id"])

    op.execute(TOKEN_TRANSACTIONS_APPEND_ONLY_FUNCTION)
    op.execute(TOKEN_TRANSACTIONS_APPEND_ONLY_TRIGGER)

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('PENDING','SENT','FAILED')", name="ck_outbox_events_status"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("idx_outbox_events_type_created", "outbox_events", ["event_type", "created_at"])
    op.create_index("idx_outbox_events_status", "outbox_events", ["status"])


def downgrade() -> None:
    op.drop_index("idx_outbox_events_status", table_name="outbox_events")
    op.drop_index("idx_outbox_events_type_created", table_name="outbox_events")
    op.drop_table("outbox_events")

    for statement in DROP_TOKEN_TRANSACTIONS_APPEND_ONLY:
        op.execute(statement)
    op.drop_index("idx_token_transactions_conversation", table_name="token_transactions")
    op.drop_index("idx_token_transactions_mission", table_name="token_transactions")
    op.drop_index("idx_token_transactions_user_id", table_name="token_transactions")
    op.drop_table("token_transactions")

    op.drop_table("token_ledgers")

    op.drop_index("idx_conversations_pair", table_name="conversations")
    op.drop_index("idx_conversations_initiator_created", table_name="conversations")
    op.drop_table("conversations")

    op.drop_index("idx_missions_creator_created", table_name="missions")
    op.drop_table("missions")

    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
