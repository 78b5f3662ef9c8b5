"""Initial trust and settlement schema

Revision ID: 0001
Revises:
Create Date: 2026-09-28 10:12:44.512031
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "verification_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("user_type", sa.String(16), nullable=False),
        sa.Column("account_type", sa.String(16), nullable=False),
        sa.Column("current_level", sa.Integer(), nullable=False),
        sa.Column("level_1_status", sa.String(16), nullable=True),
        sa.Column("level_2_status", sa.String(16), nullable=True),
        sa.Column("level_3_status", sa.String(16), nullable=True),
        sa.Column("level_4_status", sa.String(16), nullable=True),
        sa.Column("level_1_eligible_at", TS, nullable=True),
        sa.Column("level_2_eligible_at", TS, nullable=True),
        sa.Column("level_3_eligible_at", TS, nullable=True),
        sa.Column("level_4_eligible_at", TS, nullable=True),
        sa.Column("level_1_completed_at", TS, nullable=True),
        sa.Column("level_2_completed_at", TS, nullable=True),
        sa.Column("level_3_completed_at", TS, nullable=True),
        sa.Column("level_4_completed_at", TS, nullable=True),
        sa.Column("trust_score", sa.Integer(), nullable=False),
        sa.Column("is_suspended", sa.Boolean(), nullable=False),
        sa.Column("suspension_reason", sa.Text(), nullable=True),
        sa.Column("suspended_at", TS, nullable=True),
        sa.Column("positive_reviews_count", sa.Integer(), nullable=False),
        sa.Column("negative_reviews_count", sa.Integer(), nullable=False),
        sa.Column("reports_count", sa.Integer(), nullable=False),
        sa.Column("response_rate", sa.Integer(), nullable=False),
        sa.Column("cancellation_count", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id"),
        sa.CheckConstraint("current_level BETWEEN 1 AND 4", name="ck_record_level_range"),
        sa.CheckConstraint("response_rate BETWEEN 0 AND 100", name="ck_record_response_rate"),
        sa.CheckConstraint(
            "level_2_status IS NULL OR level_2_status <> 'approved' "
            "OR level_1_status = 'approved'",
            name="ck_record_level_2_chain",
        ),
        sa.CheckConstraint(
            "level_3_status IS NULL OR level_3_status <> 'approved' "
            "OR level_2_status = 'approved'",
            name="ck_record_level_3_chain",
        ),
        sa.CheckConstraint(
            "level_4_status IS NULL OR level_4_status <> 'approved' "
            "OR level_3_status = 'approved'",
            name="ck_record_level_4_chain",
        ),
    )
    op.create_index("idx_record_suspended", "verification_records", ["is_suspended"])

    op.create_table(
        "verification_documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("record_id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("document_type", sa.String(32), nullable=False),
        sa.Column("verification_level", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("face_match_score", sa.Float(), nullable=True),
        sa.Column("duplicate_detected", sa.Boolean(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("verified_by", sa.String(64), nullable=True),
        sa.Column("verified_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["record_id"], ["verification_records.id"], ondelete="CASCADE"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_document_valid_status",
        ),
        sa.CheckConstraint("verification_level BETWEEN 1 AND 4", name="ck_document_level"),
        sa.CheckConstraint(
            "status <> 'rejected' OR rejection_reason IS NOT NULL",
            name="ck_document_rejection_reason",
        ),
    )
    op.create_index(
        "idx_document_record_level",
        "verification_documents",
        ["record_id", "verification_level"],
    )
    op.create_index("idx_document_status", "verification_documents", ["status"])

    op.create_table(
        "account_reports",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("reporter_id", sa.String(64), nullable=False),
        sa.Column("reported_user_id", sa.String(64), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        sa.Column("reviewed_at", TS, nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_report_valid_status",
        ),
    )
    op.create_index("idx_report_reported_user", "account_reports", ["reported_user_id"])

    op.create_table(
        "reputation_votes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("voter_id", sa.String(64), nullable=False),
        sa.Column("target_user_id", sa.String(64), nullable=False),
        sa.Column("vote_type", sa.String(8), nullable=False),
        sa.Column("context", sa.String(64), nullable=True),
        sa.Column("context_id", sa.String(64), nullable=True),
        sa.Column("context_key", sa.String(140), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "voter_id", "target_user_id", "context_key", name="uq_vote_voter_target_context"
        ),
        sa.CheckConstraint("vote_type IN ('up', 'down')", name="ck_vote_valid_type"),
        sa.CheckConstraint("voter_id <> target_user_id", name="ck_vote_not_self"),
    )
    op.create_index("idx_vote_target", "reputation_votes", ["target_user_id"])
    op.create_index("idx_vote_voter_created", "reputation_votes", ["voter_id", "created_at"])

    op.create_table(
        "reputation_stats",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False),
        sa.Column("upvotes_received", sa.Integer(), nullable=False),
        sa.Column("downvotes_received", sa.Integer(), nullable=False),
        sa.Column("badges_count", sa.Integer(), nullable=False),
        sa.Column("last_badge_at", TS, nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
        sa.CheckConstraint("upvotes_received >= 0", name="ck_stats_upvotes"),
        sa.CheckConstraint("downvotes_received >= 0", name="ck_stats_downvotes"),
    )

    op.create_table(
        "reputation_badges",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("badge_type", sa.String(32), nullable=False),
        sa.Column("badge_level", sa.Integer(), nullable=False),
        sa.Column("points_at_award", sa.Integer(), nullable=False),
        sa.Column("earned_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "badge_type", "badge_level", name="uq_badge_tier"),
    )
    op.create_index("idx_badge_user", "reputation_badges", ["user_id"])

    op.create_table(
        "escrow_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("quote_id", sa.Uuid(), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("amount_xaf", sa.BigInteger(), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("commission_xaf", sa.BigInteger(), nullable=False),
        sa.Column("net_amount_xaf", sa.BigInteger(), nullable=False),
        sa.Column("payment_reference", sa.String(128), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("funded_at", TS, nullable=True),
        sa.Column("auto_release_at", TS, nullable=True),
        sa.Column("released_at", TS, nullable=True),
        sa.Column("refunded_at", TS, nullable=True),
        sa.Column("disputed_at", TS, nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("resolution_actor", sa.String(64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quote_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'funded', 'released', 'refunded', 'disputed')",
            name="ck_escrow_valid_status",
        ),
        sa.CheckConstraint("amount_xaf > 0", name="ck_escrow_positive_amount"),
        sa.CheckConstraint("commission_xaf >= 0", name="ck_escrow_commission_non_negative"),
        sa.CheckConstraint(
            "amount_xaf = commission_xaf + net_amount_xaf",
            name="ck_escrow_amount_balances",
        ),
    )
    op.create_index(
        "idx_escrow_status_release", "escrow_transactions", ["status", "auto_release_at"]
    )
    op.create_index(
        "idx_escrow_provider_created", "escrow_transactions", ["provider_id", "created_at"]
    )
    op.create_index("idx_escrow_client", "escrow_transactions", ["client_id"])

    op.create_table(
        "provider_payouts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("escrow_id", sa.Uuid(), nullable=False),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("amount_xaf", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payout_reference", sa.String(128), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("completed_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["escrow_id"], ["escrow_transactions.id"]),
        sa.UniqueConstraint("escrow_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_payout_valid_status",
        ),
        sa.CheckConstraint("amount_xaf >= 0", name="ck_payout_amount"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subject_type", sa.String(32), nullable=False),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("old_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=True),
        sa.Column("actor", sa.String(64), nullable=False),
        sa.Column(
            "metadata",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column("created_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_subject", "audit_events", ["subject_type", "subject_id"])
    op.create_index("idx_audit_event_type", "audit_events", ["event_type"])
    op.create_index("idx_audit_created_at", "audit_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("provider_payouts")
    op.drop_table("escrow_transactions")
    op.drop_table("reputation_badges")
    op.drop_table("reputation_stats")
    op.drop_table("reputation_votes")
    op.drop_table("account_reports")
    op.drop_table("verification_documents")
    op.drop_table("verification_records")
