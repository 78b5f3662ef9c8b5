"""Period counters for the monthly commission cap and the daily vote allowance

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 09:41:07.218354
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "period_counters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("counter", sa.String(32), nullable=False),
        sa.Column("period_key", sa.String(10), nullable=False),
        sa.Column("value", sa.BigInteger(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "subject_id", "counter", "period_key", name="uq_period_counter_subject"
        ),
        sa.CheckConstraint("value >= 0", name="ck_period_counter_non_negative"),
    )

    # Seed commission totals from existing escrows so caps hold across the upgrade.
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute(
        """
        INSERT INTO period_counters
            (id, subject_id, counter, period_key, value, version, created_at, updated_at)
        SELECT gen_random_uuid(), provider_id, 'commission_xaf',
               to_char(created_at AT TIME ZONE 'UTC', 'YYYY-MM'),
               SUM(commission_xaf), 1, now(), now()
        FROM escrow_transactions
        WHERE status <> 'refunded'
        GROUP BY provider_id, to_char(created_at AT TIME ZONE 'UTC', 'YYYY-MM')
        """
    )


def downgrade() -> None:
    op.drop_table("period_counters")
