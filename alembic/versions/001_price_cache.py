"""Price cache table keyed by (symbol, source).

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "price_cache",
        sa.Column("symbol", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("price", sa.String(), nullable=False),
        sa.Column("change_24h", sa.String(), nullable=True),
        sa.Column("change_30d", sa.String(), nullable=True),
        sa.Column("observed_at", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("symbol", "source"),
        sa.CheckConstraint(
            "source IN ('crypto', 'equity')", name="ck_price_cache_source"
        ),
    )


def downgrade() -> None:
    op.drop_table("price_cache")
