"""access grants and leaderboard

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 09:12:41.512903

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the grant and leaderboard tables."""
    op.create_table(
        "access_grant",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_address", sa.String(length=64), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("service_id >= 0", name="ck_access_grant_service_id"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_address", "service_id", name="uq_access_grant_wallet_service"),
    )
    op.create_index("ix_access_grant_wallet_address", "access_grant", ["wallet_address"])

    op.create_table(
        "leaderboard_entry",
        sa.Column("wallet_address", sa.String(length=64), nullable=False),
        sa.Column("total_spent", sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column("services_used", sa.Integer(), nullable=False),
        sa.Column("last_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("wallet_address"),
    )


def downgrade() -> None:
    """Drop the grant and leaderboard tables."""
    op.drop_table("leaderboard_entry")
    op.drop_index("ix_access_grant_wallet_address", table_name="access_grant")
    op.drop_table("access_grant")
