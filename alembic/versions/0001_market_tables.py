"""create coin snapshot, price history and sync run tables

Revision ID: 0001_market_tables
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_market_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "coin_snapshots",
        sa.Column("code", sa.String(32), primary_key=True, comment="Provider short code, e.g. 'BTC'"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("rate", sa.Float(), nullable=False),
        sa.Column("volume", sa.Float(), nullable=False),
        sa.Column("cap", sa.Float(), nullable=True),
        sa.Column("delta_hour", sa.Float(), nullable=True),
        sa.Column("delta_day", sa.Float(), nullable=True),
        sa.Column("delta_week", sa.Float(), nullable=True),
        sa.Column("delta_month", sa.Float(), nullable=True),
        sa.Column("delta_quarter", sa.Float(), nullable=True),
        sa.Column("delta_year", sa.Float(), nullable=True),
        sa.Column("total_supply", sa.Float(), nullable=True),
        sa.Column("circulating_supply", sa.Float(), nullable=True),
        sa.Column("max_supply", sa.Float(), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_coin_snapshots_cap", "coin_snapshots", ["cap"])

    op.create_table(
        "price_history_points",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token_code", sa.String(32), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False, comment="Epoch milliseconds"),
        sa.Column("timeframe", sa.String(8), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("volume", sa.Float(), nullable=True),
        sa.Column("market_cap", sa.Float(), nullable=True),
        sa.Column("synthetic", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("token_code", "timestamp", "timeframe", name="uq_price_history_code_ts_timeframe"),
    )
    op.create_index("ix_price_history_code_timeframe", "price_history_points", ["token_code", "timeframe"])

    op.create_table(
        "sync_runs",
        sa.Column("run_id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("job_name", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sync_runs_job_name", "sync_runs", ["job_name"])


def downgrade() -> None:
    op.drop_index("ix_sync_runs_job_name", "sync_runs")
    op.drop_table("sync_runs")
    op.drop_index("ix_price_history_code_timeframe", "price_history_points")
    op.drop_table("price_history_points")
    op.drop_index("ix_coin_snapshots_cap", "coin_snapshots")
    op.drop_table("coin_snapshots")
