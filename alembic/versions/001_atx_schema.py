"""Create trades, atx_epoch_state and atx_epochs tables.

Revision ID: 001_atx_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001_atx_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "trades",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("source", sa.String(64), nullable=False),
        sa.Column("trade_id", sa.String(128), nullable=False),
        sa.Column("account_id", sa.Integer, nullable=False),
        sa.Column("symbol", sa.String(32), nullable=False),
        sa.Column("side", sa.String(8), nullable=False),
        sa.Column("order_type", sa.String(16), nullable=False),

        # Sizing & prices
        sa.Column("quantity", sa.Float, nullable=False),
        sa.Column("entry_price", sa.Float, nullable=False),
        sa.Column("exit_price", sa.Float, nullable=True),
        sa.Column("stop_loss", sa.Float, nullable=True),
        sa.Column("take_profit", sa.Float, nullable=True),

        # Timestamps
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),

        sa.UniqueConstraint("source", "trade_id", name="uq_trades_source_trade_id"),
    )
    op.create_index("ix_trades_account_ts", "trades", ["account_id", "timestamp"])

    op.create_table(
        "atx_epoch_state",
        sa.Column("account_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("phase", sa.String(16), nullable=False),
        sa.Column("state_json", JSONB, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "atx_epochs",
        sa.Column("account_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("epoch_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provisional", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("trigger_flags", JSONB, nullable=False),
        sa.Column("ended_reason", sa.Text, nullable=True),
        sa.Column("average_score", sa.Float, nullable=True),
        sa.Column("payload", JSONB, nullable=False),
    )
    op.create_index("ix_atx_epochs_account_started", "atx_epochs", ["account_id", "started_at"])


def downgrade() -> None:
    op.drop_index("ix_atx_epochs_account_started", table_name="atx_epochs")
    op.drop_table("atx_epochs")
    op.drop_table("atx_epoch_state")
    op.drop_index("ix_trades_account_ts", table_name="trades")
    op.drop_table("trades")
