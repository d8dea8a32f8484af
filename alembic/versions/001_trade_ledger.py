"""Trade ledger schema: trades, user_settings.

Revision ID: 001_trade_ledger
Revises: None
Create Date: 2026-10-16 00:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_trade_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Trades table
    op.create_table(
        "trades",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, nullable=False),
        sa.Column("account_id", sa.Integer, nullable=True),
        sa.Column("external_id", sa.String(128), nullable=True),

        # Instrument & position
        sa.Column("symbol", sa.String(32), nullable=False),
        sa.Column("instrument_type", sa.String(16), nullable=False),
        sa.Column("direction", sa.String(8), nullable=False),
        sa.Column("entry_price", sa.Numeric(20, 8), nullable=False),
        sa.Column("entry_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.Numeric(20, 8), nullable=False),

        # Exit
        sa.Column("exit_price", sa.Numeric(20, 8), nullable=True),
        sa.Column("exit_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fees", sa.Numeric(20, 2), nullable=False, server_default="0"),

        # Risk
        sa.Column("stop_loss", sa.Numeric(20, 8), nullable=True),
        sa.Column("take_profit", sa.Numeric(20, 8), nullable=True),
        sa.Column("stop_loss_hit", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("take_profit_hit", sa.Boolean, nullable=False, server_default=sa.false()),

        # Computed P&L
        sa.Column("realized_pnl", sa.Numeric(20, 2), nullable=True),
        sa.Column("net_pnl", sa.Numeric(20, 2), nullable=True),

        # Lifecycle
        sa.Column("status", sa.String(8), nullable=False, server_default="open"),
        sa.Column("import_source", sa.String(8), nullable=False, server_default="manual"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),

        # Metadata
        sa.Column("setup_type", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index("ix_trades_user_deleted", "trades", ["user_id", "deleted_at"])
    op.create_index("ix_trades_user_entry_time", "trades", ["user_id", "entry_time"])
    op.create_index(
        "ix_trades_user_account_external", "trades", ["user_id", "account_id", "external_id"]
    )
    op.create_index("ix_trades_user_status", "trades", ["user_id", "status"])

    # Per-user settings
    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.Integer, primary_key=True),
        sa.Column("breakeven_threshold", sa.Numeric(20, 2), nullable=False, server_default="3.00"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("user_settings")
    op.drop_index("ix_trades_user_status", table_name="trades")
    op.drop_index("ix_trades_user_account_external", table_name="trades")
    op.drop_index("ix_trades_user_entry_time", table_name="trades")
    op.drop_index("ix_trades_user_deleted", table_name="trades")
    op.drop_table("trades")
