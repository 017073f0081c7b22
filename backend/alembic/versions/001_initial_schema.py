"""Initial schema: tick table and one candle table per timeframe.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

CANDLE_TABLES = ("candle_1m", "candle_5m", "candle_10m", "candle_30m")


def _create_candle_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset", sa.String(), nullable=False),
        sa.Column("window_start", sa.BigInteger(), nullable=False),
        sa.Column("window_end", sa.BigInteger(), nullable=False),
        sa.Column("open", sa.String(), nullable=False),
        sa.Column("high", sa.String(), nullable=False),
        sa.Column("low", sa.String(), nullable=False),
        sa.Column("close", sa.String(), nullable=False),
        sa.Column("volume", sa.String(), nullable=False, server_default="0"),
        sa.Column("trade_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_trade_id", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "asset", "window_start", name=f"uq_{name}_asset_window"
        ),
    )
    op.create_index(f"ix_{name}_window_start", name, ["window_start"])


def upgrade() -> None:
    # --- tick ---
    op.create_table(
        "tick",
        sa.Column("asset", sa.String(), nullable=False),
        sa.Column("trade_id", sa.BigInteger(), nullable=False),
        sa.Column("price", sa.String(), nullable=False),
        sa.Column("quantity", sa.String(), nullable=False),
        sa.Column("event_time", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("asset", "trade_id"),
    )
    op.create_index("ix_tick_event_time", "tick", ["event_time"])

    # --- candle_* ---
    for name in CANDLE_TABLES:
        _create_candle_table(name)


def downgrade() -> None:
    for name in reversed(CANDLE_TABLES):
        op.drop_index(f"ix_{name}_window_start", table_name=name)
        op.drop_table(name)
    op.drop_index("ix_tick_event_time", table_name="tick")
    op.drop_table("tick")
