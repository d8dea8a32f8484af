"""SQLAlchemy ORM models for the trade ledger database.

Prices and quantities are ``Numeric(20, 8)``; money columns (fees and
P&L) are ``Numeric(20, 2)``.  Enumerations are stored as their string
values.  Only portable column types are used, so the same models run on
SQLite for tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


PRICE = Numeric(20, 8)
MONEY = Numeric(20, 2)


# ---------------------------------------------------------------------------
# TradeRow
# ---------------------------------------------------------------------------

class TradeRow(Base):
    """One ledger trade.

    ``realized_pnl`` / ``net_pnl`` are written only by the ledger and are
    NULL while the trade is open.
    """

    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    instrument_type: Mapped[str] = mapped_column(String(16), nullable=False)
    direction: Mapped[str] = mapped_column(String(8), nullable=False)

    entry_price: Mapped[Decimal] = mapped_column(PRICE, nullable=False)
    entry_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(PRICE, nullable=False)

    exit_price: Mapped[Decimal | None] = mapped_column(PRICE, nullable=True)
    exit_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fees: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    stop_loss: Mapped[Decimal | None] = mapped_column(PRICE, nullable=True)
    take_profit: Mapped[Decimal | None] = mapped_column(PRICE, nullable=True)
    stop_loss_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    take_profit_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    realized_pnl: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    net_pnl: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)

    status: Mapped[str] = mapped_column(String(8), nullable=False, default="open")
    import_source: Mapped[str] = mapped_column(String(8), nullable=False, default="manual")
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    setup_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_trades_user_deleted", "user_id", "deleted_at"),
        Index("ix_trades_user_entry_time", "user_id", "entry_time"),
        Index("ix_trades_user_account_external", "user_id", "account_id", "external_id"),
        Index("ix_trades_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<TradeRow id={self.id} user={self.user_id} {self.direction} "
            f"{self.symbol} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# UserSettingsRow
# ---------------------------------------------------------------------------

class UserSettingsRow(Base):
    """Per-user ledger settings."""

    __tablename__ = "user_settings"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    breakeven_threshold: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("3.00"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<UserSettingsRow user={self.user_id} be={self.breakeven_threshold}>"
