"""Repository pattern for async database operations.

Each repository encapsulates query logic for a single aggregate root.
All methods accept an :class:`AsyncSession` obtained from
:func:`trade_ledger.storage.postgres.connection.get_session`; the session
owns the transaction, so a batch insert that fails leaves nothing behind
once the session rolls back.

Conversion helpers translate between core domain models
(:mod:`trade_ledger.core.models`) and ORM records.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trade_ledger.core.enums import Direction, ImportSource, InstrumentType, TradeStatus
from trade_ledger.core.errors import NotFoundError, ValidationError
from trade_ledger.core.models import Trade, TradeFilter

from .models import TradeRow, UserSettingsRow

logger = logging.getLogger(__name__)

DEFAULT_BREAKEVEN_THRESHOLD = Decimal("3.00")


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _trade_to_row(trade: Trade) -> TradeRow:
    """Convert a core :class:`Trade` to an ORM :class:`TradeRow`."""
    row = TradeRow(id=trade.id)
    _copy_into(row, trade)
    row.created_at = trade.created_at
    return row


def _copy_into(row: TradeRow, trade: Trade) -> None:
    row.user_id = trade.user_id
    row.account_id = trade.account_id
    row.external_id = trade.external_id
    row.symbol = trade.symbol
    row.instrument_type = trade.instrument_type.value
    row.direction = trade.direction.value
    row.entry_price = trade.entry_price
    row.entry_time = trade.entry_time
    row.quantity = trade.quantity
    row.exit_price = trade.exit_price
    row.exit_time = trade.exit_time
    row.fees = trade.fees
    row.stop_loss = trade.stop_loss
    row.take_profit = trade.take_profit
    row.stop_loss_hit = trade.stop_loss_hit
    row.take_profit_hit = trade.take_profit_hit
    row.realized_pnl = trade.realized_pnl
    row.net_pnl = trade.net_pnl
    row.status = trade.status.value
    row.import_source = trade.import_source.value
    row.deleted_at = trade.deleted_at
    row.setup_type = trade.setup_type
    row.notes = trade.notes
    row.comment = trade.comment
    row.updated_at = trade.updated_at


def _row_to_trade(row: TradeRow) -> Trade:
    """Convert an ORM :class:`TradeRow` back to a core :class:`Trade`."""
    return Trade(
        id=row.id,
        user_id=row.user_id,
        account_id=row.account_id,
        external_id=row.external_id,
        symbol=row.symbol,
        instrument_type=InstrumentType(row.instrument_type),
        direction=Direction(row.direction),
        entry_price=row.entry_price,
        entry_time=row.entry_time,
        quantity=row.quantity,
        exit_price=row.exit_price,
        exit_time=row.exit_time,
        fees=row.fees if row.fees is not None else Decimal("0"),
        stop_loss=row.stop_loss,
        take_profit=row.take_profit,
        stop_loss_hit=bool(row.stop_loss_hit),
        take_profit_hit=bool(row.take_profit_hit),
        realized_pnl=row.realized_pnl,
        net_pnl=row.net_pnl,
        status=TradeStatus(row.status),
        import_source=ImportSource(row.import_source),
        deleted_at=row.deleted_at,
        setup_type=row.setup_type,
        notes=row.notes,
        comment=row.comment,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _filter_clauses(user_id: int, flt: TradeFilter) -> list[Any]:
    clauses: list[Any] = [TradeRow.user_id == user_id]
    if flt.only_deleted:
        clauses.append(TradeRow.deleted_at.is_not(None))
    elif not flt.include_deleted:
        clauses.append(TradeRow.deleted_at.is_(None))
    if flt.status is not None:
        clauses.append(TradeRow.status == flt.status.value)
    if flt.symbol:
        clauses.append(func.lower(TradeRow.symbol).contains(flt.symbol.lower()))
    if flt.direction is not None:
        clauses.append(TradeRow.direction == flt.direction.value)
    if flt.account_id is not None:
        clauses.append(TradeRow.account_id == flt.account_id)
    if flt.start is not None:
        clauses.append(TradeRow.entry_time >= flt.start)
    if flt.end is not None:
        clauses.append(TradeRow.entry_time <= flt.end)
    if flt.min_pnl is not None:
        clauses.append(TradeRow.net_pnl >= flt.min_pnl)
    if flt.max_pnl is not None:
        clauses.append(TradeRow.net_pnl <= flt.max_pnl)
    if flt.cursor is not None:
        clauses.append(TradeRow.id < flt.cursor)
    return clauses


# ---------------------------------------------------------------------------
# SqlTradeStore
# ---------------------------------------------------------------------------

class SqlTradeStore:
    """:class:`~trade_ledger.core.interfaces.ITradeStore` over SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _row(self, user_id: int, trade_id: int) -> TradeRow | None:
        stmt = (
            select(TradeRow)
            .where(TradeRow.id == trade_id, TradeRow.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_trade(self, user_id: int, trade_id: int) -> Trade | None:
        row = await self._row(user_id, trade_id)
        return _row_to_trade(row) if row is not None else None

    async def find_trades(self, user_id: int, flt: TradeFilter) -> list[Trade]:
        """Trades matching *flt*, newest id first.

        ``flt.outcome`` is not applied here; it needs the user's
        breakeven threshold and is evaluated by the ledger.
        """
        stmt = (
            select(TradeRow)
            .where(*_filter_clauses(user_id, flt))
            .order_by(TradeRow.id.desc())
            .execution_options(populate_existing=True)
        )
        if flt.limit is not None:
            stmt = stmt.limit(flt.limit)
        result = await self._session.execute(stmt)
        rows: Sequence[TradeRow] = result.scalars().all()
        return [_row_to_trade(r) for r in rows]

    async def insert_trade(self, trade: Trade) -> Trade:
        return (await self.insert_trades([trade]))[0]

    async def insert_trades(self, trades: Sequence[Trade]) -> list[Trade]:
        """Add all rows in the session's transaction and flush once."""
        rows = [_trade_to_row(t) for t in trades]
        self._session.add_all(rows)
        await self._session.flush()
        logger.debug("Inserted %d trade rows", len(rows))
        return [_row_to_trade(r) for r in rows]

    async def update_trade(self, trade: Trade) -> Trade:
        if trade.id is None:
            raise NotFoundError()
        row = await self._row(trade.user_id, trade.id)
        if row is None:
            raise NotFoundError()
        _copy_into(row, trade)
        await self._session.flush()
        logger.debug("Updated trade %s -> status=%s", trade.id, trade.status.value)
        return _row_to_trade(row)

    async def soft_delete(
        self, user_id: int, trade_ids: Sequence[int], at: datetime
    ) -> int:
        stmt = (
            update(TradeRow)
            .where(
                TradeRow.user_id == user_id,
                TradeRow.id.in_(list(trade_ids)),
                TradeRow.deleted_at.is_(None),
            )
            .values(deleted_at=at, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def restore(self, user_id: int, trade_id: int) -> None:
        stmt = (
            update(TradeRow)
            .where(TradeRow.user_id == user_id, TradeRow.id == trade_id)
            .values(deleted_at=None, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if not result.rowcount:
            raise NotFoundError()

    async def purge(self, user_id: int, trade_ids: Sequence[int]) -> int:
        stmt = (
            delete(TradeRow)
            .where(
                TradeRow.user_id == user_id,
                TradeRow.id.in_(list(trade_ids)),
                TradeRow.deleted_at.is_not(None),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def existing_external_ids(
        self, user_id: int, account_id: int | None, external_ids: Sequence[str]
    ) -> set[str]:
        """External ids already stored for this user and account.

        Soft-deleted trades count; only a purge frees an id for re-import.
        """
        if not external_ids:
            return set()
        account_clause = (
            TradeRow.account_id.is_(None)
            if account_id is None
            else TradeRow.account_id == account_id
        )
        stmt = select(TradeRow.external_id).where(
            TradeRow.user_id == user_id,
            account_clause,
            TradeRow.external_id.in_(list(external_ids)),
        )
        result = await self._session.execute(stmt)
        return {ext for ext in result.scalars().all() if ext is not None}


# ---------------------------------------------------------------------------
# SqlSettingsProvider
# ---------------------------------------------------------------------------

class SqlSettingsProvider:
    """Breakeven threshold from the ``user_settings`` table."""

    def __init__(
        self,
        session: AsyncSession,
        default: Decimal = DEFAULT_BREAKEVEN_THRESHOLD,
    ) -> None:
        self._session = session
        self._default = Decimal(default)

    async def breakeven_threshold(self, user_id: int) -> Decimal:
        row = await self._session.get(UserSettingsRow, user_id)
        if row is None:
            return self._default
        return Decimal(row.breakeven_threshold)

    async def set_breakeven_threshold(self, user_id: int, value: Decimal) -> None:
        if value < 0:
            raise ValidationError("Breakeven threshold must be >= 0", field="breakeven_threshold")
        row = await self._session.get(UserSettingsRow, user_id)
        if row is None:
            self._session.add(UserSettingsRow(user_id=user_id, breakeven_threshold=value))
        else:
            row.breakeven_threshold = value
        await self._session.flush()
        logger.info("Breakeven threshold for user %s set to %s", user_id, value)
