"""In-memory trade store for tests and local use.

Implements :class:`~trade_ledger.core.interfaces.ITradeStore` over a
dict.  Trades are copied on the way in and out so callers never share
mutable state with the store.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from typing import Sequence

from trade_ledger.core.errors import NotFoundError
from trade_ledger.core.models import Trade, TradeFilter


def matches_filter(trade: Trade, flt: TradeFilter) -> bool:
    """Filter semantics shared with the SQL store (outcome excluded)."""
    if flt.only_deleted:
        if trade.deleted_at is None:
            return False
    elif not flt.include_deleted and trade.deleted_at is not None:
        return False
    if flt.status is not None and trade.status != flt.status:
        return False
    if flt.symbol and flt.symbol.lower() not in trade.symbol.lower():
        return False
    if flt.direction is not None and trade.direction != flt.direction:
        return False
    if flt.account_id is not None and trade.account_id != flt.account_id:
        return False
    if flt.start is not None and trade.entry_time < flt.start:
        return False
    if flt.end is not None and trade.entry_time > flt.end:
        return False
    if flt.min_pnl is not None and (trade.net_pnl is None or trade.net_pnl < flt.min_pnl):
        return False
    if flt.max_pnl is not None and (trade.net_pnl is None or trade.net_pnl > flt.max_pnl):
        return False
    if flt.cursor is not None and (trade.id is None or trade.id >= flt.cursor):
        return False
    return True


class InMemoryTradeStore:
    """Dict-backed store.  ``insert_trades`` stages the whole batch first."""

    def __init__(self) -> None:
        self._trades: dict[int, Trade] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._trades)

    def _owned(self, user_id: int, trade_id: int) -> Trade | None:
        trade = self._trades.get(trade_id)
        if trade is None or trade.user_id != user_id:
            return None
        return trade

    async def get_trade(self, user_id: int, trade_id: int) -> Trade | None:
        trade = self._owned(user_id, trade_id)
        return trade.model_copy(deep=True) if trade is not None else None

    async def find_trades(self, user_id: int, flt: TradeFilter) -> list[Trade]:
        found = [
            t for t in self._trades.values()
            if t.user_id == user_id and matches_filter(t, flt)
        ]
        found.sort(key=lambda t: t.id or 0, reverse=True)
        if flt.limit is not None:
            found = found[: flt.limit]
        return [t.model_copy(deep=True) for t in found]

    async def insert_trade(self, trade: Trade) -> Trade:
        return (await self.insert_trades([trade]))[0]

    async def insert_trades(self, trades: Sequence[Trade]) -> list[Trade]:
        staged = []
        for trade in trades:
            copy = trade.model_copy(deep=True)
            copy.id = next(self._ids)
            staged.append(copy)
        for copy in staged:
            self._trades[copy.id] = copy  # type: ignore[index]
        return [t.model_copy(deep=True) for t in staged]

    async def update_trade(self, trade: Trade) -> Trade:
        if trade.id is None or self._owned(trade.user_id, trade.id) is None:
            raise NotFoundError()
        self._trades[trade.id] = trade.model_copy(deep=True)
        return trade.model_copy(deep=True)

    async def soft_delete(
        self, user_id: int, trade_ids: Sequence[int], at: datetime
    ) -> int:
        count = 0
        for trade_id in trade_ids:
            trade = self._owned(user_id, trade_id)
            if trade is not None and trade.deleted_at is None:
                trade.deleted_at = at
                count += 1
        return count

    async def restore(self, user_id: int, trade_id: int) -> None:
        trade = self._owned(user_id, trade_id)
        if trade is None:
            raise NotFoundError()
        trade.deleted_at = None

    async def purge(self, user_id: int, trade_ids: Sequence[int]) -> int:
        count = 0
        for trade_id in trade_ids:
            trade = self._owned(user_id, trade_id)
            if trade is not None and trade.deleted_at is not None:
                del self._trades[trade_id]
                count += 1
        return count

    async def existing_external_ids(
        self, user_id: int, account_id: int | None, external_ids: Sequence[str]
    ) -> set[str]:
        wanted = set(external_ids)
        return {
            t.external_id
            for t in self._trades.values()
            if t.user_id == user_id
            and t.account_id == account_id
            and t.external_id in wanted
        }
