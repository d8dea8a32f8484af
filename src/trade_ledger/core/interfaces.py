"""Protocol interfaces for the trade ledger.

All collaborator boundaries are defined here as Protocol classes.
Implementations can be swapped (in-memory / Postgres) without changing
the ledger.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from .enums import TradingPlatform
from .models import Trade, TradeFilter

if TYPE_CHECKING:
    from trade_ledger.importers.base import ParseResult


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@runtime_checkable
class ITradeStore(Protocol):
    """Transactional trade storage.

    Every read and write is scoped to ``user_id``; a trade owned by
    another user is indistinguishable from a missing one.
    """

    async def get_trade(self, user_id: int, trade_id: int) -> Trade | None: ...

    async def find_trades(self, user_id: int, flt: TradeFilter) -> list[Trade]: ...

    async def insert_trade(self, trade: Trade) -> Trade: ...

    async def insert_trades(self, trades: Sequence[Trade]) -> list[Trade]:
        """Insert all rows or none."""
        ...

    async def update_trade(self, trade: Trade) -> Trade: ...

    async def soft_delete(
        self, user_id: int, trade_ids: Sequence[int], at: datetime
    ) -> int: ...

    async def restore(self, user_id: int, trade_id: int) -> None: ...

    async def purge(self, user_id: int, trade_ids: Sequence[int]) -> int: ...

    async def existing_external_ids(
        self, user_id: int, account_id: int | None, external_ids: Sequence[str]
    ) -> set[str]: ...


# ---------------------------------------------------------------------------
# User settings
# ---------------------------------------------------------------------------

@runtime_checkable
class ISettingsProvider(Protocol):
    """Read-only per-user settings consumed by the statistics path."""

    async def breakeven_threshold(self, user_id: int) -> Decimal: ...


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

@runtime_checkable
class ICSVParser(Protocol):
    """Capability shared by every platform export parser."""

    platform: TradingPlatform
    name: str
    description: str

    def expected_columns(self) -> list[str]: ...

    def validate_headers(self, headers: Sequence[str]) -> bool: ...

    def parse(self, raw_text: str) -> ParseResult: ...
