"""Core domain models used across the trade ledger.

These are the canonical "truth models" for the system.  Every platform
export is normalized into :class:`ParsedTradeDraft`, every write goes
through :class:`TradeDraft` / :class:`TradeUpdate`, and every stored row
is read back as :class:`Trade`; no platform-specific shapes leak out.

All money, price and quantity fields are :class:`~decimal.Decimal`.
Floats are routed through ``str()`` first so binary rounding noise never
enters the ledger.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)

from .enums import (
    Direction,
    ImportSource,
    InstrumentType,
    LifecycleState,
    TradeOutcome,
    TradeStatus,
)


def to_decimal(value: Any) -> Any:
    """Coerce ints, floats and numeric strings to ``Decimal``.

    Blank strings become ``None`` so optional CSV cells read as unset.
    Anything else is passed through for pydantic to reject.
    """
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if text == "":
            return None
        try:
            return Decimal(text)
        except InvalidOperation:
            return value
    return value


Dec = Annotated[Decimal, BeforeValidator(to_decimal)]
OptDec = Annotated[Decimal | None, BeforeValidator(to_decimal)]


def to_utc(value: datetime | None) -> datetime | None:
    """Naive timestamps are taken as UTC; aware ones are converted."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(to_utc)]
OptUtcDatetime = Annotated[datetime | None, AfterValidator(to_utc)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Instrument metadata
# ---------------------------------------------------------------------------

class InstrumentSpec(BaseModel):
    """Static contract specification for one symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: str  # "ES", "EUR/USD"
    instrument_type: InstrumentType
    currency: str = "USD"

    # Futures
    point_value: Decimal | None = None  # Dollar value of a 1.0 price move
    tick_size: Decimal | None = None
    tick_value: Decimal | None = None

    # Forex
    pip_size: Decimal | None = None  # 0.0001 for EUR/USD, 0.01 for JPY pairs
    pip_value_per_lot: Decimal | None = None  # USD per pip per standard lot
    base: str | None = None
    quote: str | None = None


# ---------------------------------------------------------------------------
# Write models
# ---------------------------------------------------------------------------

class TradeDraft(BaseModel):
    """Creatable fields of a trade, as submitted by a caller or importer."""

    symbol: str = Field(min_length=1)
    instrument_type: InstrumentType
    direction: Direction
    entry_price: Dec
    entry_time: UtcDatetime
    quantity: Dec

    exit_price: OptDec = None
    exit_time: OptUtcDatetime = None
    fees: OptDec = None

    stop_loss: OptDec = None
    take_profit: OptDec = None
    # Set only by parsers with order-level data; wins over recomputation.
    stop_loss_hit: bool | None = None
    take_profit_hit: bool | None = None

    account_id: int | None = None
    external_id: str | None = None
    setup_type: str | None = None
    notes: str | None = None
    comment: str | None = None

    @field_validator("symbol")
    @classmethod
    def _strip_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("symbol must not be blank")
        return v

    @property
    def is_closed(self) -> bool:
        return self.exit_price is not None and self.exit_time is not None


class ParsedTradeDraft(TradeDraft):
    """Trade draft produced by a platform parser.

    Carries its source row for error reporting.  Never persisted directly.
    """

    row_number: int
    profit: OptDec = None  # Platform-reported P&L, for verification only
    magic_number: str | None = None


class TradeUpdate(BaseModel):
    """Partial update of an existing trade.

    Only explicitly set fields are applied.  Computed P&L fields are not
    part of the model and are rejected as unknown.
    """

    model_config = ConfigDict(extra="forbid")

    symbol: str | None = None
    instrument_type: InstrumentType | None = None
    direction: Direction | None = None
    entry_price: OptDec = None
    entry_time: OptUtcDatetime = None
    quantity: OptDec = None
    exit_price: OptDec = None
    exit_time: OptUtcDatetime = None
    fees: OptDec = None
    stop_loss: OptDec = None
    take_profit: OptDec = None
    account_id: int | None = None
    setup_type: str | None = None
    notes: str | None = None
    comment: str | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ---------------------------------------------------------------------------
# Stored aggregate
# ---------------------------------------------------------------------------

class Trade(BaseModel):
    """A ledger trade as stored.

    ``realized_pnl`` and ``net_pnl`` are ``None`` while the trade is open
    and always consistent with the price / quantity / fee fields once it
    is closed.  Only :class:`~trade_ledger.ledger.service.TradeLedger`
    mutates them.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int | None = None
    user_id: int
    account_id: int | None = None
    external_id: str | None = None

    symbol: str
    instrument_type: InstrumentType
    direction: Direction
    entry_price: Dec
    entry_time: UtcDatetime
    quantity: Dec

    exit_price: OptDec = None
    exit_time: OptUtcDatetime = None
    fees: Dec = Decimal("0")

    stop_loss: OptDec = None
    take_profit: OptDec = None
    stop_loss_hit: bool = False
    take_profit_hit: bool = False

    realized_pnl: OptDec = None
    net_pnl: OptDec = None

    status: TradeStatus = TradeStatus.OPEN
    import_source: ImportSource = ImportSource.MANUAL
    deleted_at: OptUtcDatetime = None

    setup_type: str | None = None
    notes: str | None = None
    comment: str | None = None

    created_at: UtcDatetime = Field(default_factory=_utcnow)
    updated_at: OptUtcDatetime = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def lifecycle_state(self) -> LifecycleState:
        if self.deleted_at is not None:
            return LifecycleState.DELETED
        if self.status == TradeStatus.CLOSED:
            return LifecycleState.CLOSED
        return LifecycleState.OPEN


# ---------------------------------------------------------------------------
# Queries and results
# ---------------------------------------------------------------------------

class TradeFilter(BaseModel):
    """Listing filter.  Soft-deleted trades are excluded unless asked for."""

    status: TradeStatus | None = None
    symbol: str | None = None  # Case-insensitive substring
    direction: Direction | None = None
    account_id: int | None = None
    start: OptUtcDatetime = None  # Inclusive, on entry_time
    end: OptUtcDatetime = None
    include_deleted: bool = False
    only_deleted: bool = False
    outcome: TradeOutcome | None = None  # Needs a threshold at evaluation
    min_pnl: OptDec = None
    max_pnl: OptDec = None
    cursor: int | None = None  # Return ids strictly below this
    limit: int | None = Field(default=None, ge=1)


class ImportSummary(BaseModel):
    """Outcome of a batch import, reported even on partial success."""

    imported: int
    total: int
    duplicates: int = 0
    skipped_rows: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
