"""MetaTrader 4 / 5 account history parsers.

Both terminals export closed positions with open and close legs on one
row.  Only ``buy`` / ``sell`` rows are trades; balance, credit and
pending-order rows are skipped with a warning.

Commission and swap are charged as negative amounts.  The fee of a trade
is the magnitude of the charged amounts; a positive swap (a credit) is
not a fee.
"""

from __future__ import annotations

from decimal import Decimal

from trade_ledger.core.enums import Direction, InstrumentType, TradingPlatform
from trade_ledger.core.instruments import (
    get_spec,
    infer_instrument_type,
    normalize_fx_symbol,
)
from trade_ledger.core.models import ParsedTradeDraft

from .base import (
    BaseCSVParser,
    RowError,
    first_present,
    parse_decimal,
    strip_expiration,
    sum_fees,
)

_TRADE_TYPES = {"buy": Direction.LONG, "sell": Direction.SHORT}


def _charged(value: Decimal | None) -> Decimal | None:
    if value is None or value >= 0:
        return None
    return -value


def _symbol(raw: str) -> tuple[str, InstrumentType]:
    text = raw.strip().upper()
    # Contract months are cut only from listed roots; EU50, HK50 stay whole.
    root = strip_expiration(text)
    if root != text and get_spec(root, InstrumentType.FUTURES) is not None:
        return root, InstrumentType.FUTURES
    instrument_type = infer_instrument_type(text)
    if instrument_type == InstrumentType.FOREX:
        return normalize_fx_symbol(text) or text, instrument_type
    return text, instrument_type


class _MetaTraderParser(BaseCSVParser):
    """Column-name mapping shared by MT4 and MT5."""

    ticket_col: str
    symbol_col: str
    size_col: str
    open_time_cols: tuple[str, ...]
    open_price_cols: tuple[str, ...]
    close_time_cols: tuple[str, ...]
    close_price_cols: tuple[str, ...]

    date_formats = (
        "%Y.%m.%d %H:%M:%S",
        "%Y.%m.%d %H:%M",
    )

    def parse_row(
        self,
        row: dict[str, str],
        row_number: int,
        warnings: list[str],
        context: object = None,
    ) -> ParsedTradeDraft | None:
        kind = row.get("type", "").strip().lower()
        direction = _TRADE_TYPES.get(kind)
        if direction is None:
            warnings.append(f"Row {row_number}: skipped non-trade entry {kind or 'blank'!r}")
            return None

        raw_symbol = row.get(self.symbol_col, "")
        if not raw_symbol.strip():
            raise RowError(f"Missing {self.symbol_col}", field=self.symbol_col)
        symbol, instrument_type = _symbol(raw_symbol)

        entry_price = parse_decimal(
            first_present(row, *self.open_price_cols), "Price", required=True
        )
        quantity = parse_decimal(row.get(self.size_col), self.size_col, required=True)
        exit_price = parse_decimal(first_present(row, *self.close_price_cols), "Close Price")

        entry_time = self.parse_timestamp(
            first_present(row, *self.open_time_cols),
            row_number=row_number,
            field="Open Time",
            warnings=warnings,
        )
        exit_time = self.parse_timestamp(
            first_present(row, *self.close_time_cols),
            row_number=row_number,
            field="Close Time",
            warnings=warnings,
            required=exit_price is not None,
        )

        # "0.00000" is how MT marks an unset level
        stop_loss = parse_decimal(row.get("s/l"), "S/L") or None
        take_profit = parse_decimal(row.get("t/p"), "T/P") or None

        fees = sum_fees([
            _charged(parse_decimal(row.get("commission"), "Commission")),
            _charged(parse_decimal(row.get("swap"), "Swap")),
        ])

        return ParsedTradeDraft(
            row_number=row_number,
            symbol=symbol,
            instrument_type=instrument_type,
            direction=direction,
            entry_price=entry_price,
            entry_time=entry_time,
            exit_price=exit_price,
            exit_time=exit_time,
            quantity=quantity,
            fees=fees,
            stop_loss=stop_loss,
            take_profit=take_profit,
            profit=parse_decimal(row.get("profit"), "Profit"),
            external_id=row.get(self.ticket_col) or None,
            comment=row.get("comment") or None,
            magic_number=row.get("magic") or row.get("magicnumber") or None,
        )


class MT4Parser(_MetaTraderParser):
    platform = TradingPlatform.MT4
    name = "MetaTrader 4"
    description = "Import trades from MetaTrader 4 history export"
    columns = (
        "Ticket",
        "Open Time",
        "Type",
        "Size",
        "Item",
        "Price",
        "S/L",
        "T/P",
        "Close Time",
        "Close Price",
        "Commission",
        "Swap",
        "Profit",
    )
    required = ("ticket", "opentime", "type", "size", "item", "price")

    ticket_col = "ticket"
    symbol_col = "item"
    size_col = "size"
    open_time_cols = ("opentime",)
    open_price_cols = ("price",)
    close_time_cols = ("closetime",)
    close_price_cols = ("closeprice", "price.1")


class MT5Parser(_MetaTraderParser):
    """Positions report; ``Time`` and ``Price`` appear twice (open, close)."""

    platform = TradingPlatform.MT5
    name = "MetaTrader 5"
    description = "Import trades from MetaTrader 5 history export"
    columns = (
        "Position",
        "Time",
        "Type",
        "Volume",
        "Symbol",
        "Price",
        "S/L",
        "T/P",
        "Time",
        "Price",
        "Commission",
        "Swap",
        "Profit",
    )
    required = ("position", "time", "type", "volume", "symbol", "price")

    ticket_col = "position"
    symbol_col = "symbol"
    size_col = "volume"
    open_time_cols = ("time",)
    open_price_cols = ("price",)
    close_time_cols = ("time.1", "closetime")
    close_price_cols = ("price.1", "closeprice")
