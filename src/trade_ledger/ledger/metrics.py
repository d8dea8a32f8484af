"""Per-trade display metrics: points, ticks/pips, ROI, R-multiple, duration.

These are read-side conveniences for a single trade's detail view.  Any
missing operand (open trade, no stop, unlisted contract) yields ``None``
rather than an exception.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from trade_ledger.core.enums import Direction, InstrumentType
from trade_ledger.core.instruments import get_spec, resolve
from trade_ledger.core.models import Trade

_FOREX_LOT_UNITS = Decimal("100000")


def calculate_points(
    entry_price: Decimal, exit_price: Decimal | None, direction: Direction
) -> Decimal | None:
    """Favourable price movement: positive means profit."""
    if exit_price is None:
        return None
    return (exit_price - entry_price) * Direction(direction).sign


def calculate_ticks(points: Decimal | None, symbol: str) -> Decimal | None:
    if points is None:
        return None
    spec = get_spec(symbol, InstrumentType.FUTURES)
    if spec is None or not spec.tick_size:
        return None
    return points / spec.tick_size


def calculate_pips(points: Decimal | None, symbol: str) -> Decimal | None:
    if points is None:
        return None
    res = resolve(symbol, InstrumentType.FOREX)
    return points / (res.pip_size or Decimal("0.0001"))


def calculate_r_multiple(
    entry_price: Decimal,
    exit_price: Decimal | None,
    stop_loss: Decimal | None,
    direction: Direction,
) -> Decimal | None:
    """Price move expressed in units of the initial stop distance."""
    if exit_price is None or stop_loss is None:
        return None
    risk = abs(entry_price - stop_loss)
    if risk == 0:
        return None
    return calculate_points(entry_price, exit_price, direction) / risk


def calculate_planned_rr(
    entry_price: Decimal, stop_loss: Decimal | None, take_profit: Decimal | None
) -> Decimal | None:
    if stop_loss is None or take_profit is None:
        return None
    risk = abs(entry_price - stop_loss)
    if risk == 0:
        return None
    return abs(take_profit - entry_price) / risk


def format_duration(seconds: float) -> str:
    """``"2d 3h"``, ``"4h 15m"`` or ``"12m"``."""
    minutes = int(seconds // 60)
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"


def calculate_roi(
    net_pnl: Decimal | None,
    entry_price: Decimal,
    quantity: Decimal,
    symbol: str,
    instrument_type: InstrumentType,
) -> Decimal | None:
    """Net P&L as a percentage of entry notional."""
    if net_pnl is None:
        return None
    if instrument_type == InstrumentType.FUTURES:
        spec = get_spec(symbol, InstrumentType.FUTURES)
        if spec is None or spec.point_value is None:
            return None
        notional = entry_price * quantity * spec.point_value
    else:
        notional = entry_price * quantity * _FOREX_LOT_UNITS
    if notional == 0:
        return None
    return net_pnl / notional * 100


@dataclass(frozen=True)
class TradeMetrics:
    points: Decimal | None
    ticks: Decimal | None
    pips: Decimal | None
    ticks_per_contract: Decimal | None
    gross_pnl: Decimal | None
    roi_pct: Decimal | None
    duration_seconds: float | None
    duration: str | None
    r_multiple: Decimal | None
    planned_rr: Decimal | None

    def to_dict(self) -> dict[str, Any]:
        return {
            k: (str(v) if isinstance(v, Decimal) else v)
            for k, v in asdict(self).items()
        }


def _hold_seconds(entry: datetime, exit_: datetime | None) -> float | None:
    if exit_ is None:
        return None
    return (exit_ - entry).total_seconds()


def compute_trade_metrics(trade: Trade) -> TradeMetrics:
    """Collect all display metrics for one trade."""
    points = calculate_points(trade.entry_price, trade.exit_price, trade.direction)
    is_futures = trade.instrument_type == InstrumentType.FUTURES
    ticks = calculate_ticks(points, trade.symbol) if is_futures else None
    pips = None if is_futures else calculate_pips(points, trade.symbol)

    increments = ticks if is_futures else pips
    per_contract = None
    if increments is not None and trade.quantity != 0:
        per_contract = increments / trade.quantity

    gross = trade.realized_pnl
    if gross is None and trade.net_pnl is not None:
        gross = trade.net_pnl + trade.fees

    seconds = _hold_seconds(trade.entry_time, trade.exit_time)

    return TradeMetrics(
        points=points,
        ticks=ticks,
        pips=pips,
        ticks_per_contract=per_contract,
        gross_pnl=gross,
        roi_pct=calculate_roi(
            trade.net_pnl, trade.entry_price, trade.quantity,
            trade.symbol, trade.instrument_type,
        ),
        duration_seconds=seconds,
        duration=format_duration(seconds) if seconds is not None else None,
        r_multiple=calculate_r_multiple(
            trade.entry_price, trade.exit_price, trade.stop_loss, trade.direction
        ),
        planned_rr=calculate_planned_rr(
            trade.entry_price, trade.stop_loss, trade.take_profit
        ),
    )
