"""Realized / net P&L and stop-loss / take-profit hit evaluation.

Every path that writes P&L (single create, close, update, batch import,
historical recompute) goes through :func:`compute_close`, so all of them
agree to the cent.

Futures::

    realized = (exit - entry) * sign * qty * point_value

Forex::

    realized = (exit - entry) * sign / pip_size * pip_value_per_lot * lots

where ``sign`` is +1 for long and -1 for short.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from trade_ledger.core.enums import Direction, ExitTieBreak, InstrumentType
from trade_ledger.core.instruments import resolve

MONEY_PLACES = Decimal("0.01")
_ZERO = Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents (storage scale of P&L and fee columns)."""
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def compute_pnl(
    symbol: str,
    instrument_type: InstrumentType,
    entry_price: Decimal,
    exit_price: Decimal,
    quantity: Decimal,
    direction: Direction,
) -> Decimal:
    """Gross realized P&L, scaled by the instrument multiplier.

    Unknown symbols use the fallback multiplier from
    :func:`~trade_ledger.core.instruments.resolve`; this never raises.
    The result is not rounded.
    """
    direction = Direction(direction)
    if quantity == _ZERO:
        return _ZERO

    res = resolve(symbol, InstrumentType(instrument_type))
    move = (exit_price - entry_price) * direction.sign

    if res.is_pip_based:
        pip_size = res.pip_size or Decimal("0.0001")
        pips = move / pip_size
        return pips * res.multiplier * quantity
    return move * quantity * res.multiplier


def compute_net_pnl(realized_pnl: Decimal, fees: Decimal | None = None) -> Decimal:
    """``realized - fees``; absent fees count as zero."""
    return realized_pnl - (fees if fees is not None else _ZERO)


@dataclass(frozen=True)
class ExitTriggers:
    """Whether the exit print reached the stop and/or the target."""

    stop_loss_hit: bool = False
    take_profit_hit: bool = False

    @property
    def ambiguous(self) -> bool:
        """Both levels touched by the same print (e.g. a gap)."""
        return self.stop_loss_hit and self.take_profit_hit


def evaluate_exit_triggers(
    direction: Direction,
    exit_price: Decimal,
    stop_loss: Decimal | None = None,
    take_profit: Decimal | None = None,
    *,
    tie_break: ExitTieBreak = ExitTieBreak.NONE,
) -> ExitTriggers:
    """Evaluate stop-loss / take-profit hits for an exit price.

    Long: stop hit iff ``exit <= stop``, target hit iff ``exit >= target``.
    Short: mirrored.  An unset level is never hit.  With the default
    ``tie_break`` both flags may be true at once.
    """
    direction = Direction(direction)
    sl_hit = False
    tp_hit = False

    if stop_loss is not None:
        if direction is Direction.LONG:
            sl_hit = exit_price <= stop_loss
        else:
            sl_hit = exit_price >= stop_loss

    if take_profit is not None:
        if direction is Direction.LONG:
            tp_hit = exit_price >= take_profit
        else:
            tp_hit = exit_price <= take_profit

    if sl_hit and tp_hit:
        if tie_break == ExitTieBreak.STOP_LOSS:
            tp_hit = False
        elif tie_break == ExitTieBreak.TAKE_PROFIT:
            sl_hit = False

    return ExitTriggers(stop_loss_hit=sl_hit, take_profit_hit=tp_hit)


@dataclass(frozen=True)
class ClosedPnl:
    """Everything the ledger stores when a trade is (re)closed."""

    realized_pnl: Decimal
    net_pnl: Decimal
    triggers: ExitTriggers


def compute_close(
    *,
    symbol: str,
    instrument_type: InstrumentType,
    direction: Direction,
    entry_price: Decimal,
    exit_price: Decimal,
    quantity: Decimal,
    fees: Decimal | None = None,
    stop_loss: Decimal | None = None,
    take_profit: Decimal | None = None,
    tie_break: ExitTieBreak = ExitTieBreak.NONE,
) -> ClosedPnl:
    """Realized and net P&L (rounded to cents) plus exit trigger flags."""
    realized = quantize_money(
        compute_pnl(symbol, instrument_type, entry_price, exit_price, quantity, direction)
    )
    net = quantize_money(compute_net_pnl(realized, fees))
    triggers = evaluate_exit_triggers(
        direction, exit_price, stop_loss, take_profit, tie_break=tie_break
    )
    return ClosedPnl(realized_pnl=realized, net_pnl=net, triggers=triggers)
