"""Outcome classification and portfolio statistics.

A pure read-then-reduce over already fetched trades.  The breakeven
threshold is passed in by the caller (it is a per-user setting), so the
aggregator has no storage dependency and is safe to call repeatedly.

Classification with threshold ``t``::

    win        net_pnl >  t
    loss       net_pnl < -t
    breakeven  otherwise  (inclusive band [-t, +t])

All sums are Decimal and evaluated under a fixed local context; ratios
and averages are quantized to 8 places, so the snapshot is bit-identical
for any ordering of the same trades.

Example::

    snap = aggregate_stats(closed_trades, Decimal("3.00"))
    snap.win_rate, snap.profit_factor
"""

from __future__ import annotations

import decimal
import logging
from decimal import Decimal
from typing import Any, Callable, Hashable, Iterable, Sequence, TypeVar

import numpy as np
from pydantic import BaseModel

from trade_ledger.core.enums import TradeOutcome, TradeStatus
from trade_ledger.core.models import Trade

from .pnl import compute_pnl

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_PRECISION = 28
RATIO_PLACES = Decimal("0.00000001")

K = TypeVar("K", bound=Hashable)


class StatsSnapshot(BaseModel):
    """Aggregate statistics for a set of closed trades.

    Derived on every read; never stored.  ``wins + losses + breakevens``
    always equals ``total_trades``.
    """

    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    breakevens: int = 0
    win_rate: Decimal = _ZERO  # Percent, breakevens excluded
    total_pnl: Decimal = _ZERO
    avg_pnl: Decimal = _ZERO
    gross_profit: Decimal = _ZERO
    gross_loss: Decimal = _ZERO  # Positive magnitude
    profit_factor: Decimal = _ZERO  # 0 when gross_loss is 0
    avg_win: Decimal = _ZERO
    avg_loss: Decimal = _ZERO  # Positive magnitude
    largest_win: Decimal = _ZERO
    largest_loss: Decimal = _ZERO  # Positive magnitude
    expectancy: Decimal = _ZERO
    payoff_ratio: Decimal = _ZERO
    avg_r_multiple: Decimal | None = None
    breakeven_threshold: Decimal = Decimal("3.00")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_trade(net_pnl: Decimal, threshold: Decimal) -> TradeOutcome:
    """Win / loss / breakeven under an inclusive ``±threshold`` band."""
    if net_pnl > threshold:
        return TradeOutcome.WIN
    if net_pnl < -threshold:
        return TradeOutcome.LOSS
    return TradeOutcome.BREAKEVEN


def calculate_win_rate(wins: int, losses: int) -> Decimal:
    decisive = wins + losses
    if decisive == 0:
        return _ZERO
    return Decimal(wins) / Decimal(decisive) * _HUNDRED


def calculate_profit_factor(gross_profit: Decimal, gross_loss: Decimal) -> Decimal:
    if gross_loss == 0:
        return _ZERO
    return gross_profit / gross_loss


def calculate_expectancy(win_rate: Decimal, avg_win: Decimal, avg_loss: Decimal) -> Decimal:
    """Expected net P&L per decisive trade; ``win_rate`` in percent."""
    wr = win_rate / _HUNDRED
    return wr * avg_win - (1 - wr) * avg_loss


def calculate_payoff_ratio(avg_win: Decimal, avg_loss: Decimal) -> Decimal:
    if avg_loss == 0:
        return _ZERO
    return avg_win / avg_loss


def calculate_r_multiple(trade: Trade) -> Decimal | None:
    """Net P&L over the dollar risk implied by the stop loss.

    Risk is what the position would have realized had it exited exactly
    at the stop, so contract multipliers and pip values apply.
    """
    if trade.stop_loss is None or trade.net_pnl is None:
        return None
    risk = abs(
        compute_pnl(
            trade.symbol,
            trade.instrument_type,
            trade.entry_price,
            trade.stop_loss,
            trade.quantity,
            trade.direction,
        )
    )
    if risk == 0:
        return None
    return trade.net_pnl / risk


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _q(value: Decimal) -> Decimal:
    return value.quantize(RATIO_PLACES)


def _eligible(trade: Trade) -> bool:
    return (
        trade.status == TradeStatus.CLOSED
        and trade.deleted_at is None
        and trade.net_pnl is not None
    )


def aggregate_pnls(
    pnls: Iterable[Decimal],
    breakeven_threshold: Decimal,
    *,
    r_multiples: Sequence[Decimal] = (),
) -> StatsSnapshot:
    """Aggregate a bag of net P&L values."""
    threshold = Decimal(breakeven_threshold)
    with decimal.localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = decimal.ROUND_HALF_EVEN

        wins = losses = breakevens = 0
        total = gross_profit = gross_loss = _ZERO
        largest_win = largest_loss = _ZERO

        for pnl in pnls:
            total += pnl
            outcome = classify_trade(pnl, threshold)
            if outcome is TradeOutcome.WIN:
                wins += 1
                gross_profit += pnl
                largest_win = max(largest_win, pnl)
            elif outcome is TradeOutcome.LOSS:
                losses += 1
                gross_loss += abs(pnl)
                largest_loss = max(largest_loss, abs(pnl))
            else:
                breakevens += 1

        n = wins + losses + breakevens
        win_rate = _q(calculate_win_rate(wins, losses))
        avg_win = _q(gross_profit / wins) if wins else _ZERO
        avg_loss = _q(gross_loss / losses) if losses else _ZERO

        # Sum sorted values so the mean does not depend on input order.
        avg_r = (
            _q(sum(sorted(r_multiples), _ZERO) / len(r_multiples))
            if r_multiples
            else None
        )

        return StatsSnapshot(
            total_trades=n,
            wins=wins,
            losses=losses,
            breakevens=breakevens,
            win_rate=win_rate,
            total_pnl=total,
            avg_pnl=_q(total / n) if n else _ZERO,
            gross_profit=gross_profit,
            gross_loss=gross_loss,
            profit_factor=_q(calculate_profit_factor(gross_profit, gross_loss)),
            avg_win=avg_win,
            avg_loss=avg_loss,
            largest_win=largest_win,
            largest_loss=largest_loss,
            expectancy=_q(calculate_expectancy(win_rate, avg_win, avg_loss)),
            payoff_ratio=_q(calculate_payoff_ratio(avg_win, avg_loss)),
            avg_r_multiple=avg_r,
            breakeven_threshold=threshold,
        )


def aggregate_stats(
    trades: Iterable[Trade], breakeven_threshold: Decimal
) -> StatsSnapshot:
    """Statistics over the closed, non-deleted trades in *trades*.

    Open and soft-deleted trades are ignored rather than rejected.
    """
    eligible = [t for t in trades if _eligible(t)]
    r_multiples = [
        r for r in (calculate_r_multiple(t) for t in eligible) if r is not None
    ]
    snap = aggregate_pnls(
        (t.net_pnl for t in eligible),  # type: ignore[misc]
        breakeven_threshold,
        r_multiples=r_multiples,
    )
    logger.debug(
        "Aggregated %d trades: %d W / %d L / %d BE",
        snap.total_trades, snap.wins, snap.losses, snap.breakevens,
    )
    return snap


def grouped_stats(
    trades: Iterable[Trade],
    breakeven_threshold: Decimal,
    key: Callable[[Trade], K | None],
) -> dict[K, StatsSnapshot]:
    """One snapshot per group; trades whose key is ``None`` are skipped."""
    groups: dict[K, list[Trade]] = {}
    for trade in trades:
        k = key(trade)
        if k is None:
            continue
        groups.setdefault(k, []).append(trade)
    return {k: aggregate_stats(g, breakeven_threshold) for k, g in groups.items()}


# ---------------------------------------------------------------------------
# Risk-adjusted ratios (presentation grade, float)
# ---------------------------------------------------------------------------

def sharpe_ratio(pnls: Sequence[Decimal | float], risk_free: float = 0.0) -> float:
    """Trade-level Sharpe: mean over sample stdev.  0.0 when undefined."""
    values = np.array([float(p) for p in pnls])
    if len(values) < 2:
        return 0.0
    std = float(np.std(values, ddof=1))
    if std == 0:
        return 0.0
    return (float(np.mean(values)) - risk_free) / std


def sortino_ratio(pnls: Sequence[Decimal | float], risk_free: float = 0.0) -> float:
    """Mean over downside deviation of the losing trades.  0.0 when undefined."""
    values = np.array([float(p) for p in pnls])
    if len(values) < 2:
        return 0.0
    negatives = values[values < 0]
    if len(negatives) == 0:
        return 0.0
    downside = float(np.sqrt(np.mean(negatives ** 2)))
    if downside == 0:
        return 0.0
    return (float(np.mean(values)) - risk_free) / downside


def snapshot_to_dict(snap: StatsSnapshot) -> dict[str, Any]:
    """JSON-safe plain dict (Decimals as strings)."""
    return snap.model_dump(mode="json")
