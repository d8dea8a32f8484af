"""Ledger: P&L, statistics, and the trade lifecycle state machine."""

from .pnl import (
    ClosedPnl,
    ExitTriggers,
    compute_close,
    compute_net_pnl,
    compute_pnl,
    evaluate_exit_triggers,
    quantize_money,
)
from .service import StaticSettingsProvider, TradeLedger
from .stats import (
    StatsSnapshot,
    aggregate_stats,
    classify_trade,
    grouped_stats,
    sharpe_ratio,
    sortino_ratio,
)

__all__ = [
    "ClosedPnl",
    "ExitTriggers",
    "StaticSettingsProvider",
    "StatsSnapshot",
    "TradeLedger",
    "aggregate_stats",
    "classify_trade",
    "compute_close",
    "compute_net_pnl",
    "compute_pnl",
    "evaluate_exit_triggers",
    "grouped_stats",
    "quantize_money",
    "sharpe_ratio",
    "sortino_ratio",
]
