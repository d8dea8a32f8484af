"""Enumerations used across the trade ledger."""

from enum import Enum


class InstrumentType(str, Enum):
    FUTURES = "futures"
    FOREX = "forex"


class Direction(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        """+1 for long, -1 for short."""
        return 1 if self is Direction.LONG else -1

    def flipped(self) -> "Direction":
        return Direction.SHORT if self is Direction.LONG else Direction.LONG


class TradeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class LifecycleState(str, Enum):
    """Ledger lifecycle state of a trade.

    ``deleted`` is a soft-delete marker layered over the stored status;
    ``purged`` is terminal and never observed on a stored record.
    """

    OPEN = "open"
    CLOSED = "closed"
    DELETED = "deleted"
    PURGED = "purged"


class ImportSource(str, Enum):
    MANUAL = "manual"
    CSV = "csv"


class TradeOutcome(str, Enum):
    """Win / loss / break-even classification."""

    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


class TradingPlatform(str, Enum):
    MT4 = "mt4"
    MT5 = "mt5"
    PROJECTX = "projectx"
    NINJATRADER = "ninjatrader"
    OTHER = "other"


class ExitTieBreak(str, Enum):
    """How to resolve an exit print that touches both stop and target."""

    NONE = "none"  # Report both flags
    STOP_LOSS = "stop_loss"  # Assume the stop filled first
    TAKE_PROFIT = "take_profit"
