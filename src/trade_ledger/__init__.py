"""Trade ledger core: import normalization, P&L, outcome statistics and
the trade lifecycle state machine."""

__version__ = "0.1.0"
