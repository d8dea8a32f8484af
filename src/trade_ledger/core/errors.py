"""Custom exception hierarchy for the trade ledger."""


class LedgerError(Exception):
    """Base exception for all trade ledger errors."""


# --- Configuration ---
class ConfigError(LedgerError):
    """Invalid or missing configuration."""


# --- Validation ---
class ValidationError(LedgerError):
    """Request rejected before any storage write."""

    def __init__(self, message: str, *, field: str | None = None):
        self.field = field
        super().__init__(message)


class BatchTooLargeError(ValidationError):
    """Batch import exceeds the configured row limit."""

    def __init__(self, rows: int, limit: int):
        self.rows = rows
        self.limit = limit
        super().__init__(f"Batch of {rows} trades exceeds the limit of {limit}")


# --- Lifecycle ---
class NotFoundError(LedgerError):
    """Trade does not exist or belongs to another user.

    The message is identical in both cases so callers cannot discover
    ids owned by someone else.
    """

    def __init__(self, message: str = "Trade not found"):
        super().__init__(message)


class InvalidTransitionError(LedgerError):
    """Requested lifecycle transition is not allowed from the current state."""

    def __init__(self, trade_id: int, state: str, action: str):
        self.trade_id = trade_id
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} trade {trade_id} in state {state!r}")


# --- Import ---
class ImportFormatError(LedgerError):
    """CSV payload could not be mapped to any trade."""
