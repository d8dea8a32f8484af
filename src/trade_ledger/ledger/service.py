"""Trade ledger: lifecycle state machine over a trade store.

Owns every write of a trade's computed fields.  Create, close, update,
batch import and historical recompute all derive P&L and exit trigger
flags through :func:`~trade_ledger.ledger.pnl.compute_close`, so a trade
reads the same no matter which path last touched it.

States::

    open ──close──▶ closed
     │                │
     └──soft_delete───┴──▶ deleted ──purge──▶ (gone)
                             │
                             └──restore──▶ previous status

Usage::

    ledger = TradeLedger(InMemoryTradeStore())
    trade = await ledger.create(user_id, TradeDraft(...))
    trade = await ledger.close(user_id, trade.id, Decimal("5010"), now)
    snap = await ledger.stats(user_id)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Sequence

from pydantic import ValidationError as PydanticValidationError

from trade_ledger.core.enums import (
    ExitTieBreak,
    ImportSource,
    LifecycleState,
    TradeStatus,
    TradingPlatform,
)
from trade_ledger.core.errors import (
    BatchTooLargeError,
    ImportFormatError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from trade_ledger.core.interfaces import ISettingsProvider, ITradeStore
from trade_ledger.core.models import (
    ImportSummary,
    Trade,
    TradeDraft,
    TradeFilter,
    TradeUpdate,
)
from trade_ledger.importers import get_parser
from trade_ledger.importers.projectx import ProjectXParser

from .pnl import compute_close
from .stats import StatsSnapshot, aggregate_stats, classify_trade

logger = logging.getLogger(__name__)

DEFAULT_BREAKEVEN_THRESHOLD = Decimal("3.00")

# Fields whose change invalidates stored P&L / trigger flags.
_PNL_INPUTS = frozenset({
    "symbol",
    "instrument_type",
    "direction",
    "entry_price",
    "exit_price",
    "quantity",
    "fees",
    "stop_loss",
    "take_profit",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StaticSettingsProvider:
    """Same breakeven threshold for every user."""

    def __init__(self, threshold: Decimal = DEFAULT_BREAKEVEN_THRESHOLD) -> None:
        self._threshold = Decimal(threshold)

    async def breakeven_threshold(self, user_id: int) -> Decimal:
        return self._threshold


class TradeLedger:
    """Per-request façade over an :class:`ITradeStore`.

    Holds no trade state of its own; every call reads what it needs from
    the store and writes back through it.

    Parameters
    ----------
    store : ITradeStore
        Transactional storage.  ``insert_trades`` must be all-or-nothing.
    settings_provider : ISettingsProvider | None
        Source of the per-user breakeven threshold.  Defaults to a
        static ``3.00``.
    max_batch_rows : int
        Upper bound on drafts per :meth:`batch_import` call.
    tie_break : ExitTieBreak
        Resolution of exits that touch both stop and target.  The
        default keeps both flags.
    max_bulk_delete : int
        Upper bound on ids per :meth:`soft_delete_many` call.
    max_error_samples : int
        Parse error messages echoed back by :meth:`import_csv`.
    orders_match_window_seconds : int
        How long before entry a ProjectX bracket order may be created
        and still belong to the trade.
    """

    def __init__(
        self,
        store: ITradeStore,
        settings_provider: ISettingsProvider | None = None,
        *,
        max_batch_rows: int = 1000,
        tie_break: ExitTieBreak = ExitTieBreak.NONE,
        max_bulk_delete: int = 100,
        max_error_samples: int = 5,
        orders_match_window_seconds: int = 60,
    ) -> None:
        self._store = store
        self._settings = settings_provider or StaticSettingsProvider()
        self._max_batch_rows = max_batch_rows
        self._tie_break = ExitTieBreak(tie_break)
        self._max_bulk_delete = max_bulk_delete
        self._max_error_samples = max_error_samples
        self._match_window = orders_match_window_seconds

    @classmethod
    def from_settings(
        cls,
        store: ITradeStore,
        settings: Any,
        settings_provider: ISettingsProvider | None = None,
    ) -> TradeLedger:
        """Build a ledger from a loaded :class:`~trade_ledger.core.config.Settings`."""
        provider = settings_provider or StaticSettingsProvider(
            settings.ledger.default_breakeven_threshold
        )
        return cls(
            store,
            provider,
            max_batch_rows=settings.ledger.max_batch_rows,
            tie_break=settings.ledger.exit_tie_break,
            max_bulk_delete=settings.ledger.max_bulk_delete,
            max_error_samples=settings.importer.max_error_samples,
            orders_match_window_seconds=settings.importer.orders_match_window_seconds,
        )

    # ------------------------------------------------------------------ #
    # Computed fields                                                      #
    # ------------------------------------------------------------------ #

    def _apply_close(
        self,
        trade: Trade,
        *,
        stop_loss_hit: bool | None = None,
        take_profit_hit: bool | None = None,
    ) -> None:
        """Recompute P&L and trigger flags in place on a closed trade.

        Explicit flags (from order-level import data) win over the flags
        derived from the exit price.
        """
        closed = compute_close(
            symbol=trade.symbol,
            instrument_type=trade.instrument_type,
            direction=trade.direction,
            entry_price=trade.entry_price,
            exit_price=trade.exit_price,  # type: ignore[arg-type]
            quantity=trade.quantity,
            fees=trade.fees,
            stop_loss=trade.stop_loss,
            take_profit=trade.take_profit,
            tie_break=self._tie_break,
        )
        trade.status = TradeStatus.CLOSED
        trade.realized_pnl = closed.realized_pnl
        trade.net_pnl = closed.net_pnl
        trade.stop_loss_hit = (
            stop_loss_hit if stop_loss_hit is not None else closed.triggers.stop_loss_hit
        )
        trade.take_profit_hit = (
            take_profit_hit if take_profit_hit is not None else closed.triggers.take_profit_hit
        )

    @staticmethod
    def _clear_close(trade: Trade) -> None:
        trade.status = TradeStatus.OPEN
        trade.realized_pnl = None
        trade.net_pnl = None
        trade.stop_loss_hit = False
        trade.take_profit_hit = False

    def _build_trade(
        self, user_id: int, draft: TradeDraft, account_id: int | None = None
    ) -> Trade:
        trade = Trade(
            user_id=user_id,
            account_id=account_id if account_id is not None else draft.account_id,
            external_id=draft.external_id,
            symbol=draft.symbol,
            instrument_type=draft.instrument_type,
            direction=draft.direction,
            entry_price=draft.entry_price,
            entry_time=draft.entry_time,
            quantity=draft.quantity,
            exit_price=draft.exit_price,
            exit_time=draft.exit_time,
            fees=draft.fees if draft.fees is not None else Decimal("0"),
            stop_loss=draft.stop_loss,
            take_profit=draft.take_profit,
            import_source=ImportSource.CSV if draft.external_id else ImportSource.MANUAL,
            setup_type=draft.setup_type,
            notes=draft.notes,
            comment=draft.comment,
        )
        if draft.is_closed:
            self._apply_close(
                trade,
                stop_loss_hit=draft.stop_loss_hit,
                take_profit_hit=draft.take_profit_hit,
            )
        return trade

    @staticmethod
    def _coerce_draft(draft: TradeDraft | Mapping[str, Any], index: int | None = None) -> TradeDraft:
        if isinstance(draft, TradeDraft):
            return draft
        try:
            return TradeDraft.model_validate(draft)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(p) for p in first["loc"]) or None
            where = f"Trade {index + 1}: " if index is not None else ""
            raise ValidationError(f"{where}{field}: {first['msg']}", field=field) from exc

    async def _load(self, user_id: int, trade_id: int) -> Trade:
        trade = await self._store.get_trade(user_id, trade_id)
        if trade is None:
            raise NotFoundError()
        return trade

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    async def create(self, user_id: int, draft: TradeDraft | Mapping[str, Any]) -> Trade:
        """Record one trade, closed iff both exit price and time are given."""
        draft = self._coerce_draft(draft)
        trade = await self._store.insert_trade(self._build_trade(user_id, draft))
        logger.info(
            "Trade created: id=%s %s %s %s status=%s net=%s",
            trade.id,
            trade.direction.value.upper(),
            trade.quantity,
            trade.symbol,
            trade.status.value,
            trade.net_pnl,
        )
        return trade

    async def batch_import(
        self,
        user_id: int,
        account_id: int | None,
        drafts: Sequence[TradeDraft | Mapping[str, Any]],
    ) -> ImportSummary:
        """Insert up to ``max_batch_rows`` drafts in one atomic write.

        Every draft is validated before anything is written.  Drafts whose
        ``external_id`` is already stored for this user and account are
        dropped and counted as duplicates.
        """
        if not drafts:
            raise ValidationError("Batch must contain at least one trade", field="trades")
        if len(drafts) > self._max_batch_rows:
            raise BatchTooLargeError(len(drafts), self._max_batch_rows)

        validated = [self._coerce_draft(d, i) for i, d in enumerate(drafts)]

        ext_ids = [d.external_id for d in validated if d.external_id]
        known: set[str] = set()
        if ext_ids:
            known = await self._store.existing_external_ids(user_id, account_id, ext_ids)

        fresh: list[Trade] = []
        seen: set[str] = set()
        duplicates = 0
        for draft in validated:
            ext = draft.external_id
            if ext and (ext in known or ext in seen):
                duplicates += 1
                continue
            if ext:
                seen.add(ext)
            fresh.append(self._build_trade(user_id, draft, account_id))

        inserted = await self._store.insert_trades(fresh) if fresh else []

        warnings: list[str] = []
        if duplicates:
            warnings.append(f"{duplicates} trade(s) were already imported and were skipped.")

        logger.info(
            "Batch import: user=%s account=%s imported=%d total=%d duplicates=%d",
            user_id, account_id, len(inserted), len(validated), duplicates,
        )
        return ImportSummary(
            imported=len(inserted),
            total=len(validated),
            duplicates=duplicates,
            warnings=warnings,
        )

    async def import_csv(
        self,
        user_id: int,
        account_id: int | None,
        platform: TradingPlatform | str,
        raw_text: str,
        orders_text: str | None = None,
        *,
        strict: bool = False,
    ) -> ImportSummary:
        """Parse a platform export and batch-import every parsed row.

        Parse errors are reported in the summary rather than raised.
        With ``strict=True`` a payload that yields no trades raises
        :class:`ImportFormatError` instead.
        """
        platform = TradingPlatform(platform)
        parser = get_parser(platform, match_window_seconds=self._match_window)
        if parser is None:
            raise ValidationError(
                f"Platform {platform.value!r} has no parser; map columns manually",
                field="platform",
            )

        if isinstance(parser, ProjectXParser):
            result = parser.parse_with_orders(raw_text, orders_text)
        else:
            result = parser.parse(raw_text)

        error_samples = [
            f"Row {e.row}: {e.message}" for e in result.errors[: self._max_error_samples]
        ]

        if not result.success or not result.trades:
            if strict:
                detail = error_samples[0] if error_samples else "no trades found"
                raise ImportFormatError(f"{parser.name} export could not be parsed: {detail}")
            logger.info(
                "CSV import produced no trades: platform=%s rows=%d errors=%d",
                platform.value, result.total_rows, len(result.errors),
            )
            return ImportSummary(
                imported=0,
                total=result.total_rows,
                skipped_rows=result.skipped_rows,
                errors=error_samples,
                warnings=list(result.warnings),
            )

        summary = await self.batch_import(user_id, account_id, result.trades)
        return summary.model_copy(
            update={
                "skipped_rows": result.skipped_rows,
                "errors": error_samples,
                "warnings": [*result.warnings, *summary.warnings],
            }
        )

    async def close(
        self,
        user_id: int,
        trade_id: int,
        exit_price: Decimal,
        exit_time: datetime,
        fees: Decimal | None = None,
    ) -> Trade:
        """open → closed."""
        trade = await self._load(user_id, trade_id)
        state = trade.lifecycle_state
        if state is not LifecycleState.OPEN:
            raise InvalidTransitionError(trade_id, state.value, "close")

        trade.exit_price = exit_price
        trade.exit_time = exit_time
        if fees is not None:
            trade.fees = fees
        self._apply_close(trade)
        trade.updated_at = _utcnow()

        trade = await self._store.update_trade(trade)
        logger.info(
            "Trade closed: id=%s %s realized=%s net=%s sl_hit=%s tp_hit=%s",
            trade.id, trade.symbol, trade.realized_pnl, trade.net_pnl,
            trade.stop_loss_hit, trade.take_profit_hit,
        )
        return trade

    async def update(
        self,
        user_id: int,
        trade_id: int,
        changes: TradeUpdate | Mapping[str, Any],
    ) -> Trade:
        """Apply a partial update and recompute derived fields if needed.

        ``realized_pnl`` / ``net_pnl`` are not accepted; they are rejected
        as unknown fields.
        """
        if not isinstance(changes, TradeUpdate):
            try:
                changes = TradeUpdate.model_validate(dict(changes))
            except PydanticValidationError as exc:
                first = exc.errors()[0]
                field = ".".join(str(p) for p in first["loc"]) or None
                raise ValidationError(f"{field}: {first['msg']}", field=field) from exc

        trade = await self._load(user_id, trade_id)
        if trade.is_deleted:
            raise InvalidTransitionError(trade_id, LifecycleState.DELETED.value, "update")

        delta = changes.changes()
        for required in ("symbol", "instrument_type", "direction", "entry_price",
                         "entry_time", "quantity"):
            if required in delta and delta[required] is None:
                raise ValidationError(f"{required} cannot be cleared", field=required)
        if delta.get("fees", Decimal("0")) is None:
            delta["fees"] = Decimal("0")

        was_closed = trade.status == TradeStatus.CLOSED
        merged = trade.model_copy(update=delta)
        # model_copy skips validation; round-trip to coerce the new values.
        merged = Trade.model_validate(merged.model_dump())

        now_closed = merged.exit_price is not None and merged.exit_time is not None
        if now_closed and (not was_closed or _PNL_INPUTS.intersection(delta)):
            self._apply_close(merged)
        elif not now_closed and was_closed:
            self._clear_close(merged)
        merged.updated_at = _utcnow()

        trade = await self._store.update_trade(merged)
        logger.info(
            "Trade updated: id=%s fields=%s status=%s net=%s",
            trade.id, sorted(delta), trade.status.value, trade.net_pnl,
        )
        return trade

    async def soft_delete(self, user_id: int, trade_id: int) -> Trade:
        """open | closed → deleted."""
        trade = await self._load(user_id, trade_id)
        if trade.is_deleted:
            raise InvalidTransitionError(trade_id, LifecycleState.DELETED.value, "delete")
        at = _utcnow()
        await self._store.soft_delete(user_id, [trade_id], at)
        trade.deleted_at = at
        logger.info("Trade soft-deleted: id=%s", trade_id)
        return trade

    async def soft_delete_many(self, user_id: int, trade_ids: Sequence[int]) -> int:
        """Soft-delete several trades; every id must belong to ``user_id``.

        Already deleted trades are left as they are.  Returns the number
        of trades newly marked deleted.
        """
        ids = list(dict.fromkeys(trade_ids))
        if not ids:
            raise ValidationError("No trade ids given", field="ids")
        if len(ids) > self._max_bulk_delete:
            raise ValidationError(
                f"Cannot delete more than {self._max_bulk_delete} trades at once",
                field="ids",
            )

        owned = []
        for trade_id in ids:
            owned.append(await self._load(user_id, trade_id))

        live = [t.id for t in owned if not t.is_deleted]
        count = await self._store.soft_delete(user_id, live, _utcnow()) if live else 0
        logger.info("Trades soft-deleted: user=%s count=%d", user_id, count)
        return count

    async def restore(self, user_id: int, trade_id: int) -> Trade:
        """deleted → previous status."""
        trade = await self._load(user_id, trade_id)
        if not trade.is_deleted:
            raise InvalidTransitionError(trade_id, trade.lifecycle_state.value, "restore")
        await self._store.restore(user_id, trade_id)
        trade.deleted_at = None
        logger.info("Trade restored: id=%s status=%s", trade_id, trade.status.value)
        return trade

    async def purge(self, user_id: int, trade_id: int) -> None:
        """deleted → gone.  Live trades must be soft-deleted first."""
        trade = await self._load(user_id, trade_id)
        if not trade.is_deleted:
            raise InvalidTransitionError(trade_id, trade.lifecycle_state.value, "purge")
        await self._store.purge(user_id, [trade_id])
        logger.info("Trade purged: id=%s", trade_id)

    async def empty_trash(self, user_id: int, account_id: int | None = None) -> int:
        """Purge every soft-deleted trade of ``user_id`` (optionally one account)."""
        deleted = await self._store.find_trades(
            user_id, TradeFilter(only_deleted=True, account_id=account_id)
        )
        ids = [t.id for t in deleted if t.id is not None]
        count = await self._store.purge(user_id, ids) if ids else 0
        logger.info("Trash emptied: user=%s account=%s purged=%d", user_id, account_id, count)
        return count

    async def recompute(self, user_id: int) -> int:
        """Re-derive P&L and trigger flags for every closed trade.

        Returns the number of trades whose stored values changed.
        """
        trades = await self._store.find_trades(
            user_id, TradeFilter(status=TradeStatus.CLOSED, include_deleted=True)
        )
        changed = 0
        for trade in trades:
            before = (
                trade.realized_pnl, trade.net_pnl,
                trade.stop_loss_hit, trade.take_profit_hit,
            )
            if trade.import_source == ImportSource.CSV:
                # Imported flags may come from order fills, not the exit print.
                self._apply_close(
                    trade,
                    stop_loss_hit=trade.stop_loss_hit,
                    take_profit_hit=trade.take_profit_hit,
                )
            else:
                self._apply_close(trade)
            after = (
                trade.realized_pnl, trade.net_pnl,
                trade.stop_loss_hit, trade.take_profit_hit,
            )
            if before != after:
                trade.updated_at = _utcnow()
                await self._store.update_trade(trade)
                changed += 1
        logger.info("Recompute: user=%s closed=%d changed=%d", user_id, len(trades), changed)
        return changed

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    async def get(self, user_id: int, trade_id: int) -> Trade:
        return await self._load(user_id, trade_id)

    async def list_trades(
        self, user_id: int, flt: TradeFilter | None = None
    ) -> list[Trade]:
        """Trades newest-id first.  Outcome filters use the user's threshold."""
        flt = flt or TradeFilter()
        trades = await self._store.find_trades(user_id, flt)
        if flt.outcome is not None:
            threshold = await self._settings.breakeven_threshold(user_id)
            trades = [
                t for t in trades
                if t.net_pnl is not None
                and classify_trade(t.net_pnl, threshold) == flt.outcome
            ]
        return trades

    async def list_deleted(
        self, user_id: int, account_id: int | None = None, limit: int = 50
    ) -> list[Trade]:
        return await self._store.find_trades(
            user_id,
            TradeFilter(only_deleted=True, account_id=account_id, limit=limit),
        )

    async def stats(
        self,
        user_id: int,
        *,
        account_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> StatsSnapshot:
        """Statistics over the user's closed, non-deleted trades."""
        threshold = await self._settings.breakeven_threshold(user_id)
        trades = await self._store.find_trades(
            user_id,
            TradeFilter(
                status=TradeStatus.CLOSED,
                account_id=account_id,
                start=start,
                end=end,
            ),
        )
        return aggregate_stats(trades, threshold)
