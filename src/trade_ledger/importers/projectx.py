"""ProjectX (TopstepX) futures export parser.

ProjectX ships two files:

* a trades export, one row per round trip
  (``Id, ContractName, EnteredAt, ExitedAt, EntryPrice, ExitPrice, Fees,
  Commissions, PnL, Size, Type``)
* an optional orders export with the bracket orders of each position
  (``Id, ContractName, Status, CreationDisposition, PositionDisposition,
  StopPrice, LimitPrice, CreatedAt, ...``)

The orders file is the only source of stop / target levels.  Orders are
matched to a trade by contract name when they were created between
``entry - window`` and the exit.  A filled, position-closing stop or
target order marks the matching flag as hit, which takes precedence over
anything derived from the exit price later on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Sequence

from trade_ledger.core.enums import InstrumentType, TradingPlatform
from trade_ledger.core.models import ParsedTradeDraft

from .base import (
    BaseCSVParser,
    ParseResult,
    RowError,
    normalize_header,
    parse_decimal,
    strip_expiration,
    sum_fees,
)

logger = logging.getLogger(__name__)

ORDERS_REQUIRED = (
    "id",
    "contractname",
    "status",
    "creationdisposition",
    "stopprice",
    "limitprice",
)


@dataclass
class OrderInfo:
    """Bracket levels and exit reason recovered for one trade."""

    stop_loss: Decimal | None = None
    take_profit: Decimal | None = None
    stop_loss_hit: bool = False
    take_profit_hit: bool = False
    exit_type: str | None = None  # "sl", "tp" or "manual"

    @property
    def comment(self) -> str | None:
        return f"Exit: {self.exit_type.upper()}" if self.exit_type else None


@dataclass
class _Order:
    contract: str
    created_at: datetime
    status: str
    creation: str
    position: str
    stop_price: Decimal | None
    limit_price: Decimal | None


def validate_orders_headers(headers: Sequence[str]) -> bool:
    keys = {normalize_header(h) for h in headers}
    return all(col in keys for col in ORDERS_REQUIRED)


class ProjectXParser(BaseCSVParser):
    """Trades export plus optional orders export."""

    platform = TradingPlatform.PROJECTX
    name = "ProjectX"
    description = "Import trades from ProjectX platform (Trades CSV, optional Orders CSV for SL/TP)"
    columns = (
        "Id",
        "ContractName",
        "EnteredAt",
        "ExitedAt",
        "EntryPrice",
        "ExitPrice",
        "Fees",
        "Commissions",
        "PnL",
        "Size",
        "Type",
    )
    required = (
        "id",
        "contractname",
        "enteredat",
        "exitedat",
        "entryprice",
        "exitprice",
        "size",
        "type",
    )
    date_formats = (
        "%m/%d/%Y %H:%M:%S %z",
        "%m/%d/%Y %H:%M:%S",
    )
    file_label = "Trades CSV"

    def __init__(self, match_window_seconds: int = 60) -> None:
        self.match_window = timedelta(seconds=match_window_seconds)

    # ------------------------------------------------------------------ #
    # Orders                                                               #
    # ------------------------------------------------------------------ #

    def _load_orders(self, rows: list[dict[str, str]], warnings: list[str]) -> list[_Order]:
        orders: list[_Order] = []
        scratch: list[str] = []
        for i, row in enumerate(rows):
            created = (row.get("createdat") or "").strip()
            contract = (row.get("contractname") or "").strip()
            if not created or not contract:
                continue
            try:
                stop_price = parse_decimal(row.get("stopprice"), "StopPrice")
                limit_price = parse_decimal(row.get("limitprice"), "LimitPrice")
            except RowError as exc:
                logger.debug("Orders row %d ignored: %s", i + 2, exc)
                continue
            orders.append(
                _Order(
                    contract=contract,
                    created_at=self.parse_timestamp(  # type: ignore[arg-type]
                        created, row_number=i + 2, field="CreatedAt", warnings=scratch
                    ),
                    status=(row.get("status") or "").strip().lower(),
                    creation=(row.get("creationdisposition") or "").strip().lower(),
                    position=(row.get("positiondisposition") or "").strip().lower(),
                    stop_price=stop_price,
                    limit_price=limit_price,
                )
            )
        if scratch:
            warnings.append(f"{len(scratch)} order timestamp(s) could not be parsed")
        return orders

    def order_info(
        self, orders: Sequence[_Order], contract: str, entry: datetime, exit_: datetime
    ) -> OrderInfo:
        """Reconcile loaded orders against one trade."""
        info = OrderInfo()
        lo = entry - self.match_window
        for order in orders:
            if order.contract != contract or not (lo <= order.created_at <= exit_):
                continue
            closing_fill = order.status == "filled" and order.position == "closing"

            if order.creation == "stoploss" and order.stop_price is not None:
                info.stop_loss = order.stop_price
                if closing_fill:
                    info.stop_loss_hit = True
                    info.exit_type = "sl"

            if order.creation == "takeprofit" and order.limit_price is not None:
                info.take_profit = order.limit_price
                if closing_fill:
                    info.take_profit_hit = True
                    info.exit_type = "tp"

            if order.creation == "closeposition" and order.status == "filled":
                if not info.stop_loss_hit and not info.take_profit_hit:
                    info.exit_type = "manual"
        return info

    # ------------------------------------------------------------------ #
    # Trades                                                               #
    # ------------------------------------------------------------------ #

    def parse_row(
        self,
        row: dict[str, str],
        row_number: int,
        warnings: list[str],
        context: list[_Order] | None = None,
    ) -> ParsedTradeDraft | None:
        orders = context
        contract = row.get("contractname", "")
        entry_raw = row.get("entryprice", "")
        size_raw = row.get("size", "")
        side = row.get("type", "")
        if not contract or not entry_raw or not size_raw or not side:
            raise RowError("Missing required fields")

        entry_price = parse_decimal(entry_raw, "EntryPrice", required=True)
        exit_price = parse_decimal(row.get("exitprice"), "ExitPrice")
        quantity = parse_decimal(size_raw, "Size", required=True)

        entry_time = self.parse_timestamp(
            row.get("enteredat"), row_number=row_number, field="EnteredAt", warnings=warnings
        )
        exit_time = self.parse_timestamp(
            row.get("exitedat"),
            row_number=row_number,
            field="ExitedAt",
            warnings=warnings,
            required=exit_price is not None,
        )

        fees = sum_fees([
            parse_decimal(row.get("fees"), "Fees"),
            parse_decimal(row.get("commissions"), "Commissions"),
        ])

        info = OrderInfo()
        if orders and exit_time is not None:
            info = self.order_info(orders, contract, entry_time, exit_time)  # type: ignore[arg-type]

        return ParsedTradeDraft(
            row_number=row_number,
            symbol=strip_expiration(contract),
            instrument_type=InstrumentType.FUTURES,
            direction=self.direction_of(side, row_number=row_number, warnings=warnings),
            entry_price=entry_price,
            entry_time=entry_time,
            exit_price=exit_price,
            exit_time=exit_time,
            quantity=quantity,
            fees=fees,
            stop_loss=info.stop_loss,
            take_profit=info.take_profit,
            stop_loss_hit=info.stop_loss_hit if orders else None,
            take_profit_hit=info.take_profit_hit if orders else None,
            profit=parse_decimal(row.get("pnl"), "PnL"),
            external_id=row.get("id") or None,
            comment=info.comment,
        )

    def parse(self, raw_text: str) -> ParseResult:
        """Trades export only; no stop / target data."""
        return self.parse_with_orders(raw_text, None)

    def parse_with_orders(self, trades_text: str, orders_text: str | None) -> ParseResult:
        headers, rows = self.read_csv(trades_text)
        if not rows:
            return self.parse_rows(headers, rows)

        pre_warnings: list[str] = []
        orders: list[_Order] = []
        if orders_text:
            order_headers, order_rows = self.read_csv(orders_text)
            if not order_rows:
                pre_warnings.append("Orders CSV was empty - SL/TP data will not be available")
            elif not validate_orders_headers(order_headers):
                pre_warnings.append(
                    "Orders CSV is missing required columns - SL/TP data will not be available"
                )
            else:
                orders = self._load_orders(order_rows, pre_warnings)
        else:
            pre_warnings.append("No Orders CSV provided - SL/TP data will not be available")

        result = self.parse_rows(headers, rows, orders or None)

        warnings = [*pre_warnings, *result.warnings]
        if orders and result.success:
            with_sl = sum(1 for t in result.trades if t.stop_loss is not None)
            with_tp = sum(1 for t in result.trades if t.take_profit is not None)
            warnings.append(
                f"Found SL levels for {with_sl} trades, TP levels for {with_tp} trades"
            )
        return result.model_copy(update={"warnings": warnings})
