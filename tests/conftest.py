"""Shared fixtures for the trade-ledger test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest

from trade_ledger.core.enums import (
    Direction,
    ImportSource,
    InstrumentType,
    TradeStatus,
)
from trade_ledger.core.models import Trade, TradeDraft
from trade_ledger.ledger.service import StaticSettingsProvider, TradeLedger
from trade_ledger.storage.memory import InMemoryTradeStore

T0 = datetime(2025, 11, 14, 14, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_draft(**overrides: Any) -> TradeDraft:
    """ES long 5000 -> 5010, one contract, closed."""
    fields: dict[str, Any] = {
        "symbol": "ES",
        "instrument_type": InstrumentType.FUTURES,
        "direction": Direction.LONG,
        "entry_price": Decimal("5000"),
        "entry_time": T0,
        "quantity": Decimal("1"),
        "exit_price": Decimal("5010"),
        "exit_time": T0 + timedelta(minutes=30),
    }
    fields.update(overrides)
    return TradeDraft(**fields)


def make_trade(net_pnl: Decimal | str | None, **overrides: Any) -> Trade:
    """A stored closed trade with a given net P&L (not recomputed)."""
    net = Decimal(str(net_pnl)) if net_pnl is not None else None
    fields: dict[str, Any] = {
        "id": 1,
        "user_id": 1,
        "symbol": "ES",
        "instrument_type": InstrumentType.FUTURES,
        "direction": Direction.LONG,
        "entry_price": Decimal("5000"),
        "entry_time": T0,
        "quantity": Decimal("1"),
        "exit_price": Decimal("5010"),
        "exit_time": T0 + timedelta(minutes=30),
        "realized_pnl": net,
        "net_pnl": net,
        "status": TradeStatus.CLOSED if net is not None else TradeStatus.OPEN,
        "import_source": ImportSource.MANUAL,
    }
    fields.update(overrides)
    return Trade(**fields)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

@pytest.fixture
def store() -> InMemoryTradeStore:
    return InMemoryTradeStore()


@pytest.fixture
def ledger(store: InMemoryTradeStore) -> TradeLedger:
    return TradeLedger(store, StaticSettingsProvider(Decimal("3.00")))


# ---------------------------------------------------------------------------
# Platform exports
# ---------------------------------------------------------------------------

@pytest.fixture
def projectx_trades_csv() -> str:
    return (
        "Id,ContractName,EnteredAt,ExitedAt,EntryPrice,ExitPrice,Fees,Commissions,PnL,Size,Type\n"
        "1001,MNQZ5,11/14/2025 16:14:10 +01:00,11/14/2025 16:20:45 +01:00,"
        "21000.00,21010.50,0.74,0.50,42.00,2,Long\n"
        "1002,ESZ5,11/14/2025 17:01:00 +01:00,11/14/2025 17:05:30 +01:00,"
        "6000.00,6004.00,1.40,,200.00,1,Short\n"
    )


@pytest.fixture
def projectx_orders_csv() -> str:
    return (
        "Id,ContractName,Status,Type,Size,Side,CreatedAt,FilledAt,StopPrice,LimitPrice,"
        "ExecutePrice,PositionDisposition,CreationDisposition\n"
        "5001,MNQZ5,Cancelled,Stop,2,Ask,11/14/2025 16:14:11 +01:00,,20990.00,,,"
        "Closing,StopLoss\n"
        "5002,MNQZ5,Filled,Limit,2,Ask,11/14/2025 16:14:11 +01:00,11/14/2025 16:20:45 +01:00,"
        ",21010.50,21010.50,Closing,TakeProfit\n"
        "5003,ESZ5,Filled,Stop,1,Bid,11/14/2025 17:01:01 +01:00,11/14/2025 17:05:30 +01:00,"
        "6004.00,,6004.00,Closing,StopLoss\n"
    )


@pytest.fixture
def mt4_csv() -> str:
    return (
        "Ticket,Open Time,Type,Size,Item,Price,S/L,T/P,Close Time,Close Price,"
        "Commission,Swap,Profit\n"
        "9001,2025.03.03 09:15,buy,1.00,eurusd,1.08500,1.08300,1.08800,"
        "2025.03.03 11:40,1.08800,-7.00,0.00,300.00\n"
        "9002,2025.03.04 10:00:30,sell,0.50,USDJPY,150.250,0.000,0.000,"
        "2025.03.04 15:00:00,150.050,-3.50,-1.20,66.56\n"
        "9003,2025.03.05 00:00,balance,,,,,,,,,,1000.00\n"
    )


@pytest.fixture
def mt5_csv() -> str:
    return (
        "Position,Time,Type,Volume,Symbol,Price,S/L,T/P,Time,Price,Commission,Swap,Profit\n"
        "7001,2025.06.02 08:00:00,buy,0.10,GBPUSD.m,1.27000,1.26800,,"
        "2025.06.02 09:30:00,1.27250,-0.70,0.00,25.00\n"
    )
