"""Property test: P&L sign symmetry.

Flipping the direction or swapping entry and exit negates realized P&L;
doing both gives the original value back.  Holds for listed, unlisted,
futures and forex symbols alike.
"""

from decimal import Decimal

from hypothesis import given, settings, strategies as st

from trade_ledger.core.enums import Direction, InstrumentType
from trade_ledger.ledger.pnl import compute_close, compute_pnl, evaluate_exit_triggers

SYMBOLS = st.sampled_from([
    ("ES", InstrumentType.FUTURES),
    ("MNQ", InstrumentType.FUTURES),
    ("ZZZ", InstrumentType.FUTURES),
    ("EUR/USD", InstrumentType.FOREX),
    ("USDJPY", InstrumentType.FOREX),
    ("XYZABC", InstrumentType.FOREX),
])
PRICES = st.decimals(min_value=Decimal("0.0001"), max_value=Decimal("100000"), places=4)
QTYS = st.decimals(min_value=Decimal("0"), max_value=Decimal("500"), places=2)
DIRECTIONS = st.sampled_from(list(Direction))


@given(sym=SYMBOLS, entry=PRICES, exit_=PRICES, qty=QTYS, direction=DIRECTIONS)
@settings(max_examples=200)
def test_flip_direction_negates(sym, entry, exit_, qty, direction):
    symbol, kind = sym
    a = compute_pnl(symbol, kind, entry, exit_, qty, direction)
    b = compute_pnl(symbol, kind, entry, exit_, qty, direction.flipped())
    assert a == -b


@given(sym=SYMBOLS, entry=PRICES, exit_=PRICES, qty=QTYS, direction=DIRECTIONS)
@settings(max_examples=200)
def test_swap_prices_negates(sym, entry, exit_, qty, direction):
    symbol, kind = sym
    a = compute_pnl(symbol, kind, entry, exit_, qty, direction)
    b = compute_pnl(symbol, kind, exit_, entry, qty, direction)
    assert a == -b


@given(sym=SYMBOLS, entry=PRICES, exit_=PRICES, qty=QTYS, direction=DIRECTIONS)
@settings(max_examples=200)
def test_flip_and_swap_is_identity(sym, entry, exit_, qty, direction):
    symbol, kind = sym
    a = compute_pnl(symbol, kind, entry, exit_, qty, direction)
    b = compute_pnl(symbol, kind, exit_, entry, qty, direction.flipped())
    assert a == b


@given(
    sym=SYMBOLS,
    entry=PRICES,
    exit_=PRICES,
    qty=QTYS,
    direction=DIRECTIONS,
    fees=st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=2),
)
@settings(max_examples=200)
def test_net_is_realized_minus_fees(sym, entry, exit_, qty, direction, fees):
    symbol, kind = sym
    closed = compute_close(
        symbol=symbol,
        instrument_type=kind,
        direction=direction,
        entry_price=entry,
        exit_price=exit_,
        quantity=qty,
        fees=fees,
    )
    assert closed.net_pnl == closed.realized_pnl - fees
    assert closed.net_pnl.as_tuple().exponent == -2


@given(
    entry=PRICES,
    exit_=PRICES,
    stop=st.none() | PRICES,
    target=st.none() | PRICES,
    direction=DIRECTIONS,
)
@settings(max_examples=200)
def test_trigger_mirror(entry, exit_, stop, target, direction):
    """Negating every price and flipping direction mirrors the triggers."""
    a = evaluate_exit_triggers(direction, exit_, stop, target)
    b = evaluate_exit_triggers(
        direction.flipped(),
        -exit_,
        -stop if stop is not None else None,
        -target if target is not None else None,
    )
    assert (a.stop_loss_hit, a.take_profit_hit) == (b.stop_loss_hit, b.take_profit_hit)
    if stop is None:
        assert not a.stop_loss_hit
    if target is None:
        assert not a.take_profit_hit
