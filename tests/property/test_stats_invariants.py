"""Property test: statistics aggregator invariants.

For any bag of net P&L values and any non-negative threshold the
classification partitions the trades, the snapshot does not depend on
input order, and the ratios respect their zero-denominator sentinels.
"""

from decimal import Decimal

from hypothesis import given, settings, strategies as st

from trade_ledger.ledger.stats import aggregate_pnls

PNLS = st.lists(
    st.decimals(min_value=Decimal("-100000"), max_value=Decimal("100000"), places=2),
    max_size=60,
)
THRESHOLDS = st.decimals(min_value=Decimal("0"), max_value=Decimal("50"), places=2)


@given(pnls=PNLS, threshold=THRESHOLDS)
@settings(max_examples=200)
def test_outcomes_partition_trades(pnls, threshold):
    snap = aggregate_pnls(pnls, threshold)
    assert snap.wins + snap.losses + snap.breakevens == snap.total_trades == len(pnls)
    assert snap.total_pnl == sum(pnls, Decimal("0"))
    assert snap.gross_profit >= 0
    assert snap.gross_loss >= 0


@given(pnls=PNLS, threshold=THRESHOLDS, data=st.data())
@settings(max_examples=200)
def test_order_independent(pnls, threshold, data):
    shuffled = data.draw(st.permutations(pnls))
    assert aggregate_pnls(pnls, threshold) == aggregate_pnls(shuffled, threshold)


@given(pnls=PNLS, threshold=THRESHOLDS)
@settings(max_examples=200)
def test_ratio_bounds(pnls, threshold):
    snap = aggregate_pnls(pnls, threshold)
    assert Decimal("0") <= snap.win_rate <= Decimal("100")
    if snap.losses == 0:
        assert snap.profit_factor == 0
    else:
        assert snap.profit_factor >= 0
    if snap.wins + snap.losses == 0:
        assert snap.win_rate == 0


@given(pnls=PNLS, threshold=THRESHOLDS)
@settings(max_examples=100)
def test_raising_threshold_never_adds_wins(pnls, threshold):
    low = aggregate_pnls(pnls, threshold)
    high = aggregate_pnls(pnls, threshold + Decimal("10"))
    assert high.wins <= low.wins
    assert high.losses <= low.losses
    assert high.breakevens >= low.breakevens
