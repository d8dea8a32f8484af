"""Test outcome classification and the statistics aggregator."""

from decimal import Decimal

import numpy as np
import pytest

from trade_ledger.core.enums import TradeOutcome, TradeStatus
from trade_ledger.ledger.stats import (
    aggregate_pnls,
    aggregate_stats,
    calculate_r_multiple,
    classify_trade,
    grouped_stats,
    sharpe_ratio,
    snapshot_to_dict,
    sortino_ratio,
)

from tests.conftest import T0, make_trade

THRESHOLD = Decimal("3.00")


def _trades(*nets):
    return [make_trade(n, id=i + 1) for i, n in enumerate(nets)]


class TestClassify:
    @pytest.mark.parametrize(
        "net,expected",
        [
            ("500", TradeOutcome.WIN),
            ("3.01", TradeOutcome.WIN),
            ("3.00", TradeOutcome.BREAKEVEN),
            ("0", TradeOutcome.BREAKEVEN),
            ("-3.00", TradeOutcome.BREAKEVEN),
            ("-3.01", TradeOutcome.LOSS),
        ],
    )
    def test_inclusive_band(self, net, expected):
        assert classify_trade(Decimal(net), THRESHOLD) is expected

    def test_zero_threshold(self):
        assert classify_trade(Decimal("0.01"), Decimal("0")) is TradeOutcome.WIN
        assert classify_trade(Decimal("0"), Decimal("0")) is TradeOutcome.BREAKEVEN


class TestAggregate:
    def test_mixed_book(self):
        snap = aggregate_stats(_trades("500", "2.00", "-1.50", "-300"), THRESHOLD)
        assert (snap.wins, snap.breakevens, snap.losses) == (1, 2, 1)
        assert snap.total_trades == 4
        assert snap.gross_profit == Decimal("500")
        assert snap.gross_loss == Decimal("300")
        assert snap.profit_factor == (Decimal(500) / Decimal(300)).quantize(Decimal("1e-8"))
        # Breakevens are left out of the win-rate denominator.
        assert snap.win_rate == Decimal("50")
        assert snap.total_pnl == Decimal("200.50")

    def test_only_breakevens_and_wins(self):
        snap = aggregate_stats(_trades("500", "2.00", "-1.50"), THRESHOLD)
        assert snap.win_rate == Decimal("100")
        assert snap.profit_factor == 0

    def test_empty(self):
        snap = aggregate_stats([], THRESHOLD)
        assert snap.total_trades == 0
        assert snap.win_rate == 0
        assert snap.profit_factor == 0
        assert snap.avg_pnl == 0
        assert snap.avg_r_multiple is None

    def test_no_losses_profit_factor_sentinel(self):
        snap = aggregate_stats(_trades("100", "200"), THRESHOLD)
        assert snap.profit_factor == 0
        assert snap.payoff_ratio == 0
        assert snap.win_rate == Decimal("100")

    def test_averages(self):
        snap = aggregate_stats(_trades("100", "300", "-50", "-150"), THRESHOLD)
        assert snap.avg_win == Decimal("200")
        assert snap.avg_loss == Decimal("100")
        assert snap.largest_win == Decimal("300")
        assert snap.largest_loss == Decimal("150")
        assert snap.avg_pnl == Decimal("50")
        assert snap.payoff_ratio == Decimal("2")
        # 0.5 * 200 - 0.5 * 100
        assert snap.expectancy == Decimal("50")

    def test_ignores_open_and_deleted(self):
        trades = _trades("100", "-100")
        trades.append(make_trade(None, id=10))
        trades.append(make_trade("999", id=11, deleted_at=T0))
        trades.append(make_trade("50", id=12, status=TradeStatus.OPEN))
        snap = aggregate_stats(trades, THRESHOLD)
        assert snap.total_trades == 2
        assert snap.total_pnl == 0

    def test_order_independent(self):
        nets = ["10.01", "-7.33", "0.10", "1234.56", "-0.99", "33.33", "-66.67"]
        forward = aggregate_stats(_trades(*nets), THRESHOLD)
        backward = aggregate_stats(_trades(*reversed(nets)), THRESHOLD)
        assert forward == backward

    def test_threshold_recorded(self):
        snap = aggregate_pnls([Decimal("1")], Decimal("0.5"))
        assert snap.breakeven_threshold == Decimal("0.5")
        assert snap.wins == 1

    def test_snapshot_to_dict(self):
        d = snapshot_to_dict(aggregate_stats(_trades("500", "-300"), THRESHOLD))
        assert d["total_trades"] == 2
        assert d["win_rate"] == "50.00000000"
        assert d["avg_r_multiple"] is None


class TestRMultiple:
    def test_dollar_risk(self):
        # Stop 5 points below an ES long: $250 at risk.
        trade = make_trade("495.50", stop_loss=Decimal("4995"))
        assert calculate_r_multiple(trade) == Decimal("495.50") / Decimal("250")

    def test_no_stop(self):
        assert calculate_r_multiple(make_trade("10")) is None

    def test_stop_at_entry(self):
        assert calculate_r_multiple(make_trade("10", stop_loss=Decimal("5000"))) is None

    def test_average_over_trades_with_stop(self):
        trades = [
            make_trade("500", id=1, stop_loss=Decimal("4995")),
            make_trade("-250", id=2, stop_loss=Decimal("4995")),
            make_trade("100", id=3),
        ]
        snap = aggregate_stats(trades, THRESHOLD)
        assert snap.avg_r_multiple == Decimal("0.5")


class TestGrouped:
    def test_by_symbol(self):
        trades = [
            make_trade("100", id=1, symbol="ES"),
            make_trade("-50", id=2, symbol="NQ"),
            make_trade("20", id=3, symbol="ES"),
        ]
        groups = grouped_stats(trades, THRESHOLD, lambda t: t.symbol)
        assert set(groups) == {"ES", "NQ"}
        assert groups["ES"].total_pnl == Decimal("120")
        assert groups["NQ"].losses == 1

    def test_none_key_skipped(self):
        trades = [make_trade("100", id=1), make_trade("5", id=2, setup_type="ORB")]
        groups = grouped_stats(trades, THRESHOLD, lambda t: t.setup_type)
        assert list(groups) == ["ORB"]


class TestRiskRatios:
    def test_too_few_samples(self):
        assert sharpe_ratio([Decimal("10")]) == 0.0
        assert sortino_ratio([]) == 0.0

    def test_flat_series(self):
        assert sharpe_ratio([5, 5, 5]) == 0.0

    def test_sharpe(self):
        assert sharpe_ratio([Decimal("10"), Decimal("-10"), Decimal("30")]) == pytest.approx(0.5)

    def test_sortino_needs_losses(self):
        assert sortino_ratio([1, 2, 3]) == 0.0

    def test_sortino(self):
        # mean 10, downside sqrt(100) = 10
        assert sortino_ratio([Decimal("10"), Decimal("-10"), Decimal("30")]) == pytest.approx(1.0)

    def test_sample_stdev_and_plain_float(self):
        pnls = [Decimal("1"), Decimal("2"), Decimal("3"), Decimal("4")]
        expected = 2.5 / float(np.std([1, 2, 3, 4], ddof=1))
        result = sharpe_ratio(pnls)
        assert type(result) is float
        assert result == pytest.approx(expected)
        assert type(sortino_ratio([Decimal("5"), Decimal("-1"), Decimal("-3")])) is float
