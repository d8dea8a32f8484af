"""Test the static instrument reference table."""

from decimal import Decimal

import pytest

from trade_ledger.core.enums import InstrumentType
from trade_ledger.core.instruments import (
    DEFAULT_PIP_SIZE,
    DEFAULT_PIP_VALUE,
    get_point_value,
    get_spec,
    get_tick_size,
    infer_instrument_type,
    known_symbols,
    normalize_fx_symbol,
    resolve,
)


class TestFuturesResolution:
    @pytest.mark.parametrize(
        "symbol,multiplier",
        [("ES", "50"), ("NQ", "20"), ("MES", "5"), ("MNQ", "2"), ("CL", "1000")],
    )
    def test_point_values(self, symbol, multiplier):
        res = resolve(symbol, InstrumentType.FUTURES)
        assert res.multiplier == Decimal(multiplier)
        assert res.is_pip_based is False
        assert res.known

    def test_lookup_is_case_insensitive(self):
        assert resolve("es", InstrumentType.FUTURES).multiplier == Decimal("50")

    def test_unknown_futures_falls_back_to_one(self):
        res = resolve("ZZZ", InstrumentType.FUTURES)
        assert res.multiplier == Decimal("1")
        assert res.spec is None
        assert not res.known

    def test_tick_size(self):
        assert get_tick_size("ES", InstrumentType.FUTURES) == Decimal("0.25")
        assert get_tick_size("CL", InstrumentType.FUTURES) == Decimal("0.01")


class TestForexResolution:
    @pytest.mark.parametrize("symbol", ["EUR/USD", "EURUSD", "EUR_USD", "eurusd.m", "EURUSDpro"])
    def test_broker_spellings(self, symbol):
        res = resolve(symbol, InstrumentType.FOREX)
        assert res.is_pip_based
        assert res.pip_size == Decimal("0.0001")
        assert res.multiplier == Decimal("10")
        assert res.spec is not None and res.spec.symbol == "EUR/USD"

    def test_jpy_pip_size(self):
        res = resolve("USDJPY", InstrumentType.FOREX)
        assert res.pip_size == Decimal("0.01")

    def test_unknown_forex_uses_standard_lot(self):
        res = resolve("XYZABC", InstrumentType.FOREX)
        assert res.pip_size == DEFAULT_PIP_SIZE
        assert res.multiplier == DEFAULT_PIP_VALUE
        assert not res.known

    def test_normalize(self):
        assert normalize_fx_symbol("gbp-usd") == "GBP/USD"
        assert normalize_fx_symbol("ES") is None
        assert normalize_fx_symbol("ABCDEF") is None


class TestInference:
    def test_futures_root_wins(self):
        assert infer_instrument_type("ES") == InstrumentType.FUTURES
        assert infer_instrument_type("6E") == InstrumentType.FUTURES

    def test_currency_pair(self):
        assert infer_instrument_type("EURUSD") == InstrumentType.FOREX

    def test_unknown_defaults_to_futures(self):
        assert infer_instrument_type("US30") == InstrumentType.FUTURES

    def test_resolve_without_hint(self):
        assert resolve("NQ").multiplier == Decimal("20")
        assert resolve("GBPUSD").is_pip_based


class TestHelpers:
    def test_get_point_value(self):
        assert get_point_value("MES", InstrumentType.FUTURES) == Decimal("5")

    def test_get_spec_respects_hint(self):
        assert get_spec("ES", InstrumentType.FOREX) is None
        assert get_spec("ES", InstrumentType.FUTURES) is not None

    def test_known_symbols(self):
        futures = known_symbols(InstrumentType.FUTURES)
        forex = known_symbols(InstrumentType.FOREX)
        assert "ES" in futures
        assert "EUR/USD" in forex
        assert len(forex) == 28
        assert known_symbols() == futures + forex
