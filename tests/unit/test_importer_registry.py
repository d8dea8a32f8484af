"""Test the platform parser registry and header detection."""

import pytest

from trade_ledger.core.enums import TradingPlatform
from trade_ledger.core.interfaces import ICSVParser
from trade_ledger.importers import (
    MT4Parser,
    ProjectXParser,
    detect_platform,
    get_parser,
    supported_platforms,
)
from trade_ledger.importers.base import BaseCSVParser


class TestRegistry:
    def test_known_parsers(self):
        assert isinstance(get_parser("mt4"), MT4Parser)
        assert isinstance(get_parser(TradingPlatform.PROJECTX), ProjectXParser)

    @pytest.mark.parametrize("platform", ["ninjatrader", "other"])
    def test_manual_mapping_platforms(self, platform):
        assert get_parser(platform) is None

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            get_parser("cTrader")

    def test_match_window_gives_fresh_parser(self):
        parser = get_parser("projectx", match_window_seconds=120)
        assert isinstance(parser, ProjectXParser)
        assert parser is not get_parser("projectx")
        assert parser.match_window.total_seconds() == 120

    @pytest.mark.parametrize("platform", ["mt4", "mt5", "projectx"])
    def test_parsers_satisfy_protocol(self, platform):
        assert isinstance(get_parser(platform), ICSVParser)

    def test_supported_platforms(self):
        values = [p["value"] for p in supported_platforms()]
        assert values == ["mt4", "mt5", "projectx"]
        assert supported_platforms()[0]["label"] == "MetaTrader 4"


class TestDetect:
    def test_each_fixture(self, projectx_trades_csv, mt4_csv, mt5_csv):
        assert detect_platform(BaseCSVParser.headers_of(projectx_trades_csv)) is TradingPlatform.PROJECTX
        assert detect_platform(BaseCSVParser.headers_of(mt4_csv)) is TradingPlatform.MT4
        assert detect_platform(BaseCSVParser.headers_of(mt5_csv)) is TradingPlatform.MT5

    def test_unknown_headers(self):
        assert detect_platform(["Date", "Symbol", "Qty"]) is None
