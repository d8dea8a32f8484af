"""Test the click command line."""

import json
import logging

import pytest
from click.testing import CliRunner

from trade_ledger.cli import main


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def _invoke(*args):
    return CliRunner().invoke(main, ["--log-level", "ERROR", *args])


@pytest.fixture
def files(tmp_path, projectx_trades_csv, projectx_orders_csv, mt4_csv):
    paths = {}
    for name, text in (
        ("trades", projectx_trades_csv),
        ("orders", projectx_orders_csv),
        ("mt4", mt4_csv),
        ("junk", "a,b\n1,2\n"),
    ):
        path = tmp_path / f"{name}.csv"
        path.write_text(text, encoding="utf-8")
        paths[name] = str(path)
    return paths


class TestDetect:
    def test_projectx(self, files):
        result = _invoke("detect", files["trades"])
        assert result.exit_code == 0
        assert result.output.strip() == "projectx"

    def test_unknown(self, files):
        result = _invoke("detect", files["junk"])
        assert result.exit_code == 1
        assert "Unrecognized export format" in result.output


class TestParse:
    def test_mt4(self, files):
        result = _invoke("parse", "mt4", files["mt4"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["parsed_rows"] == 2
        assert data["skipped_rows"] == 1

    def test_projectx_with_orders(self, files):
        result = _invoke("parse", "projectx", files["trades"], "--orders", files["orders"])
        data = json.loads(result.output)
        assert "Found SL levels for 2 trades, TP levels for 1 trades" in data["warnings"]

    def test_failure_exit_code(self, files):
        result = _invoke("parse", "mt5", files["junk"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert data["errors"][0]["row"] == 0

    def test_manual_platform(self, files):
        result = _invoke("parse", "other", files["junk"])
        assert result.exit_code == 1
        assert "map columns manually" in result.output


class TestStats:
    def test_projectx(self, files):
        result = _invoke("stats", files["trades"], "--platform", "projectx", "--orders", files["orders"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["import"]["imported"] == 2
        assert data["stats"]["total_trades"] == 2
        assert data["stats"]["wins"] == 1
        assert data["stats"]["losses"] == 1
        assert data["stats"]["total_pnl"] == "-160.64"

    def test_threshold_option(self, files):
        result = _invoke("stats", files["trades"], "--platform", "projectx", "--threshold", "50")
        data = json.loads(result.output)
        assert data["stats"]["breakevens"] == 1
        assert data["stats"]["breakeven_threshold"] == "50"

    def test_bad_threshold(self, files):
        result = _invoke("stats", files["trades"], "--platform", "projectx", "--threshold", "lots")
        assert result.exit_code == 2
