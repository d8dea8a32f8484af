"""Test structured logging setup and request id propagation."""

import json
import logging

import pytest

from trade_ledger.observability import (
    get_logger,
    get_request_id,
    new_request_id,
    set_request_id,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestRequestId:
    def test_set_and_get(self):
        set_request_id("req-1")
        assert get_request_id() == "req-1"

    def test_new_request_id(self):
        rid = new_request_id()
        assert rid and get_request_id() == rid


class TestSetupLogging:
    def test_stdlib_records_rendered_as_json(self, capsys):
        setup_logging("INFO", "json")
        set_request_id("req-42")
        logging.getLogger("trade_ledger.test").info("Trade created: id=%s", 7)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Trade created: id=7"
        assert record["request_id"] == "req-42"
        assert record["level"] == "info"

    def test_level_filter(self, capsys):
        setup_logging("WARNING", "console")
        logging.getLogger("trade_ledger.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_get_logger(self):
        assert get_logger("trade_ledger.test") is not None
