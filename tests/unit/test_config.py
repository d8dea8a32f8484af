"""Test configuration loading."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from trade_ledger.core.config import Settings, load_settings
from trade_ledger.core.enums import ExitTieBreak, TradingPlatform
from trade_ledger.core.errors import ConfigError


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.ledger.default_breakeven_threshold == Decimal("3.00")
        assert s.ledger.max_batch_rows == 1000
        assert s.ledger.max_bulk_delete == 100
        assert s.ledger.exit_tie_break is ExitTieBreak.NONE
        assert s.importer.orders_match_window_seconds == 60
        assert s.observability.log_format == "json"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TRADE_LEDGER_LEDGER__MAX_BATCH_ROWS", "25")
        monkeypatch.setenv("TRADE_LEDGER_POSTGRES_URL", "postgresql+asyncpg://x@db/ledger")
        s = load_settings()
        assert s.ledger.max_batch_rows == 25
        assert s.postgres_url == "postgresql+asyncpg://x@db/ledger"


class TestLoadSettings:
    def test_from_toml(self, tmp_path):
        path = tmp_path / "ledger.toml"
        path.write_text(
            "[ledger]\n"
            'default_breakeven_threshold = "5.00"\n'
            'exit_tie_break = "stop_loss"\n'
            "\n"
            "[importer]\n"
            'default_platform = "projectx"\n'
            "orders_match_window_seconds = 120\n"
        )
        s = load_settings(path)
        assert s.ledger.default_breakeven_threshold == Decimal("5.00")
        assert s.ledger.exit_tie_break is ExitTieBreak.STOP_LOSS
        assert s.importer.default_platform is TradingPlatform.PROJECTX
        assert s.importer.orders_match_window_seconds == 120

    def test_missing_file_uses_defaults(self, tmp_path):
        s = load_settings(tmp_path / "absent.toml")
        assert s.ledger.max_batch_rows == 1000

    def test_overrides(self):
        s = load_settings(overrides={"observability": {"log_level": "DEBUG"}})
        assert s.observability.log_level == "DEBUG"

    def test_negative_threshold_rejected(self):
        with pytest.raises(ConfigError):
            load_settings(overrides={"ledger": {"default_breakeven_threshold": "-1"}})

    def test_batch_rows_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            load_settings(overrides={"ledger": {"max_batch_rows": 0}})
