"""Tests for signalcore.config — environment loading and JSON strategy settings."""

import json
import os

import pytest

from signalcore.config import BotSettings, load_config, load_settings
from signalcore.models.component_config import (
    BacktestConfig,
    CoordinatorConfig,
    DirectionConfirmationConfig,
)


_ENV_VARS = [
    "SYMBOL",
    "LOG_LEVEL",
    "INITIAL_BALANCE",
    "POSITION_SIZE_USDT",
    "LEVERAGE",
    "TAKER_FEE",
    "MIN_SCORE_RATIO",
    "MIN_AVG_CONFIDENCE",
    "SETTINGS_PATH",
    "API_PORT",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure SignalCore env vars are cleared between tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield
    # load_dotenv writes straight to os.environ
    for var in _ENV_VARS:
        os.environ.pop(var, None)


class TestLoadConfig:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SYMBOL", "BTCUSDT")
        cfg = load_config(str(tmp_path / "missing.env"))
        assert cfg.symbol == "BTCUSDT"
        assert cfg.log_level == "INFO"
        assert cfg.initial_balance == 1000.0
        assert cfg.position_size_usdt == 100.0
        assert cfg.leverage == 1.0
        assert cfg.taker_fee == 0.00055
        assert cfg.min_score_ratio == 0.55
        assert cfg.min_avg_confidence == 45.0
        assert cfg.settings_path == "settings.json"
        assert cfg.api_port == 8080

    def test_missing_symbol(self, tmp_path):
        # non-existent env_path so load_dotenv doesn't re-populate from a real .env
        with pytest.raises(ValueError, match="SYMBOL"):
            load_config(str(tmp_path / "missing.env"))

    def test_invalid_number(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SYMBOL", "BTCUSDT")
        monkeypatch.setenv("LEVERAGE", "ten")
        with pytest.raises(ValueError, match="LEVERAGE"):
            load_config(str(tmp_path / "missing.env"))

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SYMBOL=ETHUSDT\nMIN_AVG_CONFIDENCE=60\n")
        cfg = load_config(str(env_file))
        assert cfg.symbol == "ETHUSDT"
        assert cfg.min_avg_confidence == 60.0


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_settings(tmp_path / "nope.json") == BotSettings()

    def test_camel_case_sections(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "coordinator": {"minScoreRatio": 0.6, "blindZoneMinSignals": 3},
            "entryConfirmation": {"long": {"tolerancePercent": 0.2}},
            "backtest": {"takeProfitPercents": [1, 2, 3], "warmupBars": 100},
            "weightSystem": {"rsiWeights": {"enabled": False}},
        }))
        settings = load_settings(path)
        assert settings.coordinator.min_score_ratio == 0.6
        assert settings.coordinator.blind_zone_min_signals == 3
        assert settings.entry_confirmation.long.tolerance_percent == 0.2
        assert settings.entry_confirmation.short == DirectionConfirmationConfig()
        assert settings.backtest.take_profit_percents == (1.0, 2.0, 3.0)
        assert settings.backtest.warmup_bars == 100
        assert settings.weight_system.rsi_weights.enabled is False

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid settings file"):
            load_settings(path)

    def test_invalid_field(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"coordinator": {"minScoreRatio": 2}}))
        with pytest.raises(ValueError, match="min_score_ratio"):
            load_settings(path)

    def test_with_env_overlays(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SYMBOL", "SOLUSDT")
        monkeypatch.setenv("MIN_SCORE_RATIO", "0.7")
        monkeypatch.setenv("LEVERAGE", "3")
        cfg = load_config(str(tmp_path / "missing.env"))
        settings = BotSettings().with_env(cfg)
        assert settings.backtest.symbol == "SOLUSDT"
        assert settings.backtest.leverage == 3.0
        assert settings.coordinator.min_score_ratio == 0.7


class TestComponentConfig:
    def test_take_profits_must_ascend(self):
        with pytest.raises(ValueError, match="take_profit_percents"):
            BacktestConfig.from_dict({"takeProfitPercents": [3, 2, 4]})

    def test_rejects_bool_as_number(self):
        with pytest.raises(ValueError, match="min_avg_confidence"):
            CoordinatorConfig.from_dict({"min_avg_confidence": True})

    def test_rejects_non_bool_flag(self):
        with pytest.raises(ValueError, match="enabled"):
            DirectionConfirmationConfig.from_dict({"enabled": "yes"})
