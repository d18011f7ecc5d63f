"""SignalCore — application configuration.

Loads .env variables into a typed config object and the JSON strategy
settings into per-component config dataclasses.  Both are validated on
startup.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import load_dotenv

from signalcore.models.component_config import (
    BacktestConfig,
    CoordinatorConfig,
    DailyLevelConfig,
    EntryConfirmationConfig,
    WeightSystemConfig,
)

logger = logging.getLogger("signalcore.config")

_REQUIRED_VARS = [
    "SYMBOL",
]


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    symbol: str
    log_level: str
    initial_balance: float
    position_size_usdt: float
    leverage: float
    taker_fee: float
    min_score_ratio: float
    min_avg_confidence: float
    settings_path: str
    api_port: int


def _env_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Config(
        symbol=os.environ["SYMBOL"],
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        initial_balance=_env_float("INITIAL_BALANCE", "1000"),
        position_size_usdt=_env_float("POSITION_SIZE_USDT", "100"),
        leverage=_env_float("LEVERAGE", "1"),
        taker_fee=_env_float("TAKER_FEE", "0.00055"),
        min_score_ratio=_env_float("MIN_SCORE_RATIO", "0.55"),
        min_avg_confidence=_env_float("MIN_AVG_CONFIDENCE", "45"),
        settings_path=os.environ.get("SETTINGS_PATH", "settings.json"),
        api_port=int(_env_float("API_PORT", "8080")),
    )


# ── Strategy settings (JSON) ─────────────────────────────────────────────


@dataclass(frozen=True)
class BotSettings:
    """Every component config, validated and with defaults applied."""

    weight_system: WeightSystemConfig = field(default_factory=WeightSystemConfig)
    entry_confirmation: EntryConfirmationConfig = field(
        default_factory=EntryConfirmationConfig
    )
    daily_level: DailyLevelConfig = field(default_factory=DailyLevelConfig)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "BotSettings":
        def section(name: str) -> dict:
            value = data.get(name, {})
            if not isinstance(value, dict):
                raise ValueError(f"Missing or invalid: {name} (object)")
            return value

        return cls(
            weight_system=WeightSystemConfig.from_dict(section("weightSystem")),
            entry_confirmation=EntryConfirmationConfig.from_dict(
                section("entryConfirmation")
            ),
            daily_level=DailyLevelConfig.from_dict(section("dailyLevel")),
            coordinator=CoordinatorConfig.from_dict(section("coordinator")),
            backtest=BacktestConfig.from_dict(section("backtest")),
        )

    def with_env(self, config: Config) -> "BotSettings":
        """Overlay the environment-level values from *config*."""
        return replace(
            self,
            coordinator=replace(
                self.coordinator,
                min_score_ratio=config.min_score_ratio,
                min_avg_confidence=config.min_avg_confidence,
            ),
            backtest=replace(
                self.backtest,
                symbol=config.symbol,
                initial_balance=config.initial_balance,
                position_size_usdt=config.position_size_usdt,
                leverage=config.leverage,
                taker_fee=config.taker_fee,
            ),
        )


def load_settings(path: str | Path | None = None) -> BotSettings:
    """Read strategy settings from a JSON file.

    A missing file yields all defaults.  Raises ``ValueError`` on malformed
    JSON or an invalid field.
    """
    if path is None or not Path(path).exists():
        logger.info("Settings file %s not found, using defaults", path)
        return BotSettings()

    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid settings file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Invalid settings file {path}: top level must be an object")
    return BotSettings.from_dict(data)
