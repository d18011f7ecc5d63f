"""Component configuration dataclasses.

One frozen, fully specified config type per component.  Defaults are
applied once in ``from_dict``; invalid values raise ``ValueError`` naming
the offending field.  Keys are accepted in snake_case or camelCase.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _lookup(data: dict, name: str, default: Any) -> Any:
    if name in data:
        return data[name]
    return data.get(_camel(name), default)


def _number(
    data: dict,
    name: str,
    default: float,
    lo: Optional[float] = None,
    hi: Optional[float] = None,
    label: Optional[str] = None,
) -> float:
    """Read a numeric field and check it against ``[lo, hi]``."""
    value = _lookup(data, name, default)
    label = label or name
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Missing or invalid: {label}")
    if (lo is not None and value < lo) or (hi is not None and value > hi):
        raise ValueError(f"Missing or invalid: {label}")
    return float(value)


def _flag(data: dict, name: str, default: bool) -> bool:
    value = _lookup(data, name, default)
    if not isinstance(value, bool):
        raise ValueError(f"Missing or invalid: {name} (true/false)")
    return value


def _section(data: dict, name: str) -> dict:
    value = _lookup(data, name, {})
    if not isinstance(value, dict):
        raise ValueError(f"Missing or invalid: {name} (object)")
    return value


# ── Weight system ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RSIWeightConfig:
    enabled: bool = True
    extreme_bonus: float = 0.20
    strong_bonus: float = 0.15
    moderate_bonus: float = 0.10
    neutral_zone_min: float = 40.0
    neutral_zone_max: float = 60.0
    slight_penalty: float = 0.05
    moderate_penalty: float = 0.10
    strong_penalty: float = 0.15

    @classmethod
    def from_dict(cls, data: dict) -> "RSIWeightConfig":
        cfg = cls(
            enabled=_flag(data, "enabled", True),
            extreme_bonus=_number(data, "extreme_bonus", 0.20, 0.0, 1.0),
            strong_bonus=_number(data, "strong_bonus", 0.15, 0.0, 1.0),
            moderate_bonus=_number(data, "moderate_bonus", 0.10, 0.0, 1.0),
            neutral_zone_min=_number(data, "neutral_zone_min", 40.0, 0.0, 100.0),
            neutral_zone_max=_number(data, "neutral_zone_max", 60.0, 0.0, 100.0),
            slight_penalty=_number(data, "slight_penalty", 0.05, 0.0, 1.0),
            moderate_penalty=_number(data, "moderate_penalty", 0.10, 0.0, 1.0),
            strong_penalty=_number(data, "strong_penalty", 0.15, 0.0, 1.0),
        )
        if cfg.neutral_zone_min > cfg.neutral_zone_max:
            raise ValueError("Missing or invalid: neutral_zone_min must be <= neutral_zone_max")
        return cfg


@dataclass(frozen=True)
class VolumeWeightConfig:
    enabled: bool = True
    very_high_bonus: float = 0.10
    high_bonus: float = 0.05
    low_penalty: float = 0.05
    very_low_penalty: float = 0.10

    @classmethod
    def from_dict(cls, data: dict) -> "VolumeWeightConfig":
        return cls(
            enabled=_flag(data, "enabled", True),
            very_high_bonus=_number(data, "very_high_bonus", 0.10, 0.0, 1.0),
            high_bonus=_number(data, "high_bonus", 0.05, 0.0, 1.0),
            low_penalty=_number(data, "low_penalty", 0.05, 0.0, 1.0),
            very_low_penalty=_number(data, "very_low_penalty", 0.10, 0.0, 1.0),
        )


@dataclass(frozen=True)
class LevelStrengthWeightConfig:
    enabled: bool = True
    strong_level_bonus: float = 0.40
    medium_level_bonus: float = 0.20
    min_touches_for_strong: int = 3
    min_touches_for_medium: int = 2

    @classmethod
    def from_dict(cls, data: dict) -> "LevelStrengthWeightConfig":
        cfg = cls(
            enabled=_flag(data, "enabled", True),
            strong_level_bonus=_number(data, "strong_level_bonus", 0.40, 0.0, 1.0),
            medium_level_bonus=_number(data, "medium_level_bonus", 0.20, 0.0, 1.0),
            min_touches_for_strong=int(_number(data, "min_touches_for_strong", 3, 1)),
            min_touches_for_medium=int(_number(data, "min_touches_for_medium", 2, 1)),
        )
        if cfg.min_touches_for_medium > cfg.min_touches_for_strong:
            raise ValueError(
                "Missing or invalid: min_touches_for_medium must be <= min_touches_for_strong"
            )
        return cfg


@dataclass(frozen=True)
class WeightSystemConfig:
    """Confidence modifiers applied on top of a strategy's base confidence."""

    enabled: bool = True
    rsi_weights: RSIWeightConfig = field(default_factory=RSIWeightConfig)
    volume_weights: VolumeWeightConfig = field(default_factory=VolumeWeightConfig)
    level_strength_weights: LevelStrengthWeightConfig = field(
        default_factory=LevelStrengthWeightConfig
    )
    confidence_floor: float = 10.0

    @classmethod
    def from_dict(cls, data: dict) -> "WeightSystemConfig":
        return cls(
            enabled=_flag(data, "enabled", True),
            rsi_weights=RSIWeightConfig.from_dict(_section(data, "rsi_weights")),
            volume_weights=VolumeWeightConfig.from_dict(_section(data, "volume_weights")),
            level_strength_weights=LevelStrengthWeightConfig.from_dict(
                _section(data, "level_strength_weights")
            ),
            confidence_floor=_number(data, "confidence_floor", 10.0, 0.0, 100.0),
        )


# ── Entry confirmation ───────────────────────────────────────────────────


@dataclass(frozen=True)
class DirectionConfirmationConfig:
    """Confirmation rules for one direction."""

    enabled: bool = True
    expiry_seconds: float = 120.0
    tolerance_percent: float = 0.05
    min_bounce_percent: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "DirectionConfirmationConfig":
        return cls(
            enabled=_flag(data, "enabled", True),
            expiry_seconds=_number(
                data, "expiry_seconds", 120.0, 1.0, label="expiry_seconds (> 0)"
            ),
            tolerance_percent=_number(
                data, "tolerance_percent", 0.05, 0.0, 100.0,
                label="tolerance_percent (0-100)",
            ),
            min_bounce_percent=_number(
                data, "min_bounce_percent", 0.0, 0.0, 100.0,
                label="min_bounce_percent (0-100)",
            ),
        )


@dataclass(frozen=True)
class EntryConfirmationConfig:
    long: DirectionConfirmationConfig = field(default_factory=DirectionConfirmationConfig)
    short: DirectionConfirmationConfig = field(default_factory=DirectionConfirmationConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "EntryConfirmationConfig":
        return cls(
            long=DirectionConfirmationConfig.from_dict(_section(data, "long")),
            short=DirectionConfirmationConfig.from_dict(_section(data, "short")),
        )


# ── Daily level / retest ─────────────────────────────────────────────────


@dataclass(frozen=True)
class DailyLevelConfig:
    """Breakout-and-retest parameters around the daily high/low."""

    lookback_bars: int = 288  # one day of 5m bars
    retest_threshold: float = 0.99
    min_breakout_strength: float = 0.002
    retest_timeout_bars: int = 288
    min_volume_ratio: float = 1.0
    local_high_low_bars: int = 10
    tight_stop_buffer_percent: float = 0.1

    @classmethod
    def from_dict(cls, data: dict) -> "DailyLevelConfig":
        return cls(
            lookback_bars=int(_number(data, "lookback_bars", 288, 2)),
            retest_threshold=_number(
                data, "retest_threshold", 0.99, 0.5, 1.0,
                label="retest_threshold (0.5-1.0)",
            ),
            min_breakout_strength=_number(data, "min_breakout_strength", 0.002, 0.0, 1.0),
            retest_timeout_bars=int(_number(data, "retest_timeout_bars", 288, 1)),
            min_volume_ratio=_number(data, "min_volume_ratio", 1.0, 0.0),
            local_high_low_bars=int(_number(data, "local_high_low_bars", 10, 1)),
            tight_stop_buffer_percent=_number(
                data, "tight_stop_buffer_percent", 0.1, 0.0, 100.0
            ),
        )


# ── Coordinator ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CoordinatorConfig:
    """Aggregation thresholds for the strategy coordinator."""

    min_score_ratio: float = 0.55
    min_avg_confidence: float = 45.0
    blind_zone_min_signals: int = 5
    blind_zone_penalty: float = 0.85
    confidence_floor: float = 10.0

    @classmethod
    def from_dict(cls, data: dict) -> "CoordinatorConfig":
        return cls(
            min_score_ratio=_number(
                data, "min_score_ratio", 0.55, 0.0, 1.0, label="min_score_ratio (0.0-1.0)"
            ),
            min_avg_confidence=_number(
                data, "min_avg_confidence", 45.0, 0.0, 100.0,
                label="min_avg_confidence (0-100)",
            ),
            blind_zone_min_signals=int(_number(data, "blind_zone_min_signals", 5, 0)),
            blind_zone_penalty=_number(
                data, "blind_zone_penalty", 0.85, 0.0, 1.0,
                label="blind_zone_penalty (0.0-1.0)",
            ),
            confidence_floor=_number(data, "confidence_floor", 10.0, 0.0, 100.0),
        )


# ── Backtest ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BacktestConfig:
    """Replay parameters.  Percent fields are whole percents (1.5 = 1.5 %)."""

    symbol: str = "BTCUSDT"
    initial_balance: float = 1000.0
    position_size_usdt: float = 100.0
    leverage: float = 1.0
    taker_fee: float = 0.00055
    min_confidence: float = 65.0
    stop_loss_percent: float = 1.5
    take_profit_percents: tuple[float, float, float] = (2.0, 3.0, 4.0)
    warmup_bars: int = 200
    window_bars: int = 200
    min_balance_ratio: float = 0.5
    use_entry_confirmation: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "BacktestConfig":
        symbol = _lookup(data, "symbol", "BTCUSDT")
        if not isinstance(symbol, str) or not symbol:
            raise ValueError("Missing or invalid: symbol")
        tps = _lookup(data, "take_profit_percents", [2.0, 3.0, 4.0])
        if (
            not isinstance(tps, (list, tuple))
            or len(tps) != 3
            or not all(isinstance(t, (int, float)) and t > 0 for t in tps)
            or list(tps) != sorted(tps)
        ):
            raise ValueError(
                "Missing or invalid: take_profit_percents (three ascending positive numbers)"
            )
        return cls(
            symbol=symbol,
            initial_balance=_number(data, "initial_balance", 1000.0, 1e-9),
            position_size_usdt=_number(data, "position_size_usdt", 100.0, 1e-9),
            leverage=_number(data, "leverage", 1.0, 1.0, 125.0),
            taker_fee=_number(data, "taker_fee", 0.00055, 0.0, 0.1),
            min_confidence=_number(data, "min_confidence", 65.0, 0.0, 100.0),
            stop_loss_percent=_number(data, "stop_loss_percent", 1.5, 1e-9, 100.0),
            take_profit_percents=tuple(float(t) for t in tps),
            warmup_bars=int(_number(data, "warmup_bars", 200, 1)),
            window_bars=int(_number(data, "window_bars", 200, 2)),
            min_balance_ratio=_number(data, "min_balance_ratio", 0.5, 0.0, 1.0),
            use_entry_confirmation=_flag(data, "use_entry_confirmation", False),
        )
