"""Tests for the weight calculator — gradient confidence modifiers."""

import pytest

from signalcore.models.component_config import (
    LevelStrengthWeightConfig,
    WeightSystemConfig,
)
from signalcore.strategy.models import Direction
from signalcore.strategy.weights import WeightCalculator, WeightParams


def _calc(**overrides) -> WeightCalculator:
    return WeightCalculator(WeightSystemConfig(**overrides))


class TestRSIModifier:
    @pytest.mark.parametrize(
        "rsi, expected",
        [(15, 1.20), (25, 1.15), (35, 1.10), (50, 1.0), (65, 0.95), (75, 0.90), (85, 0.85)],
    )
    def test_long_bands(self, rsi, expected):
        assert _calc().get_rsi_modifier(rsi, Direction.LONG) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "rsi, expected",
        [(85, 1.20), (75, 1.15), (65, 1.10), (50, 1.0), (35, 0.95), (25, 0.90), (15, 0.85)],
    )
    def test_short_bands(self, rsi, expected):
        assert _calc().get_rsi_modifier(rsi, Direction.SHORT) == pytest.approx(expected)

    def test_hold_is_neutral(self):
        assert _calc().get_rsi_modifier(15, Direction.HOLD) == 1.0

    def test_nan_is_neutral(self):
        assert _calc().get_rsi_modifier(float("nan"), Direction.LONG) == 1.0

    def test_disabled_system_is_neutral(self):
        assert _calc(enabled=False).get_rsi_modifier(15, Direction.LONG) == 1.0


class TestVolumeModifier:
    @pytest.mark.parametrize(
        "ratio, expected",
        [(2.5, 1.10), (1.6, 1.05), (1.0, 1.0), (0.6, 0.95), (0.3, 0.90)],
    )
    def test_bands(self, ratio, expected):
        assert _calc().get_volume_modifier(ratio) == pytest.approx(expected)


class TestLevelStrengthModifier:
    def test_strong_medium_weak(self):
        calc = _calc()
        assert calc.get_level_strength_modifier(4) == pytest.approx(1.40)
        assert calc.get_level_strength_modifier(2) == pytest.approx(1.20)
        assert calc.get_level_strength_modifier(1) == 1.0

    def test_never_a_penalty(self):
        calc = _calc(
            level_strength_weights=LevelStrengthWeightConfig(min_touches_for_medium=5,
                                                             min_touches_for_strong=8),
        )
        assert calc.get_level_strength_modifier(0) == 1.0


class TestBollingerModifier:
    def test_long_near_lower_band(self):
        calc = _calc()
        assert calc.get_bollinger_modifier(0.10, Direction.LONG, False) == pytest.approx(1.20)
        assert calc.get_bollinger_modifier(0.25, Direction.LONG, False) == pytest.approx(1.10)
        assert calc.get_bollinger_modifier(0.50, Direction.LONG, False) == 1.0
        assert calc.get_bollinger_modifier(0.80, Direction.LONG, False) == pytest.approx(0.95)

    def test_short_near_upper_band(self):
        calc = _calc()
        assert calc.get_bollinger_modifier(0.90, Direction.SHORT, False) == pytest.approx(1.20)
        assert calc.get_bollinger_modifier(0.20, Direction.SHORT, False) == pytest.approx(0.95)

    def test_squeeze_adds_bonus(self):
        assert _calc().get_bollinger_modifier(0.5, Direction.LONG, True) == pytest.approx(1.10)


class TestStochasticModifier:
    def test_double_confirmation(self):
        assert _calc().get_stochastic_modifier(10, 25, Direction.LONG) == pytest.approx(1.15)
        assert _calc().get_stochastic_modifier(90, 75, Direction.SHORT) == pytest.approx(1.15)

    def test_single_confirmation(self):
        assert _calc().get_stochastic_modifier(10, 50, Direction.LONG) == pytest.approx(1.05)

    def test_wrong_side(self):
        assert _calc().get_stochastic_modifier(90, 50, Direction.LONG) == pytest.approx(0.95)


class TestApplyWeights:
    def test_multiplies_applicable_modifiers(self):
        result = _calc().apply_weights(
            50.0, WeightParams(direction=Direction.LONG, rsi=25, volume_ratio=2.5),
        )
        # 50 × 1.15 (RSI) × 1.10 (volume)
        assert result == pytest.approx(63.25)

    def test_clamped_to_100(self):
        result = _calc().apply_weights(
            95.0, WeightParams(direction=Direction.LONG, rsi=15, level_touches=3),
        )
        assert result == 100.0

    def test_clamped_to_floor(self):
        assert _calc().apply_weights(5.0, WeightParams()) == 10.0

    def test_unknown_inputs_leave_confidence_unchanged(self):
        assert _calc().apply_weights(55.0, WeightParams(direction=Direction.LONG)) == 55.0

    def test_disabled_returns_base(self):
        params = WeightParams(direction=Direction.LONG, rsi=15)
        assert _calc(enabled=False).apply_weights(5.0, params) == 5.0

    def test_requires_config(self):
        with pytest.raises(ValueError, match="weight system config"):
            WeightCalculator(None)
