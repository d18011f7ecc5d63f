"""Weight calculator — gradient confidence modifiers instead of hard blocks.

Each modifier maps one market metric to a multiplier centred at 1.0:
a favourable regime gives a bonus (> 1.0), an unfavourable one a penalty
(< 1.0).  Disabled subsystems and missing inputs always yield 1.0.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from signalcore.models.component_config import WeightSystemConfig
from signalcore.strategy.models import Direction

logger = logging.getLogger("signalcore.weights")

NEUTRAL = 1.0
MAX_CONFIDENCE = 100.0

# RSI bands
_RSI_EXTREME_OVERSOLD = 20.0
_RSI_STRONG_OVERSOLD = 30.0
_RSI_MODERATE_OVERSOLD = 40.0
_RSI_SLIGHT_OVERBOUGHT = 60.0
_RSI_MODERATE_OVERBOUGHT = 70.0
_RSI_EXTREME_OVERBOUGHT = 80.0

# Volume ratio bands (current / average)
_VOLUME_VERY_HIGH = 2.0
_VOLUME_HIGH = 1.5
_VOLUME_NORMAL_MIN = 0.8
_VOLUME_LOW_MIN = 0.5

# Bollinger %B bands
_BB_LOWER_VERY_CLOSE = 0.15
_BB_LOWER_CLOSE = 0.30
_BB_UPPER_CLOSE = 0.70
_BB_UPPER_VERY_CLOSE = 0.85
_BB_VERY_CLOSE = 1.20
_BB_CLOSE = 1.10
_BB_BAD_POSITION = 0.95
_BB_SQUEEZE_BONUS = 0.10

# Stochastic bands
_STOCH_OVERSOLD = 20.0
_STOCH_OVERBOUGHT = 80.0
_STOCH_RSI_OVERSOLD = 30.0
_STOCH_RSI_OVERBOUGHT = 70.0
_STOCH_DOUBLE = 1.15
_STOCH_SINGLE = 1.05
_STOCH_BAD = 0.95


@dataclass(frozen=True)
class WeightParams:
    """Optional market context for ``apply_weights``.  ``None`` = unknown."""

    direction: Optional[Direction] = None
    rsi: Optional[float] = None
    volume_ratio: Optional[float] = None
    level_touches: Optional[int] = None
    bollinger_percent_b: Optional[float] = None
    bollinger_squeeze: bool = False
    stochastic_k: Optional[float] = None


def _known(value: Optional[float]) -> bool:
    return value is not None and not math.isnan(value)


class WeightCalculator:
    """Turns auxiliary market context into multiplicative confidence modifiers.

    Args:
        config: Weight system configuration (required).
    """

    def __init__(self, config: WeightSystemConfig) -> None:
        if not isinstance(config, WeightSystemConfig):
            raise ValueError("Missing or invalid: weight system config")
        self._config = config

    @property
    def config(self) -> WeightSystemConfig:
        return self._config

    # ── Individual modifiers ─────────────────────────────────────────────

    def get_rsi_modifier(self, rsi: float, direction: Direction) -> float:
        """RSI modifier: LONG favours oversold, SHORT favours overbought."""
        cfg = self._config.rsi_weights
        if not self._config.enabled or not cfg.enabled or not _known(rsi):
            return NEUTRAL
        if direction not in (Direction.LONG, Direction.SHORT):
            return NEUTRAL

        modifier = NEUTRAL
        if direction == Direction.LONG:
            if rsi < _RSI_EXTREME_OVERSOLD:
                modifier = NEUTRAL + cfg.extreme_bonus
            elif rsi <= _RSI_STRONG_OVERSOLD:
                modifier = NEUTRAL + cfg.strong_bonus
            elif rsi <= _RSI_MODERATE_OVERSOLD:
                modifier = NEUTRAL + cfg.moderate_bonus
            elif cfg.neutral_zone_min <= rsi <= cfg.neutral_zone_max:
                modifier = NEUTRAL
            elif _RSI_SLIGHT_OVERBOUGHT < rsi <= _RSI_MODERATE_OVERBOUGHT:
                modifier = NEUTRAL - cfg.slight_penalty
            elif _RSI_MODERATE_OVERBOUGHT < rsi <= _RSI_EXTREME_OVERBOUGHT:
                modifier = NEUTRAL - cfg.moderate_penalty
            elif rsi > _RSI_EXTREME_OVERBOUGHT:
                modifier = NEUTRAL - cfg.strong_penalty
        else:
            if rsi > _RSI_EXTREME_OVERBOUGHT:
                modifier = NEUTRAL + cfg.extreme_bonus
            elif rsi >= _RSI_MODERATE_OVERBOUGHT:
                modifier = NEUTRAL + cfg.strong_bonus
            elif rsi >= _RSI_SLIGHT_OVERBOUGHT:
                modifier = NEUTRAL + cfg.moderate_bonus
            elif cfg.neutral_zone_min <= rsi <= cfg.neutral_zone_max:
                modifier = NEUTRAL
            elif _RSI_STRONG_OVERSOLD <= rsi < _RSI_MODERATE_OVERSOLD:
                modifier = NEUTRAL - cfg.slight_penalty
            elif _RSI_EXTREME_OVERSOLD <= rsi < _RSI_STRONG_OVERSOLD:
                modifier = NEUTRAL - cfg.moderate_penalty
            elif rsi < _RSI_EXTREME_OVERSOLD:
                modifier = NEUTRAL - cfg.strong_penalty

        logger.debug("RSI modifier rsi=%.2f direction=%s -> %.3f", rsi, direction.value, modifier)
        return modifier

    def get_volume_modifier(self, volume_ratio: float) -> float:
        """Volume modifier from current / average volume."""
        cfg = self._config.volume_weights
        if not self._config.enabled or not cfg.enabled or not _known(volume_ratio):
            return NEUTRAL

        if volume_ratio > _VOLUME_VERY_HIGH:
            modifier = NEUTRAL + cfg.very_high_bonus
        elif volume_ratio >= _VOLUME_HIGH:
            modifier = NEUTRAL + cfg.high_bonus
        elif volume_ratio >= _VOLUME_NORMAL_MIN:
            modifier = NEUTRAL
        elif volume_ratio >= _VOLUME_LOW_MIN:
            modifier = NEUTRAL - cfg.low_penalty
        else:
            modifier = NEUTRAL - cfg.very_low_penalty

        logger.debug("Volume modifier ratio=%.2f -> %.3f", volume_ratio, modifier)
        return modifier

    def get_level_strength_modifier(self, touches: int) -> float:
        """Level strength modifier: more touches, stronger level.  Never a penalty."""
        cfg = self._config.level_strength_weights
        if not self._config.enabled or not cfg.enabled or touches is None:
            return NEUTRAL

        modifier = NEUTRAL
        if touches >= cfg.min_touches_for_strong:
            modifier = NEUTRAL + cfg.strong_level_bonus
        elif touches >= cfg.min_touches_for_medium:
            modifier = NEUTRAL + cfg.medium_level_bonus

        logger.debug("Level strength modifier touches=%d -> %.3f", touches, modifier)
        return modifier

    def get_bollinger_modifier(
        self, percent_b: float, direction: Direction, is_squeeze: bool,
    ) -> float:
        """Bollinger modifier: LONG near the lower band, SHORT near the upper.

        A squeeze adds a flat bonus on top.
        """
        if not self._config.enabled or not _known(percent_b):
            return NEUTRAL
        if direction not in (Direction.LONG, Direction.SHORT):
            return NEUTRAL

        modifier = NEUTRAL
        if direction == Direction.LONG:
            if percent_b <= _BB_LOWER_VERY_CLOSE:
                modifier = _BB_VERY_CLOSE
            elif percent_b <= _BB_LOWER_CLOSE:
                modifier = _BB_CLOSE
            elif percent_b > _BB_UPPER_CLOSE:
                modifier = _BB_BAD_POSITION
        else:
            if percent_b >= _BB_UPPER_VERY_CLOSE:
                modifier = _BB_VERY_CLOSE
            elif percent_b >= _BB_UPPER_CLOSE:
                modifier = _BB_CLOSE
            elif percent_b < _BB_LOWER_CLOSE:
                modifier = _BB_BAD_POSITION

        if is_squeeze:
            modifier += _BB_SQUEEZE_BONUS

        logger.debug(
            "Bollinger modifier %%B=%.2f direction=%s squeeze=%s -> %.3f",
            percent_b, direction.value, is_squeeze, modifier,
        )
        return modifier

    def get_stochastic_modifier(
        self, stoch_k: float, rsi: float, direction: Direction,
    ) -> float:
        """Stochastic modifier with RSI as a second confirmation."""
        if not self._config.enabled or not _known(stoch_k) or not _known(rsi):
            return NEUTRAL
        if direction not in (Direction.LONG, Direction.SHORT):
            return NEUTRAL

        modifier = NEUTRAL
        if direction == Direction.LONG:
            stoch_extreme = stoch_k < _STOCH_OVERSOLD
            if stoch_extreme and rsi < _STOCH_RSI_OVERSOLD:
                modifier = _STOCH_DOUBLE
            elif stoch_extreme:
                modifier = _STOCH_SINGLE
            elif stoch_k > _STOCH_OVERBOUGHT:
                modifier = _STOCH_BAD
        else:
            stoch_extreme = stoch_k > _STOCH_OVERBOUGHT
            if stoch_extreme and rsi > _STOCH_RSI_OVERBOUGHT:
                modifier = _STOCH_DOUBLE
            elif stoch_extreme:
                modifier = _STOCH_SINGLE
            elif stoch_k < _STOCH_OVERSOLD:
                modifier = _STOCH_BAD

        logger.debug(
            "Stochastic modifier K=%.2f rsi=%.2f direction=%s -> %.3f",
            stoch_k, rsi, direction.value, modifier,
        )
        return modifier

    # ── Combined ─────────────────────────────────────────────────────────

    def apply_weights(self, base_confidence: float, params: WeightParams) -> float:
        """Multiply *base_confidence* (0-100) by every applicable modifier.

        The result is clamped to ``[confidence_floor, 100]``.  When the
        weight system is disabled the base confidence is returned as is.
        """
        if not self._config.enabled:
            return base_confidence

        confidence = base_confidence
        applied: list[str] = []
        direction = params.direction

        if direction is not None and _known(params.rsi):
            mod = self.get_rsi_modifier(params.rsi, direction)
            confidence *= mod
            applied.append(f"RSIx{mod:.3f}")

        if _known(params.volume_ratio):
            mod = self.get_volume_modifier(params.volume_ratio)
            confidence *= mod
            applied.append(f"Volx{mod:.3f}")

        if params.level_touches is not None:
            mod = self.get_level_strength_modifier(params.level_touches)
            confidence *= mod
            applied.append(f"Levelx{mod:.3f}")

        if direction is not None and _known(params.bollinger_percent_b):
            mod = self.get_bollinger_modifier(
                params.bollinger_percent_b, direction, params.bollinger_squeeze,
            )
            confidence *= mod
            applied.append(f"BBx{mod:.3f}")

        if direction is not None and _known(params.stochastic_k) and _known(params.rsi):
            mod = self.get_stochastic_modifier(params.stochastic_k, params.rsi, direction)
            confidence *= mod
            applied.append(f"Stochx{mod:.3f}")

        confidence = max(self._config.confidence_floor, min(MAX_CONFIDENCE, confidence))

        logger.debug(
            "Weights applied: %.2f -> %.2f [%s]",
            base_confidence, confidence, ", ".join(applied) or "none",
        )
        return confidence
