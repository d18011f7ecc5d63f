"""Level-based strategy — bounce from support, rejection from resistance.

Votes LONG when price sits just above a well-touched support level and
SHORT when it sits just below resistance.  The closer the price and the
stronger the level, the higher the confidence; the weight calculator then
adjusts it for RSI, volume, Bollinger and stochastic context.
"""

import logging
from typing import Optional

from signalcore.strategy.models import (
    Direction,
    MarketData,
    PriceLevel,
    Signal,
    StrategySignal,
)
from signalcore.strategy.weights import WeightCalculator, WeightParams

logger = logging.getLogger("signalcore.strategy.level_based")


class LevelBasedStrategy:
    """Implements ``StrategyProtocol``."""

    name = "LevelBased"
    realtime_only = False

    def __init__(
        self,
        weight_calculator: Optional[WeightCalculator] = None,
        priority: int = 2,
        max_distance_percent: float = 1.0,
        min_touches: int = 2,
        base_confidence: float = 70.0,
        stop_buffer_percent: float = 0.5,
        weight: float = 1.0,
        block_counter_trend: bool = True,
    ) -> None:
        if max_distance_percent <= 0:
            raise ValueError("Missing or invalid: max_distance_percent (> 0)")
        if min_touches < 1:
            raise ValueError("Missing or invalid: min_touches (>= 1)")
        self.priority = priority
        self._weights = weight_calculator
        self._max_distance = max_distance_percent
        self._min_touches = min_touches
        self._base_confidence = base_confidence
        self._stop_buffer = stop_buffer_percent / 100.0
        self._weight = weight
        self._block_counter_trend = block_counter_trend

    def _no_signal(self, reason: str) -> StrategySignal:
        return StrategySignal(valid=False, strategy_name=self.name, reason=reason)

    def _candidate(
        self, market_data: MarketData, level_type: str,
    ) -> Optional[tuple[PriceLevel, float]]:
        """Closest qualifying level of *level_type* and its distance in percent."""
        price = market_data.current_price
        best: Optional[tuple[PriceLevel, float]] = None
        for level in market_data.levels:
            if level.level_type != level_type or level.touches < self._min_touches:
                continue
            # support must be at or below price, resistance at or above
            if level_type == "support" and level.price > price:
                continue
            if level_type == "resistance" and level.price < price:
                continue
            distance = abs(price - level.price) / price * 100.0
            if distance <= self._max_distance and (best is None or distance < best[1]):
                best = (level, distance)
        return best

    def evaluate(self, market_data: MarketData) -> Optional[StrategySignal]:
        if not market_data.levels:
            return self._no_signal("No levels detected")

        support = self._candidate(market_data, "support")
        resistance = self._candidate(market_data, "resistance")

        if self._block_counter_trend:
            if support and market_data.trend == "BEARISH":
                logger.debug("%s: LONG blocked in downtrend", self.name)
                support = None
            if resistance and market_data.trend == "BULLISH":
                logger.debug("%s: SHORT blocked in uptrend", self.name)
                resistance = None

        if support is None and resistance is None:
            return self._no_signal(
                f"No level within {self._max_distance}% with "
                f"{self._min_touches}+ touches"
            )

        if resistance is None or (support is not None and support[1] <= resistance[1]):
            direction, (level, distance) = Direction.LONG, support
        else:
            direction, (level, distance) = Direction.SHORT, resistance

        # closer to the level -> up to 30 % stronger
        proximity = 1.0 - 0.3 * (distance / self._max_distance)
        confidence = self._base_confidence * proximity
        if self._weights is not None:
            confidence = self._weights.apply_weights(
                confidence,
                WeightParams(
                    direction=direction,
                    rsi=market_data.rsi,
                    volume_ratio=market_data.volume_ratio,
                    level_touches=level.touches,
                    bollinger_percent_b=market_data.bollinger_percent_b,
                    bollinger_squeeze=market_data.bollinger_squeeze,
                    stochastic_k=market_data.stochastic_k,
                ),
            )
        confidence = max(0.0, min(100.0, confidence))

        if direction == Direction.LONG:
            stop = level.price * (1 - self._stop_buffer)
        else:
            stop = level.price * (1 + self._stop_buffer)

        reason = (
            f"{direction.value} at {level.level_type} {level.price:.4f} "
            f"({level.touches} touches, {distance:.2f}% away)"
        )
        logger.debug("%s: %s confidence=%.1f", self.name, reason, confidence)
        return StrategySignal(
            valid=True,
            strategy_name=self.name,
            reason=reason,
            signal=Signal(
                source=self.name,
                direction=direction,
                confidence=confidence,
                weight=self._weight,
                priority=self.priority,
            ),
            key_level=level.price,
            stop_loss=stop,
        )
