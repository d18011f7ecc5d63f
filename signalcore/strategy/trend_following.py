"""Trend-following strategy — enter pullbacks to the fast EMA in a trend."""

import logging
from typing import Optional

from signalcore.strategy.models import Direction, MarketData, Signal, StrategySignal

logger = logging.getLogger("signalcore.strategy.trend_following")


class TrendFollowingStrategy:
    """Votes with the EMA/RSI trend label when price pulls back to the fast EMA.

    LONG in a BULLISH trend when price is within ``pullback_percent`` of the
    fast EMA and still above the slow EMA; SHORT mirrors this.  The slow EMA
    is the key level an entry confirms against.
    """

    name = "TrendFollowing"
    realtime_only = False

    def __init__(
        self,
        priority: int = 3,
        pullback_percent: float = 0.5,
        base_confidence: float = 60.0,
        max_confidence: float = 80.0,
        weight: float = 0.8,
    ) -> None:
        if pullback_percent <= 0:
            raise ValueError("Missing or invalid: pullback_percent (> 0)")
        self.priority = priority
        self._pullback = pullback_percent
        self._base_confidence = base_confidence
        self._max_confidence = max_confidence
        self._weight = weight

    def evaluate(self, market_data: MarketData) -> Optional[StrategySignal]:
        fast, slow = market_data.ema_fast, market_data.ema_slow
        price = market_data.current_price
        if fast is None or slow is None or market_data.trend == "NEUTRAL":
            return StrategySignal(False, self.name, "No trend")

        distance = abs(price - fast) / fast * 100.0
        if distance > self._pullback:
            return StrategySignal(
                False, self.name, f"No pullback ({distance:.2f}% from fast EMA)",
            )

        if market_data.trend == "BULLISH" and price > slow:
            direction = Direction.LONG
        elif market_data.trend == "BEARISH" and price < slow:
            direction = Direction.SHORT
        else:
            return StrategySignal(False, self.name, "Price beyond slow EMA")

        # EMA separation adds conviction up to max_confidence
        spread = abs(fast - slow) / slow * 100.0
        confidence = min(self._max_confidence, self._base_confidence + spread * 10.0)

        return StrategySignal(
            valid=True,
            strategy_name=self.name,
            reason=(
                f"{direction.value} pullback in {market_data.trend.lower()} trend "
                f"(EMA spread {spread:.2f}%)"
            ),
            signal=Signal(
                source=self.name,
                direction=direction,
                confidence=confidence,
                weight=self._weight,
                priority=self.priority,
            ),
            key_level=slow,
        )
