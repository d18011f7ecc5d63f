"""Breakout-retest strategy around the daily high/low.

Stateful: a breakout beyond the trailing daily high (LONG) or low (SHORT)
opens a setup; the setup signals once price has touched the retest zone a
second time, with a tight stop under the 1m local low (above the local
high for SHORT).  Setups expire after ``retest_timeout_bars`` 5m bars.
"""

import logging
from dataclasses import replace
from typing import Optional

from signalcore.models.component_config import DailyLevelConfig
from signalcore.strategy.models import Direction, MarketData, Signal, StrategySignal
from signalcore.strategy.retest import (
    BreakoutInfo,
    DailyLevel,
    RetestPhaseAnalyzer,
    RetestSetup,
)

logger = logging.getLogger("signalcore.strategy.breakout_retest")


class BreakoutRetestStrategy:
    """Implements ``StrategyProtocol``."""

    name = "BreakoutRetest"
    realtime_only = False

    def __init__(
        self,
        config: Optional[DailyLevelConfig] = None,
        priority: int = 1,
        confidence: float = 75.0,
        weight: float = 1.0,
    ) -> None:
        self._config = config or DailyLevelConfig()
        self._analyzer = RetestPhaseAnalyzer(self._config)
        self.priority = priority
        self._confidence = confidence
        self._weight = weight
        self.setup: Optional[RetestSetup] = None

    def reset(self) -> None:
        self.setup = None

    def daily_level(self, market_data: MarketData) -> Optional[DailyLevel]:
        """High/low of the ``lookback_bars`` candles before the current one."""
        history = market_data.candles[:-1][-self._config.lookback_bars:]
        if not history:
            return None
        return DailyLevel(
            high=max(c.high for c in history),
            low=min(c.low for c in history),
            timestamp=history[-1].timestamp,
        )

    def _detect_breakout(self, market_data: MarketData) -> Optional[RetestSetup]:
        level = self.daily_level(market_data)
        if level is None:
            return None
        candle = market_data.candles[-1]
        volume_ratio = market_data.volume_ratio
        if volume_ratio is not None and volume_ratio < self._config.min_volume_ratio:
            return None

        strength = self._config.min_breakout_strength
        if candle.close > level.high * (1 + strength):
            direction, broken = Direction.LONG, level.high
        elif candle.close < level.low * (1 - strength):
            direction, broken = Direction.SHORT, level.low
        else:
            return None

        breakout = BreakoutInfo(
            direction=direction,
            price=candle.close,
            timestamp=candle.timestamp,
            volume=candle.volume,
            volume_ratio=volume_ratio if volume_ratio is not None else 1.0,
            strength=abs(candle.close - broken) / broken,
        )
        logger.info(
            "%s breakout of daily level %.4f at %.4f",
            direction.value, broken, candle.close,
        )
        return RetestSetup(direction=direction, daily_level=level, breakout=breakout)

    def evaluate(self, market_data: MarketData) -> Optional[StrategySignal]:
        if len(market_data.candles) < 2:
            return StrategySignal(False, self.name, "Not enough candles")

        if self.setup is None:
            self.setup = self._detect_breakout(market_data)
            if self.setup is None:
                return StrategySignal(False, self.name, "No breakout")
            return StrategySignal(False, self.name, "Breakout detected, waiting for retest")

        if self._analyzer.is_retest_timeout(self.setup, now=market_data.timestamp):
            self.setup = None
            return StrategySignal(False, self.name, "Retest timeout")

        result = self._analyzer.update_retest_info(
            self.setup, market_data.candles[-1], market_data.candles_1m,
        )
        self.setup = replace(self.setup, retest=result.retest_info)
        info = result.retest_info

        if not result.in_retest_zone or info is None or not info.is_second_touch:
            touches = info.touch_count if info else 0
            return StrategySignal(
                False, self.name, f"Waiting for second retest touch ({touches} so far)",
            )

        setup = self.setup
        direction = setup.direction
        broken = setup.daily_level.high if direction == Direction.LONG else setup.daily_level.low
        if info.local_high_low.bars > 0:
            stop = self._analyzer.calculate_tight_stop_loss(info.local_high_low, direction)
        else:
            stop = self._analyzer.calculate_tight_stop_loss(
                replace(info.local_high_low, high=broken, low=broken), direction,
            )

        # a setup trades once
        self.setup = None
        return StrategySignal(
            valid=True,
            strategy_name=self.name,
            reason=(
                f"{direction.value} retest of daily "
                f"{'high' if direction == Direction.LONG else 'low'} {broken:.4f} "
                f"({info.touch_count} touches)"
            ),
            signal=Signal(
                source=self.name,
                direction=direction,
                confidence=self._confidence,
                weight=self._weight,
                priority=self.priority,
            ),
            key_level=broken,
            stop_loss=stop,
        )
