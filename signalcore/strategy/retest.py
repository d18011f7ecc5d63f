"""Retest phase tracking after a daily high/low breakout.

After price breaks the daily high (LONG) or low (SHORT) it usually comes
back to test the broken level.  The analyzer counts how many evaluations
find price inside the retest zone and remembers the 1m local extremes used
for a tight stop.  State lives on the caller's ``RetestSetup``.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

from signalcore.models.component_config import DailyLevelConfig
from signalcore.strategy.models import CandleData, Direction

logger = logging.getLogger("signalcore.retest")

BAR_MS = 5 * 60 * 1000
BARS_PER_DAY = 24 * 60 // 5


@dataclass(frozen=True)
class DailyLevel:
    high: float
    low: float
    timestamp: int
    source: str = "5m_aggregated"


@dataclass(frozen=True)
class BreakoutInfo:
    direction: Direction
    price: float
    timestamp: int
    volume: float = 0.0
    volume_ratio: float = 1.0
    strength: float = 0.0  # fraction beyond the level
    confirmed_by_close: bool = True


@dataclass(frozen=True)
class LocalHighLow:
    high: float
    low: float
    bars: int


@dataclass(frozen=True)
class RetestInfo:
    entry_price: float
    timestamp: int
    touch_count: int
    is_second_touch: bool
    local_high_low: LocalHighLow


@dataclass(frozen=True)
class RetestSetup:
    """One breakout-and-retest candidate carried across evaluations."""

    direction: Direction
    daily_level: DailyLevel
    breakout: Optional[BreakoutInfo] = None
    retest: Optional[RetestInfo] = None


@dataclass(frozen=True)
class RetestPhaseResult:
    in_retest_zone: bool
    retest_info: Optional[RetestInfo] = None
    timed_out: bool = False
    reason: Optional[str] = None


class RetestPhaseAnalyzer:
    """Zone checks, touch counting and timeouts for retest setups."""

    def __init__(
        self,
        config: Optional[DailyLevelConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._config = config or DailyLevelConfig()
        self._clock = clock or (lambda: int(time.time() * 1000))

    @property
    def config(self) -> DailyLevelConfig:
        return self._config

    def retest_zone(self, daily_level: DailyLevel, direction: Direction) -> tuple[float, float]:
        """``(lower, upper)`` bounds of the retest zone."""
        threshold = self._config.retest_threshold
        if direction == Direction.LONG:
            return daily_level.high * threshold, daily_level.high
        return daily_level.low, daily_level.low * (2 - threshold)

    def is_in_retest_zone(
        self, price: float, daily_level: DailyLevel, direction: Direction,
    ) -> bool:
        lower, upper = self.retest_zone(daily_level, direction)
        return lower <= price <= upper

    def update_retest_info(
        self,
        setup: RetestSetup,
        candle: CandleData,
        candles_1m: Sequence[CandleData] = (),
    ) -> RetestPhaseResult:
        """Advance the retest state of *setup* with the latest closed *candle*."""
        existing = setup.retest
        in_zone = self.is_in_retest_zone(candle.close, setup.daily_level, setup.direction)

        if not in_zone:
            return RetestPhaseResult(in_retest_zone=False, retest_info=existing)

        if existing is None:
            info = RetestInfo(
                entry_price=candle.close,
                timestamp=candle.timestamp,
                touch_count=1,
                is_second_touch=False,
                local_high_low=self.calculate_local_high_low(candles_1m),
            )
            lower, upper = self.retest_zone(setup.daily_level, setup.direction)
            logger.debug(
                "First retest touch at %.4f, zone %.4f-%.4f", candle.close, lower, upper,
            )
            return RetestPhaseResult(in_retest_zone=True, retest_info=info)

        touches = existing.touch_count + 1
        info = replace(
            existing,
            touch_count=touches,
            is_second_touch=touches >= 2,
            local_high_low=self.calculate_local_high_low(candles_1m),
        )
        if info.is_second_touch and not existing.is_second_touch:
            logger.info(
                "Second retest touch, reversal ready: touches=%d price=%.4f",
                touches, candle.close,
            )
        return RetestPhaseResult(in_retest_zone=True, retest_info=info)

    def calculate_local_high_low(
        self, candles_1m: Sequence[CandleData], bars: Optional[int] = None,
    ) -> LocalHighLow:
        """Max high / min low over the last *bars* one-minute candles."""
        if not candles_1m:
            logger.warning("No 1-minute candles available for local high/low")
            return LocalHighLow(0.0, 0.0, 0)
        recent = list(candles_1m)[-(bars or self._config.local_high_low_bars):]
        return LocalHighLow(
            high=max(c.high for c in recent),
            low=min(c.low for c in recent),
            bars=len(recent),
        )

    def is_retest_timeout(self, setup: RetestSetup, now: Optional[int] = None) -> bool:
        """True once more than ``retest_timeout_bars`` 5m bars passed since the breakout."""
        if setup.breakout is None:
            return False
        current = self._clock() if now is None else now
        bars_passed = (current - setup.breakout.timestamp) // BAR_MS
        timed_out = bars_passed > self._config.retest_timeout_bars
        if timed_out:
            logger.warning(
                "Retest timeout reached: %d bars (limit %d, %.1f days)",
                bars_passed, self._config.retest_timeout_bars, bars_passed / BARS_PER_DAY,
            )
        return timed_out

    def calculate_tight_stop_loss(
        self,
        local_high_low: LocalHighLow,
        direction: Direction,
        buffer_percent: Optional[float] = None,
    ) -> float:
        """Stop just beyond the local extreme: LONG below the low, SHORT above the high."""
        if buffer_percent is None:
            buffer_percent = self._config.tight_stop_buffer_percent
        buffer = buffer_percent / 100.0
        if direction == Direction.LONG:
            return local_high_low.low * (1 - buffer)
        return local_high_low.high * (1 + buffer)
