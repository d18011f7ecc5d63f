"""Tests for retest phase tracking after a daily level breakout."""

import pytest

from signalcore.models.component_config import DailyLevelConfig
from signalcore.strategy.models import CandleData, Direction
from signalcore.strategy.retest import (
    BAR_MS,
    BreakoutInfo,
    DailyLevel,
    LocalHighLow,
    RetestPhaseAnalyzer,
    RetestSetup,
)


# ── Helpers ──────────────────────────────────────────────────────────────


_LEVEL = DailyLevel(high=100.0, low=90.0, timestamp=0)


def _candle(close, ts=0, high=None, low=None):
    return CandleData(ts, close, high if high is not None else close + 0.1,
                      low if low is not None else close - 0.1, close)


def _minutes(n=12, start=99.0):
    return [
        CandleData(i * 60_000, start, start + 0.5 + i * 0.1, start - 0.5 - i * 0.05, start)
        for i in range(n)
    ]


def _setup(direction=Direction.LONG, breakout_ts=0):
    return RetestSetup(
        direction=direction,
        daily_level=_LEVEL,
        breakout=BreakoutInfo(direction=direction, price=101.0, timestamp=breakout_ts),
    )


# ── Zone ─────────────────────────────────────────────────────────────────


class TestRetestZone:
    def test_long_zone_below_high(self):
        lower, upper = RetestPhaseAnalyzer().retest_zone(_LEVEL, Direction.LONG)
        assert lower == pytest.approx(99.0)
        assert upper == 100.0

    def test_short_zone_above_low(self):
        lower, upper = RetestPhaseAnalyzer().retest_zone(_LEVEL, Direction.SHORT)
        assert lower == 90.0
        assert upper == pytest.approx(90.9)

    def test_in_zone(self):
        analyzer = RetestPhaseAnalyzer()
        assert analyzer.is_in_retest_zone(99.5, _LEVEL, Direction.LONG)
        assert not analyzer.is_in_retest_zone(100.5, _LEVEL, Direction.LONG)
        assert not analyzer.is_in_retest_zone(98.5, _LEVEL, Direction.LONG)


# ── Touch counting ───────────────────────────────────────────────────────


class TestUpdateRetestInfo:
    def test_first_touch(self):
        result = RetestPhaseAnalyzer().update_retest_info(
            _setup(), _candle(99.5, ts=BAR_MS), _minutes(),
        )
        assert result.in_retest_zone
        assert result.retest_info.touch_count == 1
        assert not result.retest_info.is_second_touch
        assert result.retest_info.entry_price == 99.5

    def test_second_touch(self):
        analyzer = RetestPhaseAnalyzer()
        setup = _setup()
        first = analyzer.update_retest_info(setup, _candle(99.5), _minutes())
        setup = RetestSetup(setup.direction, setup.daily_level, setup.breakout, first.retest_info)
        second = analyzer.update_retest_info(setup, _candle(99.3), _minutes())
        assert second.retest_info.touch_count == 2
        assert second.retest_info.is_second_touch
        # entry price stays at the first touch
        assert second.retest_info.entry_price == 99.5

    def test_touch_count_never_decreases(self):
        analyzer = RetestPhaseAnalyzer()
        setup = _setup()
        seen = []
        for close in (99.5, 101.0, 99.2, 98.0, 99.8, 99.9):
            result = analyzer.update_retest_info(setup, _candle(close))
            setup = RetestSetup(setup.direction, setup.daily_level, setup.breakout,
                                result.retest_info)
            seen.append(result.retest_info.touch_count if result.retest_info else 0)
        assert seen == sorted(seen)
        assert seen[-1] == 4

    def test_outside_zone_keeps_existing_info(self):
        analyzer = RetestPhaseAnalyzer()
        setup = _setup()
        first = analyzer.update_retest_info(setup, _candle(99.5))
        setup = RetestSetup(setup.direction, setup.daily_level, setup.breakout, first.retest_info)
        result = analyzer.update_retest_info(setup, _candle(102.0))
        assert not result.in_retest_zone
        assert result.retest_info == first.retest_info


# ── Local high/low and stops ─────────────────────────────────────────────


class TestLocalHighLow:
    def test_uses_last_configured_bars(self):
        minutes = _minutes(12)
        lhl = RetestPhaseAnalyzer().calculate_local_high_low(minutes)
        assert lhl.bars == 10
        assert lhl.high == max(c.high for c in minutes[-10:])
        assert lhl.low == min(c.low for c in minutes[-10:])

    def test_explicit_bars(self):
        lhl = RetestPhaseAnalyzer().calculate_local_high_low(_minutes(12), bars=3)
        assert lhl.bars == 3

    def test_no_minute_candles(self):
        assert RetestPhaseAnalyzer().calculate_local_high_low([]) == LocalHighLow(0.0, 0.0, 0)

    def test_tight_stop_long_below_low(self):
        stop = RetestPhaseAnalyzer().calculate_tight_stop_loss(
            LocalHighLow(101.0, 99.0, 10), Direction.LONG,
        )
        assert stop == pytest.approx(99.0 * 0.999)

    def test_tight_stop_short_above_high(self):
        stop = RetestPhaseAnalyzer().calculate_tight_stop_loss(
            LocalHighLow(101.0, 99.0, 10), Direction.SHORT, buffer_percent=0.2,
        )
        assert stop == pytest.approx(101.0 * 1.002)


class TestRetestTimeout:
    def test_within_limit(self):
        analyzer = RetestPhaseAnalyzer()
        assert not analyzer.is_retest_timeout(_setup(), now=288 * BAR_MS)

    def test_past_limit(self):
        analyzer = RetestPhaseAnalyzer()
        assert analyzer.is_retest_timeout(_setup(), now=289 * BAR_MS)

    def test_configured_limit_and_clock(self):
        analyzer = RetestPhaseAnalyzer(
            DailyLevelConfig(retest_timeout_bars=2), clock=lambda: 3 * BAR_MS,
        )
        assert analyzer.is_retest_timeout(_setup())

    def test_no_breakout_never_times_out(self):
        setup = RetestSetup(direction=Direction.LONG, daily_level=_LEVEL)
        assert not RetestPhaseAnalyzer().is_retest_timeout(setup, now=10**12)
