"""Market snapshot builder: turns a candle window into ``MarketData``.

Indicators that cannot be computed on a short window are left as ``None``.
"""

import math
from typing import Optional, Sequence

from signalcore.strategy.indicators import (
    bollinger_percent_b,
    calculate_atr,
    calculate_bollinger,
    calculate_ema,
    calculate_rsi,
    calculate_stochastic_k,
    is_bollinger_squeeze,
)
from signalcore.strategy.levels import detect_levels, find_swing_points
from signalcore.strategy.models import CandleData, MarketData


def _last_or_none(series: list[float]) -> Optional[float]:
    if not series or math.isnan(series[-1]):
        return None
    return series[-1]


def detect_trend_label(
    ema_fast: Optional[float], ema_slow: Optional[float], rsi: Optional[float],
) -> str:
    """EMA/RSI trend label.

    BULLISH when fast > slow and RSI > 50, BEARISH when fast < slow and
    RSI < 50, NEUTRAL otherwise (including unknown inputs).
    """
    if ema_fast is None or ema_slow is None or rsi is None:
        return "NEUTRAL"
    if ema_fast > ema_slow and rsi > 50:
        return "BULLISH"
    if ema_fast < ema_slow and rsi < 50:
        return "BEARISH"
    return "NEUTRAL"


def volume_ratio(candles: Sequence[CandleData], period: int = 20) -> Optional[float]:
    """Latest volume divided by the average of the *period* bars before it."""
    if len(candles) < period + 1:
        return None
    previous = [c.volume for c in candles[-period - 1 : -1]]
    average = sum(previous) / period
    if average <= 0:
        return None
    return candles[-1].volume / average


def prepare_market_data(
    symbol: str,
    candles: Sequence[CandleData],
    candles_1m: Sequence[CandleData] = (),
    rsi_period: int = 14,
    ema_fast_period: int = 21,
    ema_slow_period: int = 50,
    atr_period: int = 14,
    bollinger_period: int = 20,
    stochastic_period: int = 14,
    swing_window: int = 3,
    level_tolerance_percent: float = 0.3,
) -> MarketData:
    """Build the snapshot strategies evaluate.

    Args:
        symbol: Trading symbol, e.g. ``"BTCUSDT"``.
        candles: Trailing window of primary-timeframe candles, oldest first.
        candles_1m: Optional one-minute candles for retest tracking.

    Raises ``ValueError`` when *candles* is empty.
    """
    if not candles:
        raise ValueError("Cannot build market data from an empty candle window")

    window = tuple(candles)
    last = window[-1]
    n = len(window)

    rsi = _last_or_none(calculate_rsi(window, rsi_period)) if n > rsi_period else None
    ema_fast = (
        _last_or_none(calculate_ema(window, ema_fast_period))
        if n >= ema_fast_period else None
    )
    ema_slow = (
        _last_or_none(calculate_ema(window, ema_slow_period))
        if n >= ema_slow_period else None
    )
    atr = calculate_atr(window, atr_period) if n > atr_period else None

    percent_b: Optional[float] = None
    squeeze = False
    if n >= bollinger_period:
        upper, middle, lower = calculate_bollinger(window, bollinger_period)
        percent_b = bollinger_percent_b(last.close, upper[-1], lower[-1])
        squeeze = is_bollinger_squeeze(upper, middle, lower)

    stochastic_k = (
        calculate_stochastic_k(window, stochastic_period)
        if n >= stochastic_period else None
    )

    swings = find_swing_points(window, swing_window)
    levels = detect_levels(swings, level_tolerance_percent)

    return MarketData(
        symbol=symbol,
        timestamp=last.timestamp,
        current_price=last.close,
        candles=window,
        rsi=rsi,
        ema_fast=ema_fast,
        ema_slow=ema_slow,
        atr=atr,
        trend=detect_trend_label(ema_fast, ema_slow, rsi),
        swing_points=tuple(swings),
        levels=tuple(levels),
        volume_ratio=volume_ratio(window),
        bollinger_percent_b=percent_b,
        bollinger_squeeze=squeeze,
        stochastic_k=stochastic_k,
        candles_1m=tuple(candles_1m),
    )
