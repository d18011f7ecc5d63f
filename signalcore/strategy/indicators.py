"""Technical indicators: ATR, EMA, RSI, Bollinger Bands, Stochastic. Pure functions, no I/O."""

import math
from typing import Sequence

from signalcore.strategy.models import CandleData

NAN = float("nan")


def _require(candles: Sequence[CandleData], needed: int, label: str) -> None:
    if len(candles) < needed:
        raise ValueError(
            f"Need at least {needed} candles for {label}, got {len(candles)}"
        )


def calculate_atr(candles: Sequence[CandleData], period: int = 14) -> float:
    """Average True Range: simple mean of the last *period* true ranges.

    ``TR = max(high - low, |high - prev_close|, |low - prev_close|)``

    Raises ``ValueError`` with fewer than ``period + 1`` candles.
    """
    _require(candles, period + 1, f"ATR({period})")

    ranges = [
        max(
            cur.high - cur.low,
            abs(cur.high - prev.close),
            abs(cur.low - prev.close),
        )
        for prev, cur in zip(candles, candles[1:])
    ]
    recent = ranges[-period:]
    return sum(recent) / len(recent)


def calculate_ema(candles: Sequence[CandleData], period: int) -> list[float]:
    """Exponential moving average of closes, seeded with the SMA of the first *period*.

    Returns a series aligned with *candles*; entries before the seed are NaN.
    """
    _require(candles, period, f"EMA({period})")

    k = 2.0 / (period + 1)
    closes = [c.close for c in candles]
    ema = [NAN] * len(closes)
    ema[period - 1] = sum(closes[:period]) / period
    for i in range(period, len(closes)):
        ema[i] = closes[i] * k + ema[i - 1] * (1 - k)
    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def calculate_rsi(candles: Sequence[CandleData], period: int = 14) -> list[float]:
    """Wilder-smoothed Relative Strength Index.

    The first average gain/loss is the SMA of the first *period* deltas;
    later values use ``avg = (prev * (period - 1) + current) / period``.

    Returns a series aligned with *candles*; entries before index
    *period* are NaN.
    """
    _require(candles, period + 1, f"RSI({period})")

    deltas = [cur.close - prev.close for prev, cur in zip(candles, candles[1:])]
    gains = [max(d, 0.0) for d in deltas]
    losses = [max(-d, 0.0) for d in deltas]

    rsi = [NAN] * len(candles)
    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    rsi[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rsi[i + 1] = _rsi_value(avg_gain, avg_loss)

    return rsi


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    candles: Sequence[CandleData],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Bollinger Bands around an SMA of closes.

    Returns ``(upper, middle, lower)`` aligned with *candles*; entries
    before the first full window are NaN.
    """
    _require(candles, period, f"Bollinger({period})")

    closes = [c.close for c in candles]
    n = len(closes)
    upper, middle, lower = [NAN] * n, [NAN] * n, [NAN] * n

    for i in range(period - 1, n):
        window = closes[i - period + 1 : i + 1]
        sma = sum(window) / period
        sigma = math.sqrt(sum((x - sma) ** 2 for x in window) / period)
        middle[i] = sma
        upper[i] = sma + std_dev * sigma
        lower[i] = sma - std_dev * sigma

    return upper, middle, lower


def bollinger_percent_b(price: float, upper: float, lower: float) -> float:
    """Position of *price* inside the bands: 0 at the lower band, 1 at the upper."""
    width = upper - lower
    if width <= 0:
        return 0.5
    return (price - lower) / width


def is_bollinger_squeeze(
    upper: Sequence[float],
    middle: Sequence[float],
    lower: Sequence[float],
    lookback: int = 50,
    threshold: float = 0.8,
) -> bool:
    """True when the latest band width is below *threshold* × its recent average."""
    widths = [
        (u - l) / m
        for u, m, l in zip(upper[-lookback:], middle[-lookback:], lower[-lookback:])
        if not math.isnan(m) and m != 0
    ]
    if len(widths) < 2:
        return False
    average = sum(widths) / len(widths)
    return average > 0 and widths[-1] < threshold * average


# ── Stochastic ───────────────────────────────────────────────────────────


def calculate_stochastic_k(candles: Sequence[CandleData], period: int = 14) -> float:
    """Latest %K: where the close sits inside the *period*-bar high/low range.

    A flat range returns 50.
    """
    _require(candles, period, f"Stochastic({period})")

    window = candles[-period:]
    highest = max(c.high for c in window)
    lowest = min(c.low for c in window)
    if highest == lowest:
        return 50.0
    return (window[-1].close - lowest) / (highest - lowest) * 100.0
