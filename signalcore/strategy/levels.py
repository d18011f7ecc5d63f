"""Swing point detection and support/resistance clustering — pure functions."""

from typing import Sequence

from signalcore.strategy.models import CandleData, PriceLevel, SwingPoint


def find_swing_points(
    candles: Sequence[CandleData], window: int = 3,
) -> list[SwingPoint]:
    """Find swing highs and lows in chronological order.

    A swing high is a candle whose high is strictly above the highs of the
    *window* candles on each side; a swing low mirrors that on lows.
    """
    points: list[SwingPoint] = []
    for i in range(window, len(candles) - window):
        bar = candles[i]
        neighbours = [
            candles[i + offset]
            for offset in range(-window, window + 1)
            if offset != 0
        ]
        if all(n.high < bar.high for n in neighbours):
            points.append(SwingPoint("high", bar.high, bar.timestamp))
        if all(n.low > bar.low for n in neighbours):
            points.append(SwingPoint("low", bar.low, bar.timestamp))
    return points


def _cluster(prices: list[float], tolerance_percent: float) -> list[tuple[float, int]]:
    """Group prices lying within *tolerance_percent* of the previous member.

    Returns ``(average_price, member_count)`` tuples sorted by price.
    """
    if not prices:
        return []

    ordered = sorted(prices)
    clusters: list[list[float]] = [[ordered[0]]]
    for price in ordered[1:]:
        anchor = clusters[-1][-1]
        if abs(price - anchor) <= anchor * tolerance_percent / 100.0:
            clusters[-1].append(price)
        else:
            clusters.append([price])

    return [(sum(c) / len(c), len(c)) for c in clusters]


def detect_levels(
    swing_points: Sequence[SwingPoint],
    tolerance_percent: float = 0.3,
) -> list[PriceLevel]:
    """Cluster swing points into support and resistance levels.

    Swing highs build resistance, swing lows build support.  ``touches``
    is the number of swing points merged into the level.

    Returns levels sorted by price.
    """
    if tolerance_percent < 0:
        raise ValueError("tolerance_percent must be non-negative")

    highs = [p.price for p in swing_points if p.kind == "high"]
    lows = [p.price for p in swing_points if p.kind == "low"]

    levels = [
        PriceLevel("resistance", price, touches)
        for price, touches in _cluster(highs, tolerance_percent)
    ]
    levels.extend(
        PriceLevel("support", price, touches)
        for price, touches in _cluster(lows, tolerance_percent)
    )
    levels.sort(key=lambda lvl: lvl.price)
    return levels


def nearest_level(
    levels: Sequence[PriceLevel], price: float, level_type: str,
) -> PriceLevel | None:
    """Closest level of *level_type* to *price*, or None."""
    candidates = [lvl for lvl in levels if lvl.level_type == level_type]
    if not candidates:
        return None
    return min(candidates, key=lambda lvl: abs(lvl.price - price))
