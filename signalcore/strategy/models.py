"""Strategy data models — typed representations for strategy inputs and outputs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Direction(str, Enum):
    """Market direction voted by a strategy."""

    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar for strategy consumption.

    ``timestamp`` is the bar open time in epoch milliseconds.
    """

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class SwingPoint:
    """A local extreme found in the candle window."""

    kind: str  # "high" or "low"
    price: float
    timestamp: int


@dataclass(frozen=True)
class PriceLevel:
    """A clustered support or resistance level."""

    level_type: str  # "support" or "resistance"
    price: float
    touches: int


@dataclass(frozen=True)
class Signal:
    """One strategy's opinion about market direction.

    ``score`` is the unit the coordinator sums across strategies.
    """

    source: str
    direction: Direction
    confidence: float
    weight: float = 1.0
    priority: int = 5

    def __post_init__(self) -> None:
        if not isinstance(self.direction, Direction):
            raise ValueError(f"Missing or invalid: direction, got {self.direction!r}")
        if not 0.0 <= self.confidence <= 100.0:
            raise ValueError(
                f"Missing or invalid: confidence (0-100), got {self.confidence}"
            )
        if not 0.0 <= self.weight <= 1.0:
            raise ValueError(f"Missing or invalid: weight (0.0-1.0), got {self.weight}")
        if not 1 <= self.priority <= 10:
            raise ValueError(f"Missing or invalid: priority (1-10), got {self.priority}")

    @property
    def score(self) -> float:
        return self.confidence / 100.0 * self.weight


@dataclass(frozen=True)
class StrategySignal:
    """Result of one strategy evaluation, or of the coordinator's aggregation.

    ``key_level`` is the support/resistance price an entry should be
    confirmed against; ``stop_loss`` is an optional strategy-proposed stop.
    """

    valid: bool
    strategy_name: str
    reason: str
    signal: Optional[Signal] = None
    key_level: Optional[float] = None
    stop_loss: Optional[float] = None
    contributors: tuple[Signal, ...] = ()
    scores: dict = field(default_factory=dict)


@dataclass(frozen=True)
class MarketData:
    """Market snapshot handed to every strategy.

    Indicator fields are ``None`` when the window is too short to compute
    them.
    """

    symbol: str
    timestamp: int
    current_price: float
    candles: tuple[CandleData, ...]
    rsi: Optional[float] = None
    ema_fast: Optional[float] = None
    ema_slow: Optional[float] = None
    atr: Optional[float] = None
    trend: str = "NEUTRAL"  # "BULLISH", "BEARISH" or "NEUTRAL"
    swing_points: tuple[SwingPoint, ...] = ()
    levels: tuple[PriceLevel, ...] = ()
    volume_ratio: Optional[float] = None
    bollinger_percent_b: Optional[float] = None
    bollinger_squeeze: bool = False
    stochastic_k: Optional[float] = None
    candles_1m: tuple[CandleData, ...] = ()
