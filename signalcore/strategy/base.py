"""Strategy protocol and the per-invocation outcome type.

Defines the interface that all strategies must implement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from signalcore.strategy.models import MarketData, StrategySignal


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all trading strategies must satisfy.

    ``name``, ``priority`` (1 = highest) and ``realtime_only`` are plain
    data attributes read by the coordinator.
    """

    name: str
    priority: int
    realtime_only: bool

    def evaluate(self, market_data: MarketData) -> Optional[StrategySignal]:
        """Evaluate the snapshot and return a signal or None."""
        ...


@dataclass(frozen=True)
class StrategyOutcome:
    """Either the signal a strategy returned or the error it raised."""

    strategy_name: str
    result: Optional[StrategySignal] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def has_vote(self) -> bool:
        """True when the strategy produced a usable directional signal."""
        return (
            self.ok
            and self.result is not None
            and self.result.valid
            and self.result.signal is not None
        )


def run_strategy(strategy: StrategyProtocol, market_data: MarketData) -> StrategyOutcome:
    """Invoke *strategy* and capture its return value or exception."""
    try:
        return StrategyOutcome(strategy.name, result=strategy.evaluate(market_data))
    except Exception as exc:  # noqa: BLE001
        return StrategyOutcome(strategy.name, error=exc)
