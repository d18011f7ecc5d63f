"""Stop-loss and take-profit levels — pure math, no I/O.

Levels are percent offsets from the entry price: the stop sits against the
trade, the three take-profits in its favour at increasing distance.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from signalcore.strategy.models import Direction


@dataclass(frozen=True)
class RiskLevels:
    """Stop-loss and three take-profit prices for a trade."""

    stop_loss: float
    take_profits: tuple[float, float, float]


def calculate_percent_levels(
    entry_price: float,
    direction: Direction,
    stop_loss_percent: float = 1.5,
    take_profit_percents: Sequence[float] = (2.0, 3.0, 4.0),
    stop_loss_override: Optional[float] = None,
) -> RiskLevels:
    """Compute SL/TP1-3 from percent offsets of *entry_price*.

    *stop_loss_override* replaces the percent stop when it lies on the
    losing side of the entry (e.g. a strategy's tight stop).

    Raises ``ValueError`` on a non-positive entry, a bad direction, or
    take-profits that are not three ascending positive percents.
    """
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if direction not in (Direction.LONG, Direction.SHORT):
        raise ValueError(f"direction must be LONG or SHORT, got {direction!r}")
    if stop_loss_percent <= 0:
        raise ValueError(f"stop_loss_percent must be positive, got {stop_loss_percent}")
    tps = tuple(take_profit_percents)
    if len(tps) != 3 or any(t <= 0 for t in tps) or list(tps) != sorted(tps):
        raise ValueError(
            f"take_profit_percents must be three ascending positive values, got {tps}"
        )

    sign = 1 if direction == Direction.LONG else -1
    stop = entry_price * (1 - sign * stop_loss_percent / 100.0)
    if stop_loss_override is not None and sign * (entry_price - stop_loss_override) > 0:
        stop = stop_loss_override

    take_profits = tuple(entry_price * (1 + sign * t / 100.0) for t in tps)
    return RiskLevels(stop_loss=stop, take_profits=take_profits)
