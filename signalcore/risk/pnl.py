"""Fee-aware PnL calculation — pure math, no I/O.

Fees are charged on both legs at the taker rate:
    ``fees = (entry × qty + exit × qty) × fee_rate``
"""

from dataclasses import dataclass
from typing import Iterable

from signalcore.strategy.models import Direction

BYBIT_TAKER_FEE = 0.00055


@dataclass(frozen=True)
class PnLResult:
    """Outcome of closing (part of) a position."""

    pnl_gross: float
    fees: float
    pnl_net: float
    pnl_percent: float


@dataclass(frozen=True)
class PartialClose:
    quantity: float
    exit_price: float


def _sign(side: Direction) -> int:
    if side == Direction.LONG:
        return 1
    if side == Direction.SHORT:
        return -1
    raise ValueError(f"side must be LONG or SHORT, got {side!r}")


def calculate_pnl(
    side: Direction,
    entry_price: float,
    exit_price: float,
    quantity: float,
    fee_rate: float = BYBIT_TAKER_FEE,
) -> PnLResult:
    """PnL of one close.

    LONG 100 -> 110, qty 1, fee 0.00055 gives gross 10, fees 0.1155,
    net 9.8845 and 10 %.
    """
    sign = _sign(side)
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if quantity < 0:
        raise ValueError(f"quantity must be non-negative, got {quantity}")

    gross = (exit_price - entry_price) * quantity * sign
    fees = (entry_price * quantity + exit_price * quantity) * fee_rate
    percent = (exit_price - entry_price) / entry_price * 100.0 * sign
    return PnLResult(pnl_gross=gross, fees=fees, pnl_net=gross - fees, pnl_percent=percent)


def calculate_partial_closes(
    side: Direction,
    entry_price: float,
    closes: Iterable[PartialClose],
    fee_rate: float = BYBIT_TAKER_FEE,
) -> PnLResult:
    """Sum PnL over several partial closes of one position.

    The percent figure uses the volume-weighted average exit price.
    """
    fills = list(closes)
    if not fills:
        raise ValueError("closes must contain at least one fill")

    parts = [
        calculate_pnl(side, entry_price, fill.exit_price, fill.quantity, fee_rate)
        for fill in fills
    ]
    total_qty = sum(f.quantity for f in fills)
    if total_qty <= 0:
        raise ValueError("total closed quantity must be positive")
    avg_exit = sum(f.exit_price * f.quantity for f in fills) / total_qty

    gross = sum(p.pnl_gross for p in parts)
    fees = sum(p.fees for p in parts)
    return PnLResult(
        pnl_gross=gross,
        fees=fees,
        pnl_net=gross - fees,
        pnl_percent=(avg_exit - entry_price) / entry_price * 100.0 * _sign(side),
    )


def calculate_breakeven(
    side: Direction,
    entry_price: float,
    fee_rate: float = BYBIT_TAKER_FEE,
) -> float:
    """Exit price at which net PnL is zero.

    LONG:  ``entry × (1 + f) / (1 - f)``
    SHORT: ``entry × (1 - f) / (1 + f)``
    """
    if _sign(side) > 0:
        return entry_price * (1 + fee_rate) / (1 - fee_rate)
    return entry_price * (1 - fee_rate) / (1 + fee_rate)
