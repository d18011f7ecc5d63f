"""Backtest statistics — pure functions for trade-series analysis."""

import math
from typing import Optional, Sequence

from signalcore.backtest.models import Trade


def calculate_stats(
    trades: Sequence[Trade],
    initial_balance: float,
    symbol: str = "",
) -> dict:
    """Compute the summary block of a backtest report.

    Returns:
        Dict with ``symbol``, ``total_trades``, ``winning_trades``,
        ``losing_trades``, ``win_rate`` (percent), ``total_pnl``,
        ``avg_win``, ``avg_loss`` (positive magnitude), ``profit_factor``
        (``None`` without losing trades), ``max_drawdown`` (percent of the
        running peak balance), ``sharpe_ratio`` and ``total_fees``.
    """
    if not trades:
        return {
            "symbol": symbol,
            "total_trades": 0,
            "winning_trades": 0,
            "losing_trades": 0,
            "win_rate": 0.0,
            "total_pnl": 0.0,
            "avg_win": 0.0,
            "avg_loss": 0.0,
            "profit_factor": None,
            "max_drawdown": 0.0,
            "sharpe_ratio": 0.0,
            "total_fees": 0.0,
        }

    pnls = [t.pnl for t in trades]
    total = len(pnls)
    winners = [p for p in pnls if p > 0]
    losers = [p for p in pnls if p <= 0]

    avg_win = sum(winners) / len(winners) if winners else 0.0
    avg_loss = abs(sum(losers)) / len(losers) if losers else 0.0

    profit_factor: Optional[float] = None
    if losers and avg_loss > 0:
        profit_factor = (avg_win * len(winners)) / (avg_loss * len(losers))

    return {
        "symbol": symbol,
        "total_trades": total,
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": round(len(winners) / total * 100.0, 2),
        "total_pnl": round(sum(pnls), 4),
        "avg_win": round(avg_win, 4),
        "avg_loss": round(avg_loss, 4),
        "profit_factor": round(profit_factor, 4) if profit_factor is not None else None,
        "max_drawdown": round(max_drawdown_percent(pnls, initial_balance), 4),
        "sharpe_ratio": round(_sharpe(pnls), 4),
        "total_fees": round(sum(t.fees for t in trades), 4),
    }


# ── Helpers ──────────────────────────────────────────────────────────────


def _sharpe(pnls: list[float]) -> float:
    """Per-trade Sharpe ratio, annualised with sqrt(252).

    Uses sample standard deviation (n − 1).  Returns 0.0 when the series
    has fewer than 2 observations or zero variance.
    """
    n = len(pnls)
    if n < 2:
        return 0.0
    mean = sum(pnls) / n
    variance = sum((p - mean) ** 2 for p in pnls) / (n - 1)
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return (mean / std) * math.sqrt(252)


def max_drawdown_percent(pnls: Sequence[float], initial_balance: float) -> float:
    """Largest retracement from the running peak balance, in percent."""
    balance = peak = initial_balance
    max_dd = 0.0
    for pnl in pnls:
        balance += pnl
        peak = max(peak, balance)
        if peak > 0:
            max_dd = max(max_dd, (peak - balance) / peak * 100.0)
    return max_dd
