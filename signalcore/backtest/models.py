"""Backtest data models — positions, closed trades and the run report."""

from dataclasses import asdict, dataclass

from signalcore.models.component_config import BacktestConfig
from signalcore.strategy.models import Direction


@dataclass
class Position:
    """The single open position of a replay.

    Mutable: TP1/TP2 flags are set as price reaches them; ``closed`` flips
    once when the position becomes a ``Trade``.
    """

    side: Direction
    entry_price: float
    entry_time: int
    quantity: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float
    take_profit_3: float
    tp1_hit: bool = False
    tp2_hit: bool = False
    tp3_hit: bool = False
    closed: bool = False
    entry_reason: str = ""

    @property
    def take_profits(self) -> tuple[float, float, float]:
        return self.take_profit_1, self.take_profit_2, self.take_profit_3


@dataclass(frozen=True)
class Trade:
    """Append-only record of one closed position.  ``pnl`` is net of fees."""

    side: Direction
    entry_price: float
    exit_price: float
    quantity: float
    pnl: float
    pnl_percent: float
    fees: float
    entry_time: int
    exit_time: int
    exit_reason: str
    tp1_hit: bool = False
    tp2_hit: bool = False


@dataclass(frozen=True)
class BacktestResult:
    symbol: str
    initial_balance: float
    final_balance: float
    trades: tuple[Trade, ...]
    summary: dict
    config: BacktestConfig
    equity_curve: tuple[float, ...] = ()
    errors: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        """Plain, JSON-serialisable form of the report."""
        trades = []
        for trade in self.trades:
            row = asdict(trade)
            row["side"] = trade.side.value
            trades.append(row)
        config = asdict(self.config)
        config["take_profit_percents"] = list(self.config.take_profit_percents)
        return {
            "summary": dict(self.summary),
            "trades": trades,
            "config": config,
            "equity_curve": list(self.equity_curve),
        }


def trade_from_position(
    position: Position,
    exit_price: float,
    exit_time: int,
    exit_reason: str,
    pnl: float,
    pnl_percent: float,
    fees: float,
) -> Trade:
    """Close *position* into a ``Trade``.  A position closes exactly once."""
    if position.closed:
        raise RuntimeError("Position already closed")
    position.closed = True
    return Trade(
        side=position.side,
        entry_price=position.entry_price,
        exit_price=exit_price,
        quantity=position.quantity,
        pnl=pnl,
        pnl_percent=pnl_percent,
        fees=fees,
        entry_time=position.entry_time,
        exit_time=max(exit_time, position.entry_time),
        exit_reason=exit_reason,
        tp1_hit=position.tp1_hit,
        tp2_hit=position.tp2_hit,
    )

