"""Tests for the backtest engine and stats calculation.

Uses a trigger strategy that votes on chosen bars and synthetic flat
candles, so exits are driven entirely by the bars the tests shape.
"""

import math

import pytest

from signalcore.backtest.engine import BAR_MS, BacktestEngine
from signalcore.backtest.models import Position, trade_from_position
from signalcore.backtest.stats import _sharpe, calculate_stats, max_drawdown_percent
from signalcore.models.component_config import (
    BacktestConfig,
    CoordinatorConfig,
    DirectionConfirmationConfig,
    EntryConfirmationConfig,
)
from signalcore.strategy.confirmation import EntryConfirmationManager
from signalcore.strategy.coordinator import StrategyCoordinator
from signalcore.strategy.models import CandleData, Direction, Signal, StrategySignal


# ── Helpers ──────────────────────────────────────────────────────────────


class _TriggerStrategy:
    """Votes on the bars whose index is in *triggers*."""

    name = "Trigger"
    priority = 1
    realtime_only = False

    def __init__(self, triggers, direction=Direction.LONG, confidence=80.0, key_level=None):
        self._triggers = {t * BAR_MS for t in triggers}
        self._direction = direction
        self._confidence = confidence
        self._key_level = key_level

    def evaluate(self, market_data):
        if market_data.timestamp not in self._triggers:
            return StrategySignal(False, self.name, "waiting")
        return StrategySignal(
            valid=True,
            strategy_name=self.name,
            reason="trigger",
            signal=Signal(self.name, self._direction, self._confidence, 1.0, 1),
            key_level=self._key_level,
        )


class _ExplodingCoordinator:
    """Raises on the listed bar indexes, otherwise delegates."""

    def __init__(self, inner, bad_bars):
        self._inner = inner
        self._bad = {b * BAR_MS for b in bad_bars}

    def evaluate_strategies(self, market_data):
        if market_data.timestamp in self._bad:
            raise RuntimeError("feed glitch")
        return self._inner.evaluate_strategies(market_data)


def _candles(n=20, overrides=None):
    """Flat candles at 100 (high 100.5, low 99.5); *overrides* maps index → (h, l, c)."""
    overrides = overrides or {}
    candles = []
    for i in range(n):
        high, low, close = overrides.get(i, (100.5, 99.5, 100.0))
        candles.append(CandleData(i * BAR_MS, 100.0, high, low, close, 1000.0))
    return candles


def _coordinator(strategy):
    coord = StrategyCoordinator(
        CoordinatorConfig(blind_zone_min_signals=0, min_avg_confidence=0.0),
    )
    coord.register_strategy(strategy)
    return coord


def _config(**overrides):
    defaults = dict(warmup_bars=5, window_bars=50)
    defaults.update(overrides)
    return BacktestConfig(**defaults)


# ── Engine ───────────────────────────────────────────────────────────────


class TestBacktestEngine:
    def test_no_signals_no_trades(self):
        engine = BacktestEngine(_coordinator(_TriggerStrategy([])), _config())
        result = engine.run(_candles())
        assert result.trades == ()
        assert result.final_balance == 1000.0
        assert result.summary["total_trades"] == 0

    def test_take_profit_3_closes(self):
        candles = _candles(overrides={
            6: (102.5, 99.8, 101.0),   # TP1 marked
            7: (103.2, 100.5, 102.0),  # TP2 marked
            8: (104.5, 101.0, 104.0),  # TP3 closes
        })
        engine = BacktestEngine(_coordinator(_TriggerStrategy([5])), _config())
        result = engine.run(candles)

        assert len(result.trades) == 1
        trade = result.trades[0]
        assert trade.exit_reason == "TP3"
        assert trade.exit_price == pytest.approx(104.0)
        assert trade.tp1_hit and trade.tp2_hit
        assert trade.entry_time == 5 * BAR_MS
        assert trade.exit_time == 8 * BAR_MS
        # qty 1, gross 4, fees (100 + 104) × 0.00055
        assert trade.pnl == pytest.approx(4.0 - 0.1122)

    def test_stop_loss_takes_precedence(self):
        candles = _candles(overrides={6: (105.0, 98.0, 100.0)})
        engine = BacktestEngine(_coordinator(_TriggerStrategy([5])), _config())
        result = engine.run(candles)
        trade = result.trades[0]
        assert trade.exit_reason == "SL"
        assert trade.exit_price == pytest.approx(98.5)
        assert trade.pnl < 0

    def test_short_stop_loss(self):
        candles = _candles(overrides={6: (101.6, 99.0, 100.0)})
        strategy = _TriggerStrategy([5], direction=Direction.SHORT)
        result = BacktestEngine(_coordinator(strategy), _config()).run(candles)
        assert result.trades[0].side == Direction.SHORT
        assert result.trades[0].exit_price == pytest.approx(101.5)

    def test_open_position_force_closed_at_end(self):
        candles = _candles(n=10, overrides={9: (100.8, 99.6, 100.5)})
        engine = BacktestEngine(_coordinator(_TriggerStrategy([5])), _config())
        result = engine.run(candles)
        trade = result.trades[-1]
        assert trade.exit_reason == "end-of-backtest"
        assert trade.exit_price == 100.5
        assert trade.exit_time == 9 * BAR_MS

    def test_one_position_at_a_time(self):
        engine = BacktestEngine(_coordinator(_TriggerStrategy([5, 6, 7])), _config())
        result = engine.run(_candles(n=10))
        assert len(result.trades) == 1

    def test_balance_conservation(self):
        candles = _candles(n=30, overrides={
            6: (105.0, 98.0, 100.0),
            11: (104.5, 99.8, 104.0),
            16: (100.6, 98.2, 99.0),
        })
        engine = BacktestEngine(_coordinator(_TriggerStrategy([5, 10, 15, 25])), _config())
        result = engine.run(candles)

        assert len(result.trades) == 4
        assert result.final_balance == pytest.approx(
            result.initial_balance + sum(t.pnl for t in result.trades)
        )
        assert result.equity_curve[0] == result.initial_balance
        assert result.equity_curve[-1] == pytest.approx(result.final_balance)
        for trade in result.trades:
            assert trade.exit_time >= trade.entry_time

    def test_low_confidence_skipped(self):
        strategy = _TriggerStrategy([5], confidence=60.0)
        result = BacktestEngine(_coordinator(strategy), _config()).run(_candles())
        assert result.trades == ()

    def test_evaluation_error_does_not_stop_replay(self):
        coord = _ExplodingCoordinator(_coordinator(_TriggerStrategy([6])), bad_bars=[5])
        result = BacktestEngine(coord, _config()).run(_candles(n=10))
        assert len(result.errors) == 1
        assert "feed glitch" in result.errors[0]
        assert len(result.trades) == 1

    def test_min_balance_guard_blocks_entries(self):
        candles = _candles(overrides={6: (100.5, 98.0, 99.0)})
        config = _config(position_size_usdt=1000.0, leverage=50.0)
        engine = BacktestEngine(_coordinator(_TriggerStrategy([5, 8, 10])), config)
        result = engine.run(candles)
        # qty 500, 1.5 % stop → loss of 750: balance below 50 %
        assert len(result.trades) == 1
        assert result.final_balance < 500.0

    def test_confirmation_confirmed_enters_next_bar(self):
        candles = _candles(overrides={6: (101.5, 99.9, 101.0)})
        strategy = _TriggerStrategy([5], key_level=100.0)
        engine = BacktestEngine(
            _coordinator(strategy), _config(use_entry_confirmation=True),
        )
        result = engine.run(candles)
        trade = result.trades[0]
        assert trade.entry_time == 6 * BAR_MS
        assert trade.entry_price == 101.0

    def test_confirmation_rejected_no_trade(self):
        candles = _candles(overrides={6: (100.0, 98.9, 99.0)})
        strategy = _TriggerStrategy([5], key_level=100.0)
        manager = EntryConfirmationManager(
            EntryConfirmationConfig(long=DirectionConfirmationConfig(tolerance_percent=0.05)),
        )
        engine = BacktestEngine(
            _coordinator(strategy), _config(use_entry_confirmation=True), manager,
        )
        assert engine.run(candles).trades == ()

    def test_confirmation_without_key_level_enters_directly(self):
        strategy = _TriggerStrategy([5])
        engine = BacktestEngine(_coordinator(strategy), _config(use_entry_confirmation=True))
        result = engine.run(_candles(n=10))
        assert result.trades[0].entry_time == 5 * BAR_MS

    def test_to_dict(self):
        candles = _candles(overrides={6: (105.0, 98.0, 100.0)})
        result = BacktestEngine(_coordinator(_TriggerStrategy([5])), _config()).run(candles)
        data = result.to_dict()
        assert data["summary"]["total_trades"] == 1
        assert data["trades"][0]["side"] == "LONG"
        assert data["config"]["take_profit_percents"] == [2.0, 3.0, 4.0]
        assert isinstance(data["equity_curve"], list)


class TestTradeFromPosition:
    def test_position_closes_once(self):
        position = Position(Direction.LONG, 100.0, 0, 1.0, 98.5, 102.0, 103.0, 104.0)
        trade_from_position(position, 104.0, BAR_MS, "TP3", 3.9, 4.0, 0.1)
        with pytest.raises(RuntimeError, match="already closed"):
            trade_from_position(position, 104.0, BAR_MS, "TP3", 3.9, 4.0, 0.1)


# ── Stats ────────────────────────────────────────────────────────────────


def _trade(pnl, fees=0.1):
    position = Position(Direction.LONG, 100.0, 0, 1.0, 98.5, 102.0, 103.0, 104.0)
    return trade_from_position(position, 100.0 + pnl, BAR_MS, "TP3", pnl, pnl, fees)


class TestStats:
    def test_empty(self):
        stats = calculate_stats([], 1000.0, "BTCUSDT")
        assert stats["total_trades"] == 0
        assert stats["profit_factor"] is None
        assert stats["symbol"] == "BTCUSDT"

    def test_basic_metrics(self):
        stats = calculate_stats([_trade(10.0), _trade(-5.0), _trade(20.0)], 1000.0)
        assert stats["total_trades"] == 3
        assert stats["winning_trades"] == 2
        assert stats["losing_trades"] == 1
        assert stats["win_rate"] == pytest.approx(66.67)
        assert stats["total_pnl"] == pytest.approx(25.0)
        assert stats["avg_win"] == pytest.approx(15.0)
        assert stats["avg_loss"] == pytest.approx(5.0)
        assert stats["profit_factor"] == pytest.approx(6.0)
        assert stats["total_fees"] == pytest.approx(0.3)

    def test_no_losses_profit_factor_none(self):
        assert calculate_stats([_trade(5.0), _trade(3.0)], 1000.0)["profit_factor"] is None

    def test_max_drawdown(self):
        # 1000 → 1100 → 990: 10 % off the peak
        assert max_drawdown_percent([100.0, -110.0], 1000.0) == pytest.approx(10.0)

    def test_sharpe(self):
        pnls = [1.0, 2.0, 3.0]
        # mean 2, sample std 1
        assert _sharpe(pnls) == pytest.approx(2.0 * math.sqrt(252))

    def test_sharpe_degenerate(self):
        assert _sharpe([5.0]) == 0.0
        assert _sharpe([2.0, 2.0]) == 0.0
