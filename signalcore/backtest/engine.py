"""Backtest engine — replays historical candles through the coordinator and risk.

Iterates 5m candles chronologically.  On every bar an open position is
checked for exits first; only when flat is a new entry evaluated.  No
real orders are placed.
"""

import bisect
import logging
from typing import Optional, Sequence

from signalcore.backtest.models import BacktestResult, Position, Trade, trade_from_position
from signalcore.backtest.stats import calculate_stats
from signalcore.models.component_config import BacktestConfig
from signalcore.risk.drawdown import DrawdownTracker
from signalcore.risk.pnl import calculate_pnl
from signalcore.risk.position_sizer import calculate_quantity
from signalcore.risk.sl_tp import calculate_percent_levels
from signalcore.strategy.confirmation import EntryConfirmationManager
from signalcore.strategy.coordinator import StrategyCoordinator
from signalcore.strategy.market_data import prepare_market_data
from signalcore.strategy.models import CandleData, Direction, StrategySignal

logger = logging.getLogger("signalcore.backtest")

BAR_MS = 5 * 60 * 1000
ONE_MINUTE_WINDOW = 60

END_OF_BACKTEST = "end-of-backtest"


class BacktestEngine:
    """Simulates trading on historical candle data.

    Args:
        coordinator: Aggregates the registered strategies' votes.
        config: Replay parameters (balance, sizing, SL/TP, fees).
        confirmation: Entry confirmation gate, used when
            ``config.use_entry_confirmation`` is set.  A pending entry is
            resolved on the next bar's close and never expires in a replay.
    """

    def __init__(
        self,
        coordinator: StrategyCoordinator,
        config: Optional[BacktestConfig] = None,
        confirmation: Optional[EntryConfirmationManager] = None,
    ) -> None:
        self._coordinator = coordinator
        self._config = config or BacktestConfig()
        if self._config.use_entry_confirmation and confirmation is None:
            confirmation = EntryConfirmationManager()
        self._confirmation = confirmation

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        candles: Sequence[CandleData],
        candles_1m: Sequence[CandleData] = (),
    ) -> BacktestResult:
        """Execute a full backtest.

        Args:
            candles: 5m candles, oldest first.
            candles_1m: Optional 1m candles used by retest tracking.

        Returns:
            ``BacktestResult`` with trades, summary and equity curve.
        """
        cfg = self._config
        balance = cfg.initial_balance
        tracker = DrawdownTracker(cfg.initial_balance, cfg.min_balance_ratio)
        position: Optional[Position] = None
        pending_id: Optional[str] = None
        pending_at = 0
        trades: list[Trade] = []
        equity_curve: list[float] = [balance]
        errors: list[str] = []
        minute_times = [c.timestamp for c in candles_1m]

        logger.info(
            "Backtest %s: %d candles, warmup %d, balance %.2f",
            cfg.symbol, len(candles), cfg.warmup_bars, balance,
        )

        for i in range(cfg.warmup_bars, len(candles)):
            candle = candles[i]

            # 1 — Exit check always precedes entry
            if position is not None:
                trade = self._check_exit(position, candle)
                if trade is not None:
                    balance += trade.pnl
                    tracker.update(balance)
                    trades.append(trade)
                    equity_curve.append(balance)
                    position = None

            if position is not None:
                continue

            # 2 — Minimum-balance guard
            if not tracker.can_trade:
                continue

            # 3 — Outstanding confirmation resolves on this bar's close.
            # The replay has no latency, so expiry is measured at detection time.
            if pending_id is not None:
                result = self._confirmation.check_confirmation(
                    pending_id, candle.close, now=pending_at,
                )
                pending_id = None
                if result.confirmed:
                    decision = result.entry.signal_data["decision"]
                    position = self._open_position(decision, candle)
                continue

            # 4 — Entry evaluation
            try:
                decision = self._evaluate(candles, i, candles_1m, minute_times)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Entry evaluation failed at bar %d", i)
                errors.append(f"bar {i}: {exc}")
                continue

            if decision is None:
                continue
            if decision.signal.confidence < cfg.min_confidence:
                logger.debug(
                    "Decision below min confidence: %.1f < %.1f",
                    decision.signal.confidence, cfg.min_confidence,
                )
                continue

            direction = decision.signal.direction
            if (
                cfg.use_entry_confirmation
                and decision.key_level is not None
                and self._confirmation.is_enabled(direction)
            ):
                pending_id = self._confirmation.add_pending(
                    cfg.symbol, direction, decision.key_level,
                    signal_data={"decision": decision}, now=candle.timestamp,
                )
                pending_at = candle.timestamp
                continue

            position = self._open_position(decision, candle)

        # Close any remaining position at the last candle close
        if position is not None:
            last = candles[-1]
            trade = self._close(position, last.close, last.timestamp, END_OF_BACKTEST)
            balance += trade.pnl
            tracker.update(balance)
            trades.append(trade)
            equity_curve.append(balance)

        summary = calculate_stats(trades, cfg.initial_balance, cfg.symbol)
        logger.info(
            "Backtest done: %d trades, win rate %.1f%%, pnl %.2f, max drawdown %.2f%%",
            summary["total_trades"], summary["win_rate"],
            summary["total_pnl"], summary["max_drawdown"],
        )
        return BacktestResult(
            symbol=cfg.symbol,
            initial_balance=cfg.initial_balance,
            final_balance=balance,
            trades=tuple(trades),
            summary=summary,
            config=cfg,
            equity_curve=tuple(equity_curve),
            errors=tuple(errors),
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _evaluate(
        self,
        candles: Sequence[CandleData],
        i: int,
        candles_1m: Sequence[CandleData],
        minute_times: list[int],
    ) -> Optional[StrategySignal]:
        window = candles[max(0, i - self._config.window_bars + 1) : i + 1]
        # 1m candles that closed by the end of this 5m bar
        end = bisect.bisect_left(minute_times, candles[i].timestamp + BAR_MS)
        minutes = candles_1m[max(0, end - ONE_MINUTE_WINDOW) : end]
        market_data = prepare_market_data(self._config.symbol, window, minutes)
        return self._coordinator.evaluate_strategies(market_data)

    def _open_position(self, decision: StrategySignal, candle: CandleData) -> Position:
        cfg = self._config
        direction = decision.signal.direction
        entry = candle.close
        levels = calculate_percent_levels(
            entry, direction, cfg.stop_loss_percent, cfg.take_profit_percents,
        )
        tp1, tp2, tp3 = levels.take_profits
        position = Position(
            side=direction,
            entry_price=entry,
            entry_time=candle.timestamp,
            quantity=calculate_quantity(cfg.position_size_usdt, entry, cfg.leverage),
            stop_loss=levels.stop_loss,
            take_profit_1=tp1,
            take_profit_2=tp2,
            take_profit_3=tp3,
            entry_reason=decision.reason,
        )
        logger.info(
            "Opened %s at %.4f qty=%.6f SL=%.4f TP=%.4f/%.4f/%.4f",
            direction.value, entry, position.quantity, position.stop_loss, tp1, tp2, tp3,
        )
        return position

    def _check_exit(self, position: Position, candle: CandleData) -> Optional[Trade]:
        """Close on SL or TP3, mark TP1/TP2.

        When SL and a TP are both touched in one candle, SL is assumed
        first (conservative).
        """
        if position.side == Direction.LONG:
            sl_hit = candle.low <= position.stop_loss
            reached = [candle.high >= tp for tp in position.take_profits]
        else:
            sl_hit = candle.high >= position.stop_loss
            reached = [candle.low <= tp for tp in position.take_profits]

        if sl_hit:
            return self._close(position, position.stop_loss, candle.timestamp, "SL")

        if reached[0] and not position.tp1_hit:
            position.tp1_hit = True
            logger.info("TP1 reached at %.4f", position.take_profit_1)
        if reached[1] and not position.tp2_hit:
            position.tp2_hit = True
            logger.info("TP2 reached at %.4f", position.take_profit_2)
        if reached[2]:
            position.tp3_hit = True
            return self._close(position, position.take_profit_3, candle.timestamp, "TP3")
        return None

    def _close(
        self, position: Position, exit_price: float, exit_time: int, reason: str,
    ) -> Trade:
        result = calculate_pnl(
            position.side, position.entry_price, exit_price,
            position.quantity, self._config.taker_fee,
        )
        trade = trade_from_position(
            position, exit_price, exit_time, reason,
            pnl=result.pnl_net, pnl_percent=result.pnl_percent, fees=result.fees,
        )
        logger.info(
            "Closed %s at %.4f (%s) pnl=%.4f",
            position.side.value, exit_price, reason, result.pnl_net,
        )
        return trade
