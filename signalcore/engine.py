"""SignalCore — Live trading engine (event loop).

Consumes candle-close events one at a time from an ``asyncio.Queue``:
an outstanding pending entry is resolved against the new close (an
expired one is rejected as a timeout), other expired entries are swept,
and otherwise the coordinator is asked for a decision on every
primary-interval close while no position is open.  Confirmed decisions
are handed to an executor; order routing itself happens there.  The
executor (or whatever watches the exchange) reports the close back
through ``TradingEngine.position_closed``.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from signalcore.api.routers import update_engine_status
from signalcore.models.component_config import BacktestConfig
from signalcore.risk.position_sizer import calculate_quantity
from signalcore.risk.sl_tp import calculate_percent_levels
from signalcore.strategy.confirmation import EntryConfirmationManager
from signalcore.strategy.coordinator import StrategyCoordinator
from signalcore.strategy.market_data import prepare_market_data
from signalcore.strategy.models import CandleData, StrategySignal

logger = logging.getLogger("signalcore.engine")

PRIMARY_INTERVAL = "5m"
MINUTE_INTERVAL = "1m"


@dataclass(frozen=True)
class CandleClosed:
    """A closed candle delivered by the market-data transport."""

    symbol: str
    interval: str  # "5m" or "1m"
    candle: CandleData


@dataclass(frozen=True)
class EntryOrder:
    """A confirmed entry ready for order placement."""

    symbol: str
    direction: str
    price: float
    quantity: float
    stop_loss: float
    take_profits: tuple[float, float, float]
    confidence: float
    reason: str


class OrderExecutor(Protocol):
    async def open_position(self, entry: EntryOrder) -> None:
        ...


class TradingEngine:
    """Runs the signal pipeline for one symbol.

    Args:
        coordinator: Aggregates strategy votes.
        confirmation: Pending-entry gate for this symbol.
        executor: Receives confirmed entries.
        config: Sizing, SL/TP percents, minimum confidence and window size.
        clock: Returns epoch milliseconds; drives pending-entry expiry.
        min_bars: Primary candles required before evaluating; must not
            exceed ``config.window_bars``.
    """

    def __init__(
        self,
        coordinator: StrategyCoordinator,
        confirmation: EntryConfirmationManager,
        executor: OrderExecutor,
        config: Optional[BacktestConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        min_bars: int = 50,
    ) -> None:
        self._coordinator = coordinator
        self._confirmation = confirmation
        self._executor = executor
        self._config = config or BacktestConfig()
        self._clock = clock or (lambda: int(time.time() * 1000))
        if min_bars > self._config.window_bars:
            raise ValueError(
                f"Missing or invalid: min_bars ({min_bars} exceeds "
                f"window_bars {self._config.window_bars})"
            )
        self._min_bars = min_bars
        self._candles: deque[CandleData] = deque(maxlen=self._config.window_bars)
        self._candles_1m: deque[CandleData] = deque(maxlen=60)
        self._pending_id: Optional[str] = None
        self._position_open = False
        self._running = False
        self._event_count = 0

    @property
    def symbol(self) -> str:
        return self._config.symbol

    @property
    def pending_id(self) -> Optional[str]:
        return self._pending_id

    @property
    def position_open(self) -> bool:
        return self._position_open

    def position_closed(self) -> None:
        """Mark the symbol flat so evaluation resumes on the next close."""
        if self._position_open:
            logger.info("Position closed for %s", self.symbol)
        self._position_open = False
        update_engine_status(self.symbol, position_open=False)

    def stop(self) -> None:
        """Signal the engine to stop after the current event."""
        self._running = False

    # ── Event loop ───────────────────────────────────────────────────────

    async def run(self, queue: "asyncio.Queue[Optional[CandleClosed]]") -> list[dict]:
        """Process events until stopped or a ``None`` sentinel arrives.

        Returns the per-event result dicts.
        """
        self._running = True
        results: list[dict] = []
        update_engine_status(self.symbol, running=True)

        while self._running:
            event = await queue.get()
            try:
                if event is None:
                    break
                results.append(await self.handle(event))
            except Exception as exc:
                logger.error("Event processing failed: %s", exc)
                results.append({"action": "error", "reason": str(exc)})
            finally:
                queue.task_done()

        self._running = False
        update_engine_status(self.symbol, running=False)
        return results

    # ── Single event ─────────────────────────────────────────────────────

    async def handle(self, event: CandleClosed) -> dict:
        """Process one candle-close event to completion.

        Returns a dict describing the action taken:

        - ``{"action": "skipped", "reason": "..."}``
        - ``{"action": "pending", "id": ...}``
        - ``{"action": "rejected", "reason": "..."}``
        - ``{"action": "order_submitted", ...}``
        """
        if event.symbol != self.symbol:
            return {"action": "skipped", "reason": f"other symbol {event.symbol}"}

        self._event_count += 1
        candle = event.candle
        if event.interval == MINUTE_INTERVAL:
            self._candles_1m.append(candle)
        else:
            self._candles.append(candle)

        now = self._clock()

        # Own pending entry first, so an expired one reports the timeout.
        if self._pending_id is not None:
            result = await self._resolve_pending(candle.close, now)
        elif event.interval != PRIMARY_INTERVAL:
            result = {"action": "skipped", "reason": "no pending entry"}
        elif self._position_open:
            result = {"action": "skipped", "reason": "position open"}
        else:
            result = await self._evaluate(candle, now)

        self._confirmation.cleanup_expired(now=now)

        update_engine_status(
            self.symbol,
            event_count=self._event_count,
            last_event_at=datetime.now(timezone.utc).isoformat(),
            last_close=candle.close,
            last_action=result["action"],
            last_reason=result.get("reason"),
            pending_entries=self._confirmation.get_pending_count(),
            position_open=self._position_open,
        )
        return result

    async def _resolve_pending(self, close: float, now: int) -> dict:
        entry_id, self._pending_id = self._pending_id, None
        outcome = self._confirmation.check_confirmation(entry_id, close, now=now)
        if not outcome.confirmed:
            return {"action": "rejected", "id": entry_id, "reason": outcome.reason}
        decision: StrategySignal = outcome.entry.signal_data["decision"]
        return await self._submit(decision, close)

    async def _evaluate(self, candle: CandleData, now: int) -> dict:
        if len(self._candles) < self._min_bars:
            return {
                "action": "skipped",
                "reason": f"warming up ({len(self._candles)}/{self._min_bars} candles)",
            }

        market_data = prepare_market_data(
            self.symbol, tuple(self._candles), tuple(self._candles_1m),
        )
        decision = self._coordinator.evaluate_strategies(market_data)
        if decision is None:
            return {"action": "skipped", "reason": "no signal"}

        confidence = decision.signal.confidence
        if confidence < self._config.min_confidence:
            return {
                "action": "skipped",
                "reason": f"confidence {confidence:.1f} < {self._config.min_confidence}",
            }

        direction = decision.signal.direction
        if decision.key_level is not None and self._confirmation.is_enabled(direction):
            self._pending_id = self._confirmation.add_pending(
                self.symbol, direction, decision.key_level,
                signal_data={"decision": decision}, now=now,
            )
            return {"action": "pending", "id": self._pending_id, "reason": decision.reason}

        return await self._submit(decision, candle.close)

    async def _submit(self, decision: StrategySignal, price: float) -> dict:
        cfg = self._config
        direction = decision.signal.direction
        levels = calculate_percent_levels(
            price, direction, cfg.stop_loss_percent, cfg.take_profit_percents,
            stop_loss_override=decision.stop_loss,
        )
        entry = EntryOrder(
            symbol=self.symbol,
            direction=direction.value,
            price=price,
            quantity=calculate_quantity(cfg.position_size_usdt, price, cfg.leverage),
            stop_loss=levels.stop_loss,
            take_profits=levels.take_profits,
            confidence=decision.signal.confidence,
            reason=decision.reason,
        )
        await self._executor.open_position(entry)
        self._position_open = True
        logger.info(
            "Entry submitted: %s %s at %.4f SL=%.4f",
            entry.direction, self.symbol, price, entry.stop_loss,
        )
        update_engine_status(self.symbol, last_order_at=datetime.now(timezone.utc).isoformat())
        return {
            "action": "order_submitted",
            "direction": entry.direction,
            "price": price,
            "stop_loss": entry.stop_loss,
            "reason": decision.reason,
        }


class PaperExecutor:
    """Records entries instead of routing them to an exchange."""

    def __init__(self) -> None:
        self.entries: list[EntryOrder] = []

    async def open_position(self, entry: EntryOrder) -> None:
        self.entries.append(entry)
        logger.info(
            "Paper entry: %s %s qty=%.6f at %.4f",
            entry.direction, entry.symbol, entry.quantity, entry.price,
        )
