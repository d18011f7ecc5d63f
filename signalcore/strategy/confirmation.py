"""Entry confirmation — wait for the next candle close before entering.

A LONG detected at support is held as *pending* until the next candle
closes; it is confirmed when the close holds at or above support (within
tolerance) and rejected as a falling knife otherwise.  SHORT mirrors this
at resistance.  Each pending entry resolves exactly once and is then
removed.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from signalcore.models.component_config import (
    DirectionConfirmationConfig,
    EntryConfirmationConfig,
)
from signalcore.strategy.models import Direction

logger = logging.getLogger("signalcore.confirmation")

Clock = Callable[[], int]


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class PendingEntry:
    """A directional entry waiting for its confirming candle."""

    id: str
    symbol: str
    direction: Direction
    key_level: float
    detected_at: int
    expires_at: int
    signal_data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ConfirmationResult:
    confirmed: bool
    reason: str
    close_price: Optional[float] = None
    key_level: Optional[float] = None
    entry: Optional[PendingEntry] = None


class EntryConfirmationManager:
    """Owns the pending entries of one trading loop.

    Args:
        config: Per-direction confirmation rules.
        clock: Returns the current time in epoch milliseconds.  Every
            method also accepts an explicit ``now`` (candle time in a replay).
    """

    def __init__(
        self,
        config: Optional[EntryConfirmationConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config or EntryConfirmationConfig()
        self._clock = clock or _wall_clock_ms
        self._pending: dict[str, PendingEntry] = {}

    def _rules(self, direction: Direction) -> DirectionConfirmationConfig:
        if direction == Direction.LONG:
            return self._config.long
        if direction == Direction.SHORT:
            return self._config.short
        raise ValueError(f"Missing or invalid: direction (LONG/SHORT), got {direction!r}")

    def _now(self, now: Optional[int]) -> int:
        return self._clock() if now is None else now

    def is_enabled(self, direction: Direction) -> bool:
        if direction not in (Direction.LONG, Direction.SHORT):
            return False
        return self._rules(direction).enabled

    # ── Lifecycle ────────────────────────────────────────────────────────

    def add_pending(
        self,
        symbol: str,
        direction: Direction,
        key_level: float,
        signal_data: Optional[dict[str, Any]] = None,
        now: Optional[int] = None,
    ) -> str:
        """Store a new pending entry and return its id (``SYMBOL_DIRECTION_TS``)."""
        rules = self._rules(direction)
        if key_level <= 0:
            raise ValueError(f"Missing or invalid: key_level (> 0), got {key_level}")

        detected_at = self._now(now)
        entry_id = f"{symbol}_{direction.value}_{detected_at}"
        suffix = 1
        while entry_id in self._pending:
            entry_id = f"{symbol}_{direction.value}_{detected_at}_{suffix}"
            suffix += 1

        entry = PendingEntry(
            id=entry_id,
            symbol=symbol,
            direction=direction,
            key_level=key_level,
            detected_at=detected_at,
            expires_at=detected_at + int(rules.expiry_seconds * 1000),
            signal_data=dict(signal_data or {}),
        )
        self._pending[entry_id] = entry

        logger.info(
            "%s entry pending confirmation: id=%s %s level=%.4f expires_in=%.0fs",
            direction.value, entry_id,
            "support" if direction == Direction.LONG else "resistance",
            key_level, rules.expiry_seconds,
        )
        return entry_id

    def check_confirmation(
        self, entry_id: str, close: float, now: Optional[int] = None,
    ) -> ConfirmationResult:
        """Resolve *entry_id* against the confirming candle's *close*.

        The entry is removed whatever the outcome; a second call for the
        same id reports it as not found.
        """
        entry = self._pending.pop(entry_id, None)
        if entry is None:
            return ConfirmationResult(False, "Pending entry not found")

        if self._now(now) > entry.expires_at:
            logger.info("%s entry expired: id=%s", entry.direction.value, entry_id)
            return ConfirmationResult(
                False, "Confirmation timeout - signal expired",
                key_level=entry.key_level, entry=entry,
            )

        rules = self._rules(entry.direction)
        level = entry.key_level
        tolerance = level * rules.tolerance_percent / 100.0

        if entry.direction == Direction.LONG:
            holds = close >= level - tolerance
            distance_percent = (close - level) / level * 100.0
            beyond = close >= level
            side, move, away = "support", "bounce", "above"
            failed = "Candle closed below support - no bounce"
        else:
            holds = close <= level + tolerance
            distance_percent = (level - close) / level * 100.0
            beyond = close <= level
            side, move, away = "resistance", "rejection", "below"
            failed = "Candle closed above resistance - no rejection"

        if not holds:
            logger.info(
                "%s entry rejected: id=%s close=%.4f %s=%.4f",
                entry.direction.value, entry_id, close, side, level,
            )
            return ConfirmationResult(False, failed, close, level, entry)

        if rules.min_bounce_percent > 0 and distance_percent < rules.min_bounce_percent:
            logger.info(
                "%s entry rejected, weak %s: id=%s %.2f%% < %.2f%%",
                entry.direction.value, move, entry_id,
                distance_percent, rules.min_bounce_percent,
            )
            return ConfirmationResult(
                False,
                f"{move.capitalize()} too weak ({distance_percent:.2f}% < "
                f"{rules.min_bounce_percent}% required)",
                close, level, entry,
            )

        reason = (
            f"Candle closed {away} {side} - {move} confirmed"
            if beyond
            else f"Candle closed at {side} within tolerance - {move} confirmed"
        )
        logger.info(
            "%s entry confirmed: id=%s close=%.4f %s=%.4f",
            entry.direction.value, entry_id, close, side, level,
        )
        return ConfirmationResult(True, reason, close, level, entry)

    def cleanup_expired(self, now: Optional[int] = None) -> int:
        """Drop every pending entry past its expiry; return how many."""
        current = self._now(now)
        expired = [eid for eid, e in self._pending.items() if current > e.expires_at]
        for eid in expired:
            del self._pending[eid]
        if expired:
            logger.info("Removed %d expired pending entr%s", len(expired),
                        "y" if len(expired) == 1 else "ies")
        return len(expired)

    def cancel(self, entry_id: str) -> bool:
        removed = self._pending.pop(entry_id, None) is not None
        if removed:
            logger.info("Pending entry cancelled: id=%s", entry_id)
        return removed

    # ── Introspection ────────────────────────────────────────────────────

    def get_pending(self, entry_id: str) -> Optional[PendingEntry]:
        return self._pending.get(entry_id)

    def get_all_pending(self) -> list[PendingEntry]:
        return list(self._pending.values())

    def get_pending_count(self) -> int:
        return len(self._pending)

    def clear(self) -> None:
        self._pending.clear()
