"""Strategy coordinator — weighted aggregation of many strategy opinions.

Every registered strategy votes on the same ``MarketData`` snapshot.  Votes
are bucketed by direction and scored as ``Σ confidence/100 * weight``; the
higher-scoring direction wins when it dominates the total score and its
aggregated confidence survives the blind-zone penalty and the minimum
confidence threshold.
"""

import logging
from typing import Optional

from signalcore.models.component_config import CoordinatorConfig
from signalcore.strategy.base import StrategyOutcome, StrategyProtocol, run_strategy
from signalcore.strategy.models import Direction, MarketData, Signal, StrategySignal
from signalcore.strategy.weights import MAX_CONFIDENCE

logger = logging.getLogger("signalcore.coordinator")

COORDINATOR_NAME = "SignalCoordinator"

_VOTING = (Direction.LONG, Direction.SHORT)


class StrategyCoordinator:
    """Registers strategies and folds their outcomes into one decision.

    Args:
        config: Aggregation thresholds.

    Market-context weighting is applied by the strategies to their own
    votes, so the coordinator only folds confidences.
    """

    def __init__(self, config: Optional[CoordinatorConfig] = None) -> None:
        self._config = config or CoordinatorConfig()
        self._strategies: list[StrategyProtocol] = []
        self.min_score_ratio = self._config.min_score_ratio
        self.min_avg_confidence = self._config.min_avg_confidence
        self.last_outcomes: list[StrategyOutcome] = []

    # ── Registration ─────────────────────────────────────────────────────

    def register_strategy(self, strategy: StrategyProtocol) -> None:
        """Add *strategy*, replacing any registered strategy with the same name."""
        if not isinstance(strategy, StrategyProtocol):
            raise ValueError("Missing or invalid: strategy (must implement evaluate)")
        self._strategies = [s for s in self._strategies if s.name != strategy.name]
        self._strategies.append(strategy)
        self._strategies.sort(key=lambda s: s.priority)
        logger.info(
            "Registered strategy %s (priority %d, total %d)",
            strategy.name, strategy.priority, len(self._strategies),
        )

    def unregister_strategy(self, name: str) -> bool:
        before = len(self._strategies)
        self._strategies = [s for s in self._strategies if s.name != name]
        removed = len(self._strategies) < before
        if removed:
            logger.info("Unregistered strategy %s", name)
        return removed

    def get_strategies(self) -> list[StrategyProtocol]:
        """Registered strategies in ascending priority order (a copy)."""
        return list(self._strategies)

    def get_strategy_count(self) -> int:
        return len(self._strategies)

    def has_strategy(self, name: str) -> bool:
        return any(s.name == name for s in self._strategies)

    def clear_strategies(self) -> None:
        self._strategies.clear()

    def set_thresholds(self, min_score_ratio: float, min_avg_confidence: float) -> None:
        """Override the acceptance thresholds."""
        if not 0.0 <= min_score_ratio <= 1.0:
            raise ValueError("Missing or invalid: min_score_ratio (0.0-1.0)")
        if not 0.0 <= min_avg_confidence <= MAX_CONFIDENCE:
            raise ValueError("Missing or invalid: min_avg_confidence (0-100)")
        self.min_score_ratio = min_score_ratio
        self.min_avg_confidence = min_avg_confidence
        logger.info(
            "Thresholds updated: min_score_ratio=%.2f min_avg_confidence=%.1f",
            min_score_ratio, min_avg_confidence,
        )

    # ── Evaluation ───────────────────────────────────────────────────────

    def evaluate_strategies(
        self,
        market_data: MarketData,
        exclude_realtime_only: bool = True,
    ) -> Optional[StrategySignal]:
        """Run every eligible strategy and aggregate the votes.

        Returns the aggregated ``StrategySignal`` or ``None`` when no
        direction passes both thresholds.
        """
        eligible = [
            s for s in self._strategies
            if not (exclude_realtime_only and getattr(s, "realtime_only", False))
        ]
        if not eligible:
            logger.debug("No eligible strategies registered")
            self.last_outcomes = []
            return None

        outcomes = [run_strategy(s, market_data) for s in eligible]
        self.last_outcomes = outcomes

        for outcome in outcomes:
            if not outcome.ok:
                logger.error(
                    "Strategy %s failed: %s", outcome.strategy_name, outcome.error,
                )

        votes = [
            o.result for o in outcomes
            if o.has_vote and o.result.signal.direction in _VOTING
        ]
        return self.aggregate(votes)

    def aggregate(self, votes: list[StrategySignal]) -> Optional[StrategySignal]:
        """Fold valid directional votes into one decision (no strategy calls)."""
        if not votes:
            logger.debug("No valid signals to aggregate")
            return None

        buckets: dict[Direction, list[StrategySignal]] = {d: [] for d in _VOTING}
        for vote in votes:
            buckets[vote.signal.direction].append(vote)

        scores = {
            d: sum(v.signal.score for v in bucket) for d, bucket in buckets.items()
        }
        total = sum(scores.values())
        long_score, short_score = scores[Direction.LONG], scores[Direction.SHORT]
        score_view = {d.value: round(s, 4) for d, s in scores.items()}

        if total <= 0 or long_score == short_score:
            logger.debug("No winning direction: scores %s", score_view)
            return None

        winner = Direction.LONG if long_score > short_score else Direction.SHORT
        winning = buckets[winner]
        ratio = scores[winner] / total

        if ratio <= self.min_score_ratio:
            logger.debug(
                "%s rejected: score ratio %.2f <= %.2f",
                winner.value, ratio, self.min_score_ratio,
            )
            return None

        confidence = self._weighted_confidence([v.signal for v in winning])

        if len(winning) < self._config.blind_zone_min_signals:
            penalised = confidence * self._config.blind_zone_penalty
            logger.debug(
                "Blind-zone penalty: %d/%d signals, confidence %.1f -> %.1f",
                len(winning), self._config.blind_zone_min_signals, confidence, penalised,
            )
            confidence = penalised

        confidence = max(self._config.confidence_floor, min(MAX_CONFIDENCE, confidence))

        if confidence <= self.min_avg_confidence:
            logger.debug(
                "%s rejected: confidence %.1f <= %.1f",
                winner.value, confidence, self.min_avg_confidence,
            )
            return None

        ranked = sorted(winning, key=lambda v: v.signal.priority)
        top = ranked[0]
        key_level = next((v.key_level for v in ranked if v.key_level is not None), None)

        decision = StrategySignal(
            valid=True,
            strategy_name=COORDINATOR_NAME,
            reason=(
                f"{winner.value} | Score {scores[winner]:.2f}/{total:.2f} "
                f"({ratio:.0%}) | {len(winning)} signals | "
                f"confidence {confidence:.1f}"
            ),
            signal=Signal(
                source=COORDINATOR_NAME,
                direction=winner,
                confidence=confidence,
                weight=1.0,
                priority=top.signal.priority,
            ),
            key_level=key_level,
            stop_loss=top.stop_loss,
            contributors=tuple(v.signal for v in winning),
            scores=score_view,
        )
        logger.info("Coordinator decision: %s", decision.reason)
        return decision

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _weighted_confidence(signals: list[Signal]) -> float:
        total_weight = sum(s.weight for s in signals)
        if total_weight <= 0:
            return sum(s.confidence for s in signals) / len(signals)
        return sum(s.confidence * s.weight for s in signals) / total_weight
