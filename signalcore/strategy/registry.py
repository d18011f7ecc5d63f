"""Strategy registry — maps strategy names to classes.

Used by the CLI and the live engine to build a coordinator from settings.
"""

from signalcore.config import BotSettings
from signalcore.strategy.base import StrategyProtocol
from signalcore.strategy.breakout_retest import BreakoutRetestStrategy
from signalcore.strategy.coordinator import StrategyCoordinator
from signalcore.strategy.level_based import LevelBasedStrategy
from signalcore.strategy.trend_following import TrendFollowingStrategy
from signalcore.strategy.weights import WeightCalculator


STRATEGY_REGISTRY: dict[str, type] = {
    "level_based": LevelBasedStrategy,
    "trend_following": TrendFollowingStrategy,
    "breakout_retest": BreakoutRetestStrategy,
}

DEFAULT_STRATEGIES = ("breakout_retest", "level_based", "trend_following")


def get_strategy(name: str, **kwargs) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Keyword arguments are passed to the strategy constructor.
    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name](**kwargs)


def build_coordinator(
    settings: BotSettings,
    names: tuple[str, ...] = DEFAULT_STRATEGIES,
) -> StrategyCoordinator:
    """Coordinator with the named strategies wired to *settings*."""
    weights = WeightCalculator(settings.weight_system)
    coordinator = StrategyCoordinator(settings.coordinator)
    for name in names:
        if name == "level_based":
            strategy = get_strategy(name, weight_calculator=weights)
        elif name == "breakout_retest":
            strategy = get_strategy(name, config=settings.daily_level)
        else:
            strategy = get_strategy(name)
        coordinator.register_strategy(strategy)
    return coordinator
