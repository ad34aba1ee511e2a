"""Strategy registry — maps strategy names to classes.

Registry order is tick order: strategies earlier in the mapping get first
pick of the wallets each tick.
"""

from curvemm.strategy.base import StrategyProtocol
from curvemm.strategy.fee_claimer import FeeClaimerStrategy
from curvemm.strategy.price_stabilizer import PriceStabilizerStrategy
from curvemm.strategy.volume_bot import VolumeBotStrategy
from curvemm.strategy.volume_farmer import VolumeFarmerStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "price_stabilizer": PriceStabilizerStrategy,
    "volume_farmer": VolumeFarmerStrategy,
    "volume_bot": VolumeBotStrategy,
    "fee_claimer": FeeClaimerStrategy,
}


def get_strategy(name: str) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name]()


def build_strategies() -> list[StrategyProtocol]:
    """One instance of every registered strategy, in tick order."""
    return [get_strategy(name) for name in STRATEGY_REGISTRY]
