"""
eqforge/synth/__init__.py
Strategy registry - named expression synthesizers
"""

import logging
from typing import Dict, List, Optional, Union

from ..models import InstrumentClass, MutationConfig
from ..seeds import SeededRng
from .base import StrategyDefinition, SynthesisStrategy

logger = logging.getLogger(__name__)

# Global registry
_REGISTRY: Dict[str, SynthesisStrategy] = {}


def register_strategy(strategy: SynthesisStrategy) -> None:
    """Register a synthesis strategy."""
    name = strategy.definition.name
    if name in _REGISTRY:
        raise ValueError(f"Strategy {name} already registered")
    _REGISTRY[name] = strategy


def get_strategy(name: str) -> Optional[SynthesisStrategy]:
    """Get a registered strategy by name."""
    return _REGISTRY.get(name)


def list_strategies() -> List[str]:
    """List all registered strategy names."""
    return list(_REGISTRY.keys())


def get_all_strategies() -> Dict[str, SynthesisStrategy]:
    return dict(_REGISTRY)


# =============================================================================
# Facade
# =============================================================================

class Synthesizer:
    """
    Runs one strategy with clamped dials.

    Accepts either a registered name or a strategy instance.
    """

    def __init__(self, strategy: Union[str, SynthesisStrategy]):
        if isinstance(strategy, str):
            found = get_strategy(strategy)
            if found is None:
                raise ValueError(
                    f"Unknown strategy {strategy!r} (available: {', '.join(list_strategies())})"
                )
            strategy = found
        self.strategy = strategy

    @property
    def name(self) -> str:
        return self.strategy.name

    def generate(
        self,
        expr: str,
        rng: SeededRng,
        instrument: InstrumentClass,
        amount: float,
        complexity: float,
        randomness: float,
        seed: str = "",
    ) -> str:
        dials = MutationConfig.from_raw(seed, amount, complexity, randomness)
        out = self.strategy.generate(
            expr, rng, instrument, dials.amount, dials.complexity, dials.randomness
        )
        logger.debug(f"{self.name} produced {len(out)} chars for {instrument.value}")
        return out


# =============================================================================
# Auto-registration of built-in strategies
# =============================================================================

def _register_builtins():
    """Register the built-in strategies."""
    # Import here to avoid circular imports
    from .grammar import GrammarBroadener
    from .mutate import PassMutator

    register_strategy(GrammarBroadener())
    register_strategy(PassMutator())


# Register on import
_register_builtins()


__all__ = [
    "StrategyDefinition",
    "SynthesisStrategy",
    "Synthesizer",
    "register_strategy",
    "get_strategy",
    "list_strategies",
    "get_all_strategies",
]
