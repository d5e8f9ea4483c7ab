"""
eqforge/synth/base.py
Base class for expression synthesis strategies

Each strategy defines:
- A definition (name, display name, what it guarantees)
- generate(): old expression + rng + class + dials -> new expression
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..models import InstrumentClass
from ..seeds import SeededRng


@dataclass
class StrategyDefinition:
    """Identity and contract of a synthesis strategy."""
    name: str                # registry key, e.g. "grammar"
    display_name: str        # e.g. "Grammar Broadener"
    description: str
    max_length: int = 0      # 0 = no length cap


class SynthesisStrategy(ABC):
    """
    Abstract base class for expression synthesis strategies.

    Implementations must only emit guarded primitives, so any expression
    they return evaluates to a finite number for finite inputs.
    """

    @property
    @abstractmethod
    def definition(self) -> StrategyDefinition:
        """Return the strategy definition."""
        pass

    @abstractmethod
    def generate(
        self,
        expr: str,
        rng: SeededRng,
        instrument: InstrumentClass,
        amount: float,
        complexity: int,
        randomness: float,
    ) -> str:
        """
        Produce a new expression from an existing one.

        Args:
            expr: Current expression (blank means use the strategy fallback)
            rng: Seeded generator; all randomness must come from it
            instrument: Concrete instrument class
            amount: Broadening amount, 0-1
            complexity: Structural complexity, 1-10
            randomness: Variation per run, 0-1

        Returns:
            New expression string
        """
        pass

    @property
    def name(self) -> str:
        return self.definition.name
