"""
eqforge/synth/mutate.py
Pass-based mutation

Applies a handful of small, bounded edits to the existing expression:
harmonic terms, amplitude modulation, symmetry tweaks and tanh shaping.

Character: stays close to the input; good for "improve this patch".
"""

import logging
import math
from typing import Optional

from ..config import MUTATE_CONFIG, MutateConfig
from ..models import InstrumentClass
from ..numeric import clamp, format_num, round_half_up
from ..safety import is_shaped, soft_shape
from ..seeds import SeededRng
from .base import StrategyDefinition, SynthesisStrategy

logger = logging.getLogger(__name__)


def pass_count(amount: float, complexity: float, max_passes: int = 10) -> int:
    return int(clamp(round_half_up(1 + amount * 3 + complexity * 0.6), 1, max_passes))


class PassMutator(SynthesisStrategy):
    """Mutate an expression in 1-10 bounded passes."""

    def __init__(self, config: Optional[MutateConfig] = None):
        self.config = config or MUTATE_CONFIG
        self._definition = StrategyDefinition(
            name="mutate",
            display_name="Pass Mutator",
            description="Harmonics, AM, symmetry and tanh shaping over the current expression",
            max_length=self.config.max_length,
        )

    @property
    def definition(self) -> StrategyDefinition:
        return self._definition

    def generate(
        self,
        expr: str,
        rng: SeededRng,
        instrument: InstrumentClass,
        amount: float,
        complexity: int,
        randomness: float,
    ) -> str:
        cfg = self.config
        out = (expr or "").strip() or cfg.fallback_expression

        already_shaped = is_shaped(out)
        shaped = False
        budget = cfg.max_length - cfg.shaping_reserve

        for _ in range(pass_count(amount, complexity, cfg.max_passes)):
            r = rng()
            candidate = None

            if r < cfg.harmonic_band + randomness * cfg.harmonic_band_randomness:
                # Harmonic / subharmonic term
                mult = clamp(rng.uniform(0.25, 6.0), 0.1, 12)
                amp = clamp(rng.uniform(0.08, 0.45) * (0.6 + amount * 0.8), 0.05, 0.65)
                ph = rng.uniform(-math.pi, math.pi)
                term = f"{format_num(amp)}*sin(x*{format_num(mult)} + {format_num(ph)})"
                candidate = f"({out}) + ({term})"

            elif r < cfg.am_band + randomness * cfg.am_band_randomness:
                # Mild ring-mod / AM
                mult = clamp(rng.uniform(0.5, 8.0), 0.1, 16)
                depth = clamp(rng.uniform(0.15, 0.75) * (0.4 + amount), 0.08, 0.95)
                dd = format_num(depth)
                candidate = f"({out}) * (1 - {dd} + {dd}*sin(x*{format_num(mult)}))"

            elif r < cfg.symmetry_band:
                # Symmetry tweaks
                if instrument.percussive or rng() < 0.35:
                    k = format_num(rng.uniform(0.1, 0.5))
                    candidate = f"({out}) - ({k})*abs({out})"
                else:
                    k = format_num(rng.uniform(0.05, 0.35))
                    candidate = f"({out}) + ({k})*cos({out})"

            elif not already_shaped or rng() < 0.5:
                # Nonlinear shaping
                k = clamp(0.65 + amount * 1.2 + rng.uniform(-0.25, 0.25), 0.4, 2.1)
                candidate = soft_shape(out, k)
                if len(candidate) <= budget:
                    shaped = True

            if candidate is not None:
                if len(candidate) <= budget:
                    out = candidate
                else:
                    logger.debug(f"Skipped pass: {len(candidate)} chars exceeds budget {budget}")

        if not (already_shaped or shaped):
            k_final = clamp(0.85 + amount * 0.8, 0.6, 1.6)
            out = soft_shape(out, k_final)

        if len(out) > cfg.max_length:
            # Only reachable when the input itself was over budget
            logger.warning(f"Expression truncated from {len(out)} to {cfg.max_length} chars")
            out = out[:cfg.max_length]

        return out
