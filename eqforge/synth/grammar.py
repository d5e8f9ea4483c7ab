"""
eqforge/synth/grammar.py
Grammar-based broadening

Builds a fresh sub-expression bottom-up (atoms -> terms -> module) and
blends it into the existing expression as base + blend * module.

Complexity scales super-linearly: complexity 8 is complex but readable,
10 is egregious. Class flavor biases the wrapper pool; broadening loosens
that bias.

Every fragment carries a conservative bound on |value| over the input box
|x|, |a|..|d| <= input_bound. Whenever a step could push the bound past the
magnitude ceiling, the fragment goes through the atan soft limiter, so no
intermediate can overflow to inf (and no inf - inf can make a NaN).
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config import GRAMMAR_CONFIG, GrammarConfig
from ..models import FlavorProfile, InstrumentClass
from ..numeric import clamp, clamp01, format_num, round_half_up
from ..profiles import flavor_for
from ..safety import (
    EPS_VALUE,
    safe_div,
    safe_exp,
    safe_log,
    safe_pow,
    safe_sqrt,
    soft_limit,
)
from ..seeds import SeededRng
from .base import StrategyDefinition, SynthesisStrategy

logger = logging.getLogger(__name__)

# x dominant; a/b/c/d occasionally
VARIABLE_POOL = ("x", "x", "x", "a", "b", "c", "d")
TERM_OPS = ("+", "-", "+", "-", "*")
NEST_OPS = ("+", "-", "*")
SUM_OPS = ("+", "-", "+", "-")


@dataclass(frozen=True)
class Fragment:
    """Expression text plus an upper bound on its absolute value."""
    text: str
    bound: float


@dataclass(frozen=True)
class Intensity:
    """Scalar intensities derived from the dials for one run."""
    amount: float
    complexity: float
    randomness: float
    dense: float
    egregious: float
    loosen: float

    @classmethod
    def from_dials(cls, amount: float, complexity: float, randomness: float) -> "Intensity":
        a = clamp01(amount)
        c = clamp(complexity, 1, 10)
        r = clamp01(randomness)
        cn = c / 10
        egregious = cn ** 6
        return cls(
            amount=a,
            complexity=c,
            randomness=r,
            dense=cn ** 3,
            egregious=egregious,
            loosen=a * 0.8 + r * 0.3 + egregious * 0.5,
        )


class _Builder:
    """One run's worth of grammar state: rng, flavor, intensities."""

    def __init__(self, rng: SeededRng, flavor: FlavorProfile, k: Intensity, config: GrammarConfig):
        self.rng = rng
        self.flavor = flavor
        self.k = k
        self.cfg = config

    # --- magnitude guard ---

    def settle(self, frag: Fragment) -> Fragment:
        if frag.bound <= self.cfg.magnitude_ceiling:
            return frag
        scale = self.cfg.limiter_scale
        return Fragment(soft_limit(frag.text, scale), scale * math.pi / 2)

    def join(self, left: Fragment, op: str, right: Fragment) -> Fragment:
        if op == "*":
            bound = left.bound * right.bound
        else:
            bound = left.bound + right.bound
        return self.settle(Fragment(f"({left.text} {op} {right.text})", bound))

    # --- atoms ---

    def coeff(self) -> Fragment:
        rng, k = self.rng, self.k
        mag = 0.15 + rng() * (1.7 + 6.0 * k.randomness + 4.0 * k.loosen)
        sign = -1 if rng.chance(0.5) else 1
        snap = rng.chance(self.flavor.snap + 0.45 * k.randomness)
        v = round_half_up(sign * mag) if snap else sign * mag
        text = format_num(v)
        return Fragment(text, abs(float(text)))

    def atom(self) -> Fragment:
        rng = self.rng
        if rng.chance(0.55):
            v = rng.choice(VARIABLE_POOL)
            var = Fragment(v, self.cfg.input_bound)
            if rng.chance(0.6):
                return var
            c = self.coeff()
            return Fragment(f"{c.text}*{v}", c.bound * var.bound)
        return self.coeff()

    # --- wrappers ---

    def wrap(self, frag: Fragment) -> Fragment:
        rng, f, k = self.rng, self.flavor, self.k
        ops: List[Callable[[Fragment], Fragment]] = []

        if rng.chance(f.trig + k.loosen * 0.2):
            ops.extend([
                lambda e: Fragment(f"sin({e.text})", 1.0),
                lambda e: Fragment(f"cos({e.text})", 1.0),
                lambda e: Fragment(f"tan({e.text})", self.cfg.tan_bound),
            ])
        if rng.chance(f.shaper + k.loosen * 0.2):
            ops.extend([
                lambda e: Fragment(f"tanh({e.text})", 1.0),
                lambda e: Fragment(f"atan({e.text})", math.pi / 2),
            ])
        if rng.chance(f.log + k.loosen * 0.25):
            ops.append(lambda e: Fragment(
                safe_log(e.text),
                max(-math.log(EPS_VALUE), math.log(e.bound + EPS_VALUE)),
            ))
        if rng.chance(f.exp + k.loosen * 0.25):
            # bounded exp only
            kexp = 0.6 + 1.8 * (k.dense + k.loosen)
            ops.append(lambda e: Fragment(safe_exp(e.text, kexp), math.exp(abs(kexp))))

        # abs/sqrt guards, available to every class
        if rng.chance(0.25 + k.loosen * 0.25):
            ops.extend([
                lambda e: Fragment(f"abs({e.text})", e.bound),
                lambda e: Fragment(safe_sqrt(e.text), math.sqrt(e.bound + EPS_VALUE)),
            ])

        if not ops:
            return frag
        return self.settle(rng.choice(ops)(frag))

    # --- terms ---

    def term(self) -> Fragment:
        rng, k = self.rng, self.k
        a, c, r = k.amount, k.complexity, k.randomness
        expr = self.atom()

        combos = 1 + math.floor(
            rng() * (1 + c * 0.7 + k.dense * 4 + k.egregious * 10) * (0.35 + 0.65 * a)
        )
        for _ in range(combos):
            op = rng.choice(TERM_OPS)
            expr = self.join(expr, op, self.atom())
            if rng.chance((0.06 + k.egregious * 0.35) * (0.4 + a)):
                outer = rng.choice(NEST_OPS)
                left = self.atom()
                inner = rng.choice(NEST_OPS)
                nested = self.join(left, inner, self.atom())
                expr = self.join(expr, outer, nested)

        # Guarded division shows up more at high broadening/complexity
        if rng.chance((0.08 + k.dense * 0.25 + k.egregious * 0.35) * (0.2 + 0.8 * a)):
            den = self.atom()
            expr = self.settle(Fragment(safe_div(expr.text, den.text), expr.bound / EPS_VALUE))

        # Small safe pow: pow(abs(e) + eps, p) with p > 0
        if rng.chance((0.06 + k.dense * 0.20 + k.egregious * 0.30) * (0.2 + 0.8 * a)):
            choices = ["2", "3", "0.5", format_num(1 + rng() * (1.2 + 2.0 * k.loosen))]
            p = rng.choice(choices)
            base = max(1.0, expr.bound + EPS_VALUE)
            expr = self.settle(Fragment(safe_pow(expr.text, p), base ** float(p)))

        wraps = math.floor(
            rng() * (c * 0.8 + k.dense * 8 + k.egregious * 22 + r * 5) * (0.25 + 0.75 * a)
        )
        for _ in range(wraps):
            expr = self.wrap(expr)

        return expr

    def module(self) -> Fragment:
        rng, k = self.rng, self.k
        n_terms = max(1, round_half_up(
            (1 + k.complexity * 1.3 + k.dense * 6 + k.egregious * 18) * (0.15 + 0.85 * k.amount)
        ))

        mod = self.term()
        mult_bias = self.flavor.mul + k.loosen * 0.25 + k.egregious * 0.25
        for _ in range(1, n_terms):
            op = "*" if rng.chance(mult_bias) else rng.choice(SUM_OPS)
            mod = self.join(mod, op, self.term())
        return mod


def blend_weight(amount: float, dense: float, config: Optional[GrammarConfig] = None) -> float:
    cfg = config or GRAMMAR_CONFIG
    return clamp(0.05 + 0.40 * amount + 0.25 * dense, *cfg.blend_range)


class GrammarBroadener(SynthesisStrategy):
    """Blend a freshly grown, class-flavored module into the expression."""

    def __init__(self, config: Optional[GrammarConfig] = None):
        self.config = config or GRAMMAR_CONFIG
        self._definition = StrategyDefinition(
            name="grammar",
            display_name="Grammar Broadener",
            description="Grow a guarded sub-expression and blend it into the current one",
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
        base = (expr or "").strip() or self.config.fallback_expression
        flavor = flavor_for(instrument)
        k = Intensity.from_dials(amount, complexity, randomness)

        mod = _Builder(rng, flavor, k, self.config).module()

        blend = format_num(blend_weight(k.amount, k.dense, self.config))
        out = f"({base} + ({blend} * ({mod.text})))"

        # Optional soft ceiling; FX and high broadening clamp less often
        if rng.chance(flavor.clamp * (0.35 + 0.65 * (1 - k.loosen))):
            scale = format_num(0.8 + 0.25 * k.complexity + 0.6 * k.randomness)
            out = f"(tanh({out}) * {scale})"

        logger.debug(f"Grammar module bound {mod.bound:.3g}, {len(out)} chars")
        return out
