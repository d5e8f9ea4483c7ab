"""
eqforge/safety.py
Guarded expression building blocks and the finiteness probe

Every risky primitive is made safe where it is built:
- division:     denominator is abs(.) + eps
- power:        base is abs(.) + eps
- log / sqrt:   argument is abs(.) + eps
- exponential:  exp(tanh(.) * k), finite for any argument
- magnitude:    atan(e / K) * K soft limiter, identity for small e

probe_finite() checks the result numerically: it samples an expression over
random x and shape parameters and reports any non-finite output.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .compiler import compile_expression
from .config import GRAMMAR_CONFIG
from .numeric import format_num
from .seeds import stable_u32

logger = logging.getLogger(__name__)

EPS = GRAMMAR_CONFIG.epsilon
EPS_VALUE = float(EPS)

# A saturating wrapper already present somewhere in the expression
SHAPED_RE = re.compile(r"(^|\W)(tanh|atan)\s*\(")


def is_shaped(expr: str) -> bool:
    return SHAPED_RE.search(expr) is not None


# =============================================================================
# Guards
# =============================================================================

def soft_shape(expr: str, k: float) -> str:
    """Keep the wave in a friendly range without hard clipping."""
    return f"tanh({format_num(k)}*({expr}))"


def safe_exp(expr: str, k: float) -> str:
    """exp(tanh(e) * k) is bounded by e**|k| whatever e is."""
    return f"exp(tanh({expr}) * {format_num(k)})"


def safe_div(num: str, den: str) -> str:
    return f"(({num}) / (abs({den}) + {EPS}))"


def safe_pow(base: str, exponent: str) -> str:
    return f"pow(abs({base}) + {EPS}, {exponent})"


def safe_log(expr: str) -> str:
    return f"log(abs({expr}) + {EPS})"


def safe_sqrt(expr: str) -> str:
    return f"sqrt(abs({expr}) + {EPS})"


def soft_limit(expr: str, k: float) -> str:
    """Bound |e| by k * pi / 2 while leaving |e| << k untouched."""
    kk = format_num(k)
    return f"(atan(({expr}) / {kk}) * {kk})"


# =============================================================================
# Finiteness probe
# =============================================================================

@dataclass
class ProbeResult:
    """Result of sampling an expression for non-finite output."""
    passed: bool
    n_points: int
    n_nonfinite: int = 0
    max_abs: float = 0.0
    error: Optional[str] = None
    details: Dict[str, float] = field(default_factory=dict)

    @property
    def fail_reason(self) -> Optional[str]:
        if self.passed:
            return None
        return "compile" if self.error else "nan_inf"


def probe_finite(
    expr: str,
    compiler: Callable = compile_expression,
    n_points: int = 1000,
    x_range: Tuple[float, float] = (-math.pi, math.pi),
    param_range: Tuple[float, float] = (-10.0, 10.0),
    seed: Optional[int] = None,
) -> ProbeResult:
    """
    Evaluate expr at n_points random (x, a, b, c, d) tuples.

    Args:
        expr: Expression to check
        compiler: Expression compiler (default backend if omitted)
        n_points: Number of sample tuples
        x_range: Interval x is drawn from
        param_range: Interval each of a, b, c, d is drawn from
        seed: numpy seed; derived from the expression text if None

    Returns:
        ProbeResult, passed only if every sample is finite
    """
    try:
        fn = compiler(expr)
    except Exception as e:
        return ProbeResult(passed=False, n_points=n_points, error=str(e))

    if seed is None:
        seed = stable_u32("probe", expr)
    rng = np.random.default_rng(seed)

    x = rng.uniform(*x_range, size=n_points)
    a, b, c, d = (rng.uniform(*param_range, size=n_points) for _ in range(4))

    with np.errstate(all="ignore"):
        y = np.asarray(fn(x, a, b, c, d), dtype=float)
    y = np.broadcast_to(y, x.shape)

    finite = np.isfinite(y)
    n_bad = int(n_points - np.count_nonzero(finite))
    max_abs = float(np.max(np.abs(y[finite]))) if n_bad < n_points else 0.0

    if n_bad:
        logger.warning(f"Probe found {n_bad}/{n_points} non-finite samples in {expr[:60]}...")

    return ProbeResult(
        passed=n_bad == 0,
        n_points=n_points,
        n_nonfinite=n_bad,
        max_abs=max_abs,
        details={"x_lo": x_range[0], "x_hi": x_range[1],
                 "param_lo": param_range[0], "param_hi": param_range[1]},
    )


def probe_finite_batch(
    expressions: Iterable[str],
    compiler: Callable = compile_expression,
    n_points: int = 1000,
) -> List[ProbeResult]:
    """Probe several expressions; results in the same order."""
    return [probe_finite(e, compiler=compiler, n_points=n_points) for e in expressions]
