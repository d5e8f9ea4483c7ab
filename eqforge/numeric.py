"""
eqforge/numeric.py
Small numeric helpers shared by every stage

Clamping treats non-finite input as the low end of the band, so a NaN
coming from a host field can never leak into a written value.
"""

import math

from .config import FIELD_PRECISION, WRITE_PRECISION


def clamp(n: float, lo: float, hi: float) -> float:
    """Clamp n into [lo, hi]; NaN, +/-inf and unparsable input map to lo."""
    try:
        n = float(n)
    except (TypeError, ValueError):
        return lo
    if not math.isfinite(n):
        return lo
    return max(lo, min(hi, n))


def clamp01(n: float) -> float:
    return clamp(n, 0.0, 1.0)


def round_half_up(n: float) -> int:
    """Round with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(n + 0.5)


def format_num(n: float) -> str:
    """
    Render a number for embedding in an expression.

    Six decimals at most, plain decimal notation (never exponent form),
    trailing zeros dropped. Non-finite values render as "0".
    """
    if not math.isfinite(n):
        return "0"
    s = f"{round(n, 6):.6f}".rstrip("0").rstrip(".")
    if s in ("-0", ""):
        return "0"
    return s


def precision_for(key: str) -> int:
    return FIELD_PRECISION.get(key, WRITE_PRECISION)


def round_for_write(n: float, precision: int = WRITE_PRECISION) -> float:
    """Quantize a value the way it is stored in a host field."""
    return round(float(n), precision) + 0.0
