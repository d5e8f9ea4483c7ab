"""
eqforge/ranges.py
Range widener

Broadens the per-class baseline [min, max] ranges that feed the host's
safe randomizer. Growth is nonlinear in amount, so small amounts stay close
to the baseline; each range gets its own jitter draw. Midpoints never move.
"""

import logging
from typing import Optional

from .config import WIDEN_CONFIG, WidenConfig
from .models import InstrumentClass, Range, RangeBounds
from .numeric import clamp01
from .profiles import target_for
from .seeds import SeededRng

logger = logging.getLogger(__name__)

# Draw order is part of the seeded contract
RANGE_ORDER = ("a", "b", "c", "d", "x_offset")


def growth(amount: float, config: Optional[WidenConfig] = None) -> float:
    cfg = config or WIDEN_CONFIG
    return 1 + clamp01(amount) ** cfg.growth_exponent * cfg.growth_factor


def widen_range(
    base: Range,
    grow: float,
    jitter: float,
    extra: float,
) -> Range:
    lo, hi = base
    mid = (lo + hi) * 0.5
    half = (hi - lo) * 0.5
    new_half = half * grow * jitter + extra
    return (mid - new_half, mid + new_half)


def widen_ranges(
    instrument: InstrumentClass,
    rng: SeededRng,
    amount: float,
    config: Optional[WidenConfig] = None,
) -> RangeBounds:
    """
    Widen the class baselines for a, b, c, d and x offset.

    Args:
        instrument: Concrete instrument class
        rng: Run generator; exactly five draws, in RANGE_ORDER
        amount: Broadening amount, 0-1
        config: Growth curve (uses default if None)

    Returns:
        RangeBounds with the same midpoints as the baselines
    """
    if config is None:
        config = WIDEN_CONFIG

    a = clamp01(amount)
    grow = growth(a, config)
    extra_sym = config.extra_fx if instrument is InstrumentClass.FX else config.extra_default
    extra = extra_sym * a * config.extra_weight

    baselines = target_for(instrument).param_ranges
    widened = {}
    for name in RANGE_ORDER:
        jitter = rng.uniform(*config.jitter_range)
        widened[name] = widen_range(baselines[name], grow, jitter, extra)

    logger.debug(f"Widened {instrument.value} ranges: grow={grow:.3f} extra={extra:.3f}")
    return RangeBounds(**widened)
