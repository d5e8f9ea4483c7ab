"""
eqforge/analyze.py
One-period signal analysis

Samples a candidate expression over [-pi, pi] the way the synth plays it
(x scale, x offset, mirroring, y scale) and extracts:
- mean: DC offset
- rms:  loudness
- peak: max |y|

Each finite sample is clamped to +/-50 first so one pathological spike
cannot dominate the statistics. Non-finite samples are dropped; more than
10% of them marks the signal invalid.
"""

import logging
import math
from typing import Callable, Optional

import numpy as np

from .compiler import compile_expression
from .config import ANALYZER_CONFIG, AnalyzerConfig
from .models import AnalysisResult, AnalysisStatus

logger = logging.getLogger(__name__)

MIRROR_ABS = 1       # bit 0: reflect to abs(x)
MIRROR_NEG_ABS = 2   # bit 1: reflect to -abs(x)


def sample_points(
    x_scale: float,
    x_offset: float,
    mirror_mask: int,
    n_samples: int,
) -> np.ndarray:
    """x positions for one period after scale, offset and mirroring."""
    x = np.linspace(-np.pi, np.pi, n_samples)
    x = x * x_scale + x_offset
    mask = int(mirror_mask)
    if mask & MIRROR_ABS:
        x = np.abs(x)
    if mask & MIRROR_NEG_ABS:
        x = -np.abs(x)
    return x


def _sample(fn: Callable, x: float, a: float, b: float, c: float, d: float) -> float:
    """One scalar evaluation; arithmetic and domain errors become NaN."""
    try:
        return float(fn(x, a, b, c, d))
    except (ArithmeticError, ValueError, TypeError):
        return math.nan


def evaluate(
    fn: Callable,
    x: np.ndarray,
    a: float,
    b: float,
    c: float,
    d: float,
) -> np.ndarray:
    """
    Evaluate a compiled expression over every sample position.

    Vectorized backends get the whole array in one call. Backends that
    only take scalars (they raise on an array, or return the wrong shape)
    are called once per sample instead.
    """
    try:
        with np.errstate(all="ignore"):
            y = np.asarray(fn(x, a, b, c, d), dtype=float)
        return np.broadcast_to(y, x.shape)
    except (TypeError, ValueError) as e:
        logger.debug(f"Vectorized evaluation failed ({e}), sampling one point at a time")

    with np.errstate(all="ignore"):
        return np.array([_sample(fn, float(xi), a, b, c, d) for xi in x], dtype=float)


def analyze(
    expr: str,
    a: float,
    b: float,
    c: float,
    d: float,
    x_scale: float = 1.0,
    y_scale: float = 1.0,
    x_offset: float = 0.0,
    mirror_mask: int = 0,
    compiler: Callable = compile_expression,
    config: Optional[AnalyzerConfig] = None,
) -> AnalysisResult:
    """
    Analyze one period of an expression.

    Args:
        expr: Expression string in x, a, b, c, d
        a, b, c, d: Shape parameters
        x_scale, y_scale, x_offset, mirror_mask: Host playback settings
        compiler: Expression compiler; vectorized or scalar-only. Any
            exception from compiling counts as a compile failure; a
            per-sample arithmetic error counts as a non-finite sample
        config: Analyzer thresholds (uses default if None)

    Returns:
        AnalysisResult; ok with mean/rms/peak, or a failure status
    """
    if config is None:
        config = ANALYZER_CONFIG

    try:
        fn = compiler(expr)
    except Exception as e:
        logger.debug(f"Compile failed: {e}")
        return AnalysisResult.failed(AnalysisStatus.COMPILE)

    n = config.n_samples
    x = sample_points(x_scale, x_offset, mirror_mask, n)

    try:
        y = evaluate(fn, x, a, b, c, d) * y_scale
    except Exception as e:
        # A host-supplied compiler may defer errors to call time
        logger.debug(f"Evaluation failed: {e}")
        return AnalysisResult.failed(AnalysisStatus.COMPILE)

    y = y[np.isfinite(y)]
    valid = int(y.size)

    if valid < n * config.min_valid_fraction:
        return AnalysisResult.failed(AnalysisStatus.NAN_INF, valid=valid)

    lim = config.sample_clamp
    y = np.clip(y, -lim, lim)

    return AnalysisResult(
        status=AnalysisStatus.OK,
        mean=float(np.sum(y) / valid),
        rms=float(np.sqrt(np.sum(y * y) / valid)),
        peak=float(np.max(np.abs(y))),
        valid=valid,
    )
