"""
eqforge/normalize.py
Normalization controller

Gain-stages a freshly analyzed expression for its instrument class:
1. RMS toward the class target via yScale (bounded)
2. Peak safety via mainVolume, then a small yScale trim if still hot
3. Filter cutoff/resonance kept inside the class band
4. Occasional glide for Lead/FX

Stateless; one call is one pass. The engine repeats passes while the
estimated output peak stays above the safety threshold.
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from .config import NORMALIZE_CONFIG, NormalizeConfig
from .models import AnalysisResult, InstrumentClass, ParameterBundle
from .numeric import clamp
from .profiles import target_for
from .seeds import SeededRng

logger = logging.getLogger(__name__)


def clamp_filter(
    instrument: InstrumentClass,
    cutoff: float,
    resonance: float,
) -> Tuple[float, float]:
    """Keep cutoff/resonance inside the class band; idempotent."""
    target = target_for(instrument)
    return (
        clamp(cutoff, *target.cutoff_range),
        clamp(resonance, *target.resonance_range),
    )


def normalize(
    instrument: InstrumentClass,
    analysis: AnalysisResult,
    current: ParameterBundle,
    rng: Optional[SeededRng] = None,
    config: Optional[NormalizeConfig] = None,
    glide: bool = True,
) -> ParameterBundle:
    """
    Run one normalization pass.

    Args:
        instrument: Concrete instrument class
        analysis: Result of analyzing the expression at current.y_scale
        current: Values currently held by the host
        rng: Run generator; only consumed by the glide step
        config: Clamp bands and thresholds (uses default if None)
        glide: Allow the glide step (settling passes turn it off)

    Returns:
        New ParameterBundle; glide_time is None unless glide was set

    Raises:
        ValueError: If the analysis did not succeed
    """
    if not analysis.ok:
        raise ValueError(f"Cannot normalize a failed analysis ({analysis.reason})")
    if config is None:
        config = NORMALIZE_CONFIG

    target = target_for(instrument)

    # RMS normalize via yScale
    scale = clamp(target.rms_target / max(config.rms_floor, analysis.rms), *config.scale_range)
    y_scale = current.y_scale * scale

    # Peak safety via mainVolume first
    est_peak = analysis.peak * scale
    volume = current.main_volume
    if est_peak > config.peak_ceiling:
        volume = min(volume, config.peak_ceiling / est_peak)
    volume = clamp(volume, *config.volume_range)

    # Still hot: trim yScale a little more
    trim = 1.0
    if est_peak * volume > config.safety_threshold:
        trim = clamp(config.safety_threshold / (est_peak * volume), *config.trim_range)
        y_scale *= trim

    logger.debug(
        f"Normalize {instrument.value}: rms={analysis.rms:.4f} scale={scale:.3f} "
        f"est_peak={est_peak:.3f} volume={volume:.3f} trim={trim:.3f}"
    )

    cutoff, resonance = clamp_filter(instrument, current.filter_cutoff, current.filter_resonance)

    glide_time = None
    if (
        glide
        and rng is not None
        and target.glide_chance > 0
        and current.glide_time == 0
        and rng.chance(target.glide_chance)
    ):
        glide_time = rng.uniform(*config.glide_range)

    return ParameterBundle(
        y_scale=y_scale,
        main_volume=volume,
        filter_cutoff=cutoff,
        filter_resonance=resonance,
        glide_time=glide_time,
    )


def estimated_output_peak(
    analysis: AnalysisResult,
    bundle: ParameterBundle,
    current: ParameterBundle,
) -> float:
    """Peak the host will see once bundle replaces current."""
    if not analysis.ok or current.y_scale == 0:
        return 0.0
    return analysis.peak * (bundle.y_scale / current.y_scale) * bundle.main_volume


def carry_glide(bundle: ParameterBundle, earlier: ParameterBundle) -> ParameterBundle:
    """Keep a glide chosen by an earlier pass of the same run."""
    if bundle.glide_time is None and earlier.glide_time is not None:
        return replace(bundle, glide_time=earlier.glide_time)
    return bundle
