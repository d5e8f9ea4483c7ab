"""
eqforge/profiles.py
Per-class lookup tables

FLAVOR_PROFILES bias the grammar synthesizer's wrapper choices.
TARGET_PROFILES carry loudness targets, safe filter bands and the baseline
parameter ranges the widener starts from.

Both tables are read-only; lookups fall back to a defined row.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .models import (
    ANY_CLASS,
    RANDOM_CLASS,
    FlavorProfile,
    InstrumentClass,
    TargetProfile,
)
from .seeds import make_rng

logger = logging.getLogger(__name__)

IC = InstrumentClass

# =============================================================================
# Flavor
# =============================================================================

FLAVOR_PROFILES: Mapping[InstrumentClass, FlavorProfile] = MappingProxyType({
    IC.BASS:  FlavorProfile(wrap=0.30, mul=0.22, trig=0.55, shaper=0.65, log=0.10, exp=0.08, clamp=0.70, snap=0.26),
    IC.LEAD:  FlavorProfile(wrap=0.35, mul=0.18, trig=0.65, shaper=0.45, log=0.10, exp=0.10, clamp=0.55, snap=0.20),
    IC.PAD:   FlavorProfile(wrap=0.45, mul=0.12, trig=0.55, shaper=0.35, log=0.12, exp=0.12, clamp=0.45, snap=0.14),
    IC.PLUCK: FlavorProfile(wrap=0.30, mul=0.20, trig=0.55, shaper=0.25, log=0.18, exp=0.22, clamp=0.35, snap=0.20),
    IC.PERC:  FlavorProfile(wrap=0.40, mul=0.28, trig=0.55, shaper=0.55, log=0.10, exp=0.08, clamp=0.55, snap=0.24),
    IC.DRONE: FlavorProfile(wrap=0.55, mul=0.10, trig=0.50, shaper=0.35, log=0.12, exp=0.12, clamp=0.40, snap=0.12),
    IC.FX:    FlavorProfile(wrap=0.60, mul=0.22, trig=0.55, shaper=0.45, log=0.20, exp=0.20, clamp=0.30, snap=0.18),
})

FLAVOR_FALLBACK = IC.FX

# =============================================================================
# Targets
# =============================================================================

# Loudness target for classes without a tuned row
DEFAULT_RMS_TARGET = 0.21

TARGET_PROFILES: Mapping[InstrumentClass, TargetProfile] = MappingProxyType({
    IC.BASS: TargetProfile(
        rms_target=0.18,
        cutoff_range=(0.12, 0.38),
        resonance_range=(0.05, 0.22),
        param_ranges={"a": (0.4, 3.2), "b": (0.2, 2.8), "c": (-1.0, 1.0), "d": (-1.0, 1.0), "x_offset": (-0.35, 0.35)},
    ),
    IC.LEAD: TargetProfile(
        rms_target=0.22,
        cutoff_range=(0.32, 0.85),
        resonance_range=(0.05, 0.28),
        param_ranges={"a": (0.7, 3.8), "b": (0.2, 3.6), "c": (-1.6, 1.6), "d": (-1.6, 1.6), "x_offset": (-0.8, 0.8)},
        glide_chance=0.35,
    ),
    IC.PAD: TargetProfile(
        rms_target=0.20,
        cutoff_range=(0.18, 0.55),
        resonance_range=(0.05, 0.25),
        param_ranges={"a": (0.2, 2.8), "b": (0.2, 2.8), "c": (-2.0, 2.0), "d": (-2.0, 2.0), "x_offset": (-1.2, 1.2)},
    ),
    IC.PLUCK: TargetProfile(
        rms_target=0.22,
        cutoff_range=(0.25, 0.75),
        resonance_range=(0.05, 0.30),
        param_ranges={"a": (0.8, 4.2), "b": (0.3, 4.0), "c": (-2.2, 2.2), "d": (-2.2, 2.2), "x_offset": (-1.0, 1.0)},
    ),
    IC.PERC: TargetProfile(
        rms_target=0.26,
        cutoff_range=(0.40, 0.90),
        resonance_range=(0.03, 0.20),
        param_ranges={"a": (1.2, 6.0), "b": (0.6, 6.5), "c": (-2.5, 2.5), "d": (-2.5, 2.5), "x_offset": (-0.9, 0.9)},
    ),
    # Drone has no tuned loudness or filter band; it shares the defaults
    IC.DRONE: TargetProfile(
        rms_target=DEFAULT_RMS_TARGET,
        cutoff_range=(0.18, 0.55),
        resonance_range=(0.05, 0.25),
        param_ranges={"a": (0.1, 2.0), "b": (0.1, 1.8), "c": (-2.8, 2.8), "d": (-2.8, 2.8), "x_offset": (-1.6, 1.6)},
    ),
    IC.FX: TargetProfile(
        rms_target=0.24,
        cutoff_range=(0.15, 0.95),
        resonance_range=(0.05, 0.45),
        param_ranges={"a": (0.1, 8.0), "b": (0.1, 8.0), "c": (-6.0, 6.0), "d": (-6.0, 6.0), "x_offset": (-2.0, 2.0)},
        glide_chance=0.35,
    ),
})

DEFAULT_TARGET = TargetProfile(
    rms_target=DEFAULT_RMS_TARGET,
    cutoff_range=TARGET_PROFILES[IC.PAD].cutoff_range,
    resonance_range=TARGET_PROFILES[IC.PAD].resonance_range,
    param_ranges=TARGET_PROFILES[IC.FX].param_ranges,
)


def flavor_for(instrument: Optional[InstrumentClass]) -> FlavorProfile:
    return FLAVOR_PROFILES.get(instrument, FLAVOR_PROFILES[FLAVOR_FALLBACK])


def target_for(instrument: Optional[InstrumentClass]) -> TargetProfile:
    return TARGET_PROFILES.get(instrument, DEFAULT_TARGET)


# =============================================================================
# Caller-facing class names
# =============================================================================

def resolve_instrument(
    name: Union[str, InstrumentClass, None],
    seed: str = "",
) -> InstrumentClass:
    """
    Turn a host-side class selection into a concrete InstrumentClass.

    "Any" (or blank) is treated as the widest class, FX. "Random" picks one
    class from a sub-stream of the seed so the choice is reproducible without
    disturbing the run's main stream. Unknown names fall back to FX.
    """
    if isinstance(name, InstrumentClass):
        return name

    key = (name or "").strip()
    if not key or key.lower() == ANY_CLASS.lower():
        return IC.FX
    if key.lower() == RANDOM_CLASS.lower():
        rng = make_rng(f"{seed}|class" if seed else "")
        return rng.choice(list(InstrumentClass))

    try:
        return InstrumentClass.parse(key)
    except ValueError:
        logger.warning(f"Unknown instrument class {key!r}, using FX")
        return IC.FX
