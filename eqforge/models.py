"""
eqforge/models.py
Core data models for the broadening engine
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from .config import (
    AMOUNT_RANGE,
    COMPLEXITY_RANGE,
    FIELD_KEYS,
    RANDOMNESS_RANGE,
    RANGE_FIELD_KEYS,
)
from .numeric import clamp, precision_for, round_for_write, round_half_up

logger = logging.getLogger(__name__)


# =============================================================================
# Instrument classes
# =============================================================================

class InstrumentClass(Enum):
    BASS = "Bass"
    LEAD = "Lead"
    PAD = "Pad"
    PLUCK = "Pluck"
    PERC = "Perc"
    DRONE = "Drone"
    FX = "FX"

    @classmethod
    def parse(cls, name: str) -> "InstrumentClass":
        """Case-insensitive lookup by display name ("bass", "FX", ...)."""
        key = (name or "").strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown instrument class: {name!r}")

    @property
    def percussive(self) -> bool:
        """Classes whose symmetry pass subtracts |e| instead of adding cos(e)."""
        return self in (InstrumentClass.BASS, InstrumentClass.PERC)


# Caller-facing names that resolve to a concrete class before the core runs
ANY_CLASS = "Any"
RANDOM_CLASS = "Random"


# =============================================================================
# Profiles
# =============================================================================

@dataclass(frozen=True)
class FlavorProfile:
    """
    Per-class bias over wrapper choices in grammar synthesis.

    Each weight is a base probability; broadening adds to it, so a class
    can still reach every wrapper when the dials are cranked.
    """
    wrap: float
    mul: float      # joining terms by product instead of sum
    trig: float     # sin / cos / tan
    shaper: float   # tanh / atan
    log: float      # guarded log
    exp: float      # bounded exp
    clamp: float    # final tanh ceiling over the whole result
    snap: float     # coefficient snapped to an integer


Range = Tuple[float, float]


@dataclass(frozen=True)
class TargetProfile:
    """Per-class loudness target, safe filter bands and range baselines."""
    rms_target: float
    cutoff_range: Range
    resonance_range: Range
    param_ranges: Dict[str, Range]
    glide_chance: float = 0.0


# =============================================================================
# MutationConfig
# =============================================================================

@dataclass(frozen=True)
class MutationConfig:
    """The three dials plus the seed for one invocation."""
    seed: str
    amount: float = 0.55
    complexity: int = 7
    randomness: float = 0.5

    @classmethod
    def from_raw(cls, seed: str, amount, complexity, randomness) -> "MutationConfig":
        """Clamp dials into their documented domains; never fails."""
        a = clamp(amount, *AMOUNT_RANGE)
        c = int(round_half_up(clamp(complexity, *COMPLEXITY_RANGE)))
        r = clamp(randomness, *RANDOMNESS_RANGE)
        if (a, c, r) != (amount, complexity, randomness):
            logger.debug(
                f"Dials clamped: amount {amount!r}->{a}, "
                f"complexity {complexity!r}->{c}, randomness {randomness!r}->{r}"
            )
        return cls(seed=seed, amount=a, complexity=c, randomness=r)


# =============================================================================
# AnalysisResult
# =============================================================================

class AnalysisStatus(Enum):
    OK = "ok"
    COMPILE = "compile"
    NAN_INF = "nan_inf"


@dataclass(frozen=True)
class AnalysisResult:
    """Summary statistics of one analyzed period."""
    status: AnalysisStatus
    rms: Optional[float] = None
    peak: Optional[float] = None
    mean: Optional[float] = None
    valid: int = 0

    @property
    def ok(self) -> bool:
        return self.status is AnalysisStatus.OK

    @property
    def reason(self) -> Optional[str]:
        return None if self.ok else self.status.value

    @classmethod
    def failed(cls, status: AnalysisStatus, valid: int = 0) -> "AnalysisResult":
        return cls(status=status, valid=valid)

    def to_dict(self) -> dict:
        d = {"ok": self.ok}
        if self.ok:
            d.update({"rms": self.rms, "peak": self.peak, "mean": self.mean})
        else:
            d["reason"] = self.reason
        return d


# =============================================================================
# Parameter bundle
# =============================================================================

@dataclass(frozen=True)
class ParameterBundle:
    """Output-stage values the normalization controller writes back."""
    y_scale: float
    main_volume: float
    filter_cutoff: float
    filter_resonance: float
    glide_time: Optional[float] = None

    def to_fields(self) -> Dict[str, float]:
        fields = {
            FIELD_KEYS["y_scale"]: round_for_write(
                self.y_scale, precision_for(FIELD_KEYS["y_scale"])
            ),
            FIELD_KEYS["main_volume"]: round_for_write(self.main_volume),
            FIELD_KEYS["filter_cutoff"]: round_for_write(self.filter_cutoff),
            FIELD_KEYS["filter_resonance"]: round_for_write(self.filter_resonance),
        }
        if self.glide_time is not None:
            fields[FIELD_KEYS["glide_time"]] = round_for_write(self.glide_time)
        return fields


@dataclass(frozen=True)
class RangeBounds:
    """Widened [min, max] pairs feeding the host's safe randomizer."""
    a: Range
    b: Range
    c: Range
    d: Range
    x_offset: Range

    def pairs(self) -> Dict[str, Range]:
        return {
            "a": self.a,
            "b": self.b,
            "c": self.c,
            "d": self.d,
            "x_offset": self.x_offset,
        }

    def half_widths(self) -> Dict[str, float]:
        return {k: (hi - lo) * 0.5 for k, (lo, hi) in self.pairs().items()}

    def midpoints(self) -> Dict[str, float]:
        return {k: (lo + hi) * 0.5 for k, (lo, hi) in self.pairs().items()}

    def to_fields(self) -> Dict[str, float]:
        fields = {}
        for name, (lo, hi) in self.pairs().items():
            lo_key, hi_key = RANGE_FIELD_KEYS[name]
            fields[lo_key] = round_for_write(lo)
            fields[hi_key] = round_for_write(hi)
        return fields


# =============================================================================
# Engine result
# =============================================================================

@dataclass
class BroadenResult:
    """Everything one "broaden now" run produced."""
    expression: str
    instrument: InstrumentClass
    seed: str
    strategy: str
    analysis: AnalysisResult
    status: str
    bundle: Optional[ParameterBundle] = None
    ranges: Optional[RangeBounds] = None
    settle_passes: int = 0
    written: Dict[str, float] = field(default_factory=dict)

    @property
    def normalized(self) -> bool:
        return self.bundle is not None

    def to_dict(self) -> dict:
        return {
            "expression": self.expression,
            "instrument": self.instrument.value,
            "seed": self.seed,
            "strategy": self.strategy,
            "analysis": self.analysis.to_dict(),
            "status": self.status,
            "settle_passes": self.settle_passes,
            "fields": dict(self.written),
        }
