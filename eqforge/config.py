"""
eqforge/config.py
Configuration constants for the broadening engine

Tunables for the analyzer, both synthesis strategies, the normalization
controller and the range widener, plus the field identifiers used to talk
to the host page.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Tuple

# =============================================================================
# Version
# =============================================================================

ENGINE_VERSION = "0.4.0"

# =============================================================================
# Host fields
# =============================================================================

# Logical role -> field identifier on the host page.
FIELD_KEYS: Dict[str, str] = {
    "a": "paramA",
    "b": "paramB",
    "c": "paramC",
    "d": "paramD",
    "x_scale": "xScale",
    "y_scale": "yScale",
    "x_offset": "xOffset",
    "mirror": "mirrorBitmask",
    "main_volume": "mainVolume",
    "filter_cutoff": "filterCutoff",
    "filter_resonance": "filterResonance",
    "glide_time": "glideTime",
}

# Values the host page starts from when a field has never been written
FIELD_DEFAULTS: Dict[str, float] = {
    "paramA": 1.0,
    "paramB": 1.0,
    "paramC": 0.0,
    "paramD": 0.0,
    "xScale": 1.0,
    "yScale": 1.0,
    "xOffset": 0.0,
    "mirrorBitmask": 0.0,
    "mainVolume": 0.95,
    "filterCutoff": 0.5,
    "filterResonance": 0.15,
    "glideTime": 0.0,
}

# Range widener output, parameter -> (min field, max field)
RANGE_FIELD_KEYS: Dict[str, Tuple[str, str]] = {
    "a": ("paramARangeMin", "paramARangeMax"),
    "b": ("paramBRangeMin", "paramBRangeMax"),
    "c": ("paramCRangeMin", "paramCRangeMax"),
    "d": ("paramDRangeMin", "paramDRangeMax"),
    "x_offset": ("xOffsetRangeMin", "xOffsetRangeMax"),
}

# Decimal places kept when a value is written back
WRITE_PRECISION = 6

# Per-field overrides; yScale can settle far below the default step
FIELD_PRECISION: Dict[str, int] = {
    "yScale": 12,
}

# =============================================================================
# Dials
# =============================================================================

AMOUNT_RANGE = (0.0, 1.0)
COMPLEXITY_RANGE = (1, 10)
RANDOMNESS_RANGE = (0.0, 1.0)

# =============================================================================
# Signal Analyzer
# =============================================================================

@dataclass
class AnalyzerConfig:
    """Sampling and acceptance thresholds for one-period analysis."""
    n_samples: int = 1024
    min_valid_fraction: float = 0.90
    sample_clamp: float = 50.0


ANALYZER_CONFIG = AnalyzerConfig()

# =============================================================================
# Pass-based mutator
# =============================================================================

@dataclass
class MutateConfig:
    """Pass-based mutation settings."""
    max_passes: int = 10
    max_length: int = 380
    fallback_expression: str = "sin(x)"

    # Band edges, each shifted up by randomness * weight
    harmonic_band: float = 0.35
    harmonic_band_randomness: float = 0.25
    am_band: float = 0.55
    am_band_randomness: float = 0.20
    symmetry_band: float = 0.75

    # Room kept free for the final shaping wrapper
    shaping_reserve: int = 24


MUTATE_CONFIG = MutateConfig()

# =============================================================================
# Grammar-based synthesizer
# =============================================================================

@dataclass
class GrammarConfig:
    """Grammar synthesis settings and magnitude guards."""
    epsilon: str = "0.000001"
    fallback_expression: str = "x"

    # Largest |x|, |a|..|d| the finiteness guarantee covers
    input_bound: float = 1e6
    # Any fragment whose bound could exceed this gets soft-limited
    magnitude_ceiling: float = 1e12
    # atan(e / K) * K stays below K * pi / 2
    limiter_scale: float = 5e11
    # Largest |tan(t)| reachable for a finite double t (conservative)
    tan_bound: float = 1e20

    blend_range: Tuple[float, float] = (0.05, 0.70)


GRAMMAR_CONFIG = GrammarConfig()

# =============================================================================
# Normalization Controller
# =============================================================================

@dataclass
class NormalizeConfig:
    """Gain staging bands for one normalization pass."""
    rms_floor: float = 1e-6
    scale_range: Tuple[float, float] = (0.55, 1.35)
    peak_ceiling: float = 0.98
    volume_range: Tuple[float, float] = (0.55, 0.98)
    safety_threshold: float = 1.05
    trim_range: Tuple[float, float] = (0.7, 1.0)
    glide_range: Tuple[float, float] = (0.01, 0.07)

    # Engine-level settling: repeat analyze -> normalize while the
    # estimated output peak stays above safety_threshold
    max_passes: int = 12
    # Bands for the repeat passes: no RMS boost, trim as deep as needed
    settle_scale_range: Tuple[float, float] = (0.55, 1.0)
    settle_trim_range: Tuple[float, float] = (0.0, 1.0)

    def for_settling(self) -> "NormalizeConfig":
        return replace(
            self,
            scale_range=self.settle_scale_range,
            trim_range=self.settle_trim_range,
        )


NORMALIZE_CONFIG = NormalizeConfig()

# =============================================================================
# Range Widener
# =============================================================================

@dataclass
class WidenConfig:
    """Range broadening curve."""
    growth_exponent: float = 1.7
    growth_factor: float = 2.2
    jitter_range: Tuple[float, float] = (0.85, 1.15)
    extra_weight: float = 0.35
    extra_fx: float = 5.0
    extra_default: float = 1.5


WIDEN_CONFIG = WidenConfig()

# =============================================================================
# Engine
# =============================================================================

DEFAULT_STRATEGY = "grammar"


@dataclass
class EngineConfig:
    """What a single "broaden now" run does besides synthesis."""
    strategy: str = DEFAULT_STRATEGY
    widen_ranges: bool = True
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    normalize: NormalizeConfig = field(default_factory=NormalizeConfig)


ENGINE_CONFIG = EngineConfig()
