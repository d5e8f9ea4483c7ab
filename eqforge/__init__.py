"""
eqforge - Waveform expression broadening for a parametric synthesizer

A deterministic system that grows or mutates closed-form oscillator
expressions per instrument class, analyzes one period of the result and
gain-stages the output so it stays loud enough without clipping.

Usage:
    python -m eqforge broaden "sin(x)" --class Bass --seed t1
    python -m eqforge widen --class FX
    python -m eqforge list-strategies
"""

__version__ = "0.4.0"

from .models import (
    InstrumentClass,
    MutationConfig,
    AnalysisResult,
    AnalysisStatus,
    ParameterBundle,
    RangeBounds,
    BroadenResult,
)
from .seeds import SeededRng, make_rng, resolve_seed, stable_u32
from .compiler import CompileError, compile_expression
from .analyze import analyze
from .safety import probe_finite, probe_finite_batch
from .synth import Synthesizer, get_strategy, list_strategies, register_strategy
from .normalize import normalize, estimated_output_peak
from .ranges import widen_ranges
from .fields import FieldStore, DictFieldStore
from .engine import BroadeningEngine, broaden_now, widen_now
from .config import (
    ANALYZER_CONFIG,
    MUTATE_CONFIG,
    GRAMMAR_CONFIG,
    NORMALIZE_CONFIG,
    WIDEN_CONFIG,
    ENGINE_CONFIG,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "InstrumentClass",
    "MutationConfig",
    "AnalysisResult",
    "AnalysisStatus",
    "ParameterBundle",
    "RangeBounds",
    "BroadenResult",
    # Seeds
    "SeededRng",
    "make_rng",
    "resolve_seed",
    "stable_u32",
    # Compiler / analysis
    "CompileError",
    "compile_expression",
    "analyze",
    "probe_finite",
    "probe_finite_batch",
    # Synthesis
    "Synthesizer",
    "get_strategy",
    "list_strategies",
    "register_strategy",
    # Gain staging
    "normalize",
    "estimated_output_peak",
    "widen_ranges",
    # Engine
    "FieldStore",
    "DictFieldStore",
    "BroadeningEngine",
    "broaden_now",
    "widen_now",
    # Config
    "ANALYZER_CONFIG",
    "MUTATE_CONFIG",
    "GRAMMAR_CONFIG",
    "NORMALIZE_CONFIG",
    "WIDEN_CONFIG",
    "ENGINE_CONFIG",
]
