"""
eqforge/engine.py
Broadening engine - "broaden now" and "widen ranges"

One broaden run:
1. Resolve seed and instrument class, build the run generator
2. Widen the randomizer ranges (optional) and write them
3. Synthesize a new expression with the selected strategy
4. Analyze it against the host's current shape/playback fields
5. Normalize (settling until the estimated peak is safe) and write back

Nothing here raises for bad expressions, invalid signals or out-of-range
dials; those outcomes are reported in the result's status line.
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

from .analyze import analyze
from .compiler import compile_expression
from .config import ENGINE_CONFIG, FIELD_KEYS, EngineConfig
from .fields import DictFieldStore, FieldStore, read_analysis_inputs, read_bundle
from .models import (
    AnalysisResult,
    AnalysisStatus,
    BroadenResult,
    InstrumentClass,
    MutationConfig,
    ParameterBundle,
    RangeBounds,
)
from .normalize import carry_glide, estimated_output_peak, normalize
from .numeric import precision_for, round_for_write
from .profiles import resolve_instrument
from .ranges import widen_ranges
from .seeds import SeededRng, make_rng, resolve_seed
from .synth import SynthesisStrategy, Synthesizer

logger = logging.getLogger(__name__)

TAG_BROADENED = "Broadened"
TAG_GENERATED = "Generated + broadened"

ClassName = Union[str, InstrumentClass, None]


class BroadeningEngine:
    """
    Runs broadening against a field store.

    Usage:
        engine = BroadeningEngine(DictFieldStore())
        result = engine.broaden_now("sin(x)", "Bass", seed="t1")
        print(result.expression, result.status)
    """

    def __init__(
        self,
        store: Optional[FieldStore] = None,
        compiler: Callable = compile_expression,
        strategy: Union[str, SynthesisStrategy, None] = None,
        widen: Optional[bool] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or ENGINE_CONFIG
        self.store = store if store is not None else DictFieldStore()
        self.compiler = compiler
        self.analyzer_config = self.config.analyzer
        self.synth = Synthesizer(strategy or self.config.strategy)
        self.widen = self.config.widen_ranges if widen is None else widen

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def broaden_now(
        self,
        expression: str,
        instrument: ClassName = None,
        seed: Optional[str] = None,
        amount: float = 0.55,
        complexity: float = 7,
        randomness: float = 0.5,
        tag: str = TAG_BROADENED,
        main_seed: Optional[str] = None,
    ) -> BroadenResult:
        """
        Broaden an expression and gain-stage the result.

        Args:
            expression: Current expression (blank uses the strategy fallback)
            instrument: Class name, InstrumentClass, "Any" or "Random"
            seed: Broadening seed; falls back to main_seed, then a timestamp
            amount, complexity, randomness: Dials; clamped, never rejected
            tag: Status prefix
            main_seed: The page's main seed

        Returns:
            BroadenResult; on a compile failure the expression is the input
        """
        seed = resolve_seed(seed, main_seed)
        cls = resolve_instrument(instrument, seed)
        rng = make_rng(seed)
        dials = MutationConfig.from_raw(seed, amount, complexity, randomness)

        written: Dict[str, float] = {}
        ranges = None
        if self.widen:
            ranges = widen_ranges(cls, rng, dials.amount)
            written.update(self._write(ranges.to_fields()))

        candidate = self.synth.generate(
            expression, rng, cls, dials.amount, dials.complexity, dials.randomness, seed=seed
        )

        inputs = read_analysis_inputs(self.store)
        analysis = analyze(candidate, compiler=self.compiler, config=self.analyzer_config, **inputs)

        status = f"{tag}: {cls.value} | seed={seed}"
        out = candidate
        bundle = None
        passes = 0

        if analysis.status is AnalysisStatus.COMPILE:
            logger.warning(f"Generated expression failed to compile, keeping input ({len(candidate)} chars)")
            out = expression
            status += " | kept input (compile)"
        elif analysis.status is AnalysisStatus.NAN_INF:
            logger.warning(f"Generated signal invalid ({analysis.valid} finite samples), normalization skipped")
            status += " | normalization skipped (nan_inf)"
        else:
            bundle, passes = self._settle(cls, candidate, analysis, rng, inputs)
            written.update(self._write(bundle.to_fields()))

        logger.info(status)
        return BroadenResult(
            expression=out,
            instrument=cls,
            seed=seed,
            strategy=self.synth.name,
            analysis=analysis,
            status=status,
            bundle=bundle,
            ranges=ranges,
            settle_passes=passes,
            written=written,
        )

    def widen_now(
        self,
        instrument: ClassName = None,
        seed: Optional[str] = None,
        amount: float = 0.55,
        main_seed: Optional[str] = None,
    ) -> RangeBounds:
        """Widen and write the randomizer ranges only."""
        seed = resolve_seed(seed, main_seed)
        cls = resolve_instrument(instrument, seed)
        dials = MutationConfig.from_raw(seed, amount, 1, 0)
        ranges = widen_ranges(cls, make_rng(seed), dials.amount)
        self._write(ranges.to_fields())
        logger.info(f"Ranges widened: {cls.value} | seed={seed}")
        return ranges

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _settle(
        self,
        instrument: InstrumentClass,
        expr: str,
        analysis: AnalysisResult,
        rng: SeededRng,
        inputs: Dict[str, float],
    ) -> Tuple[ParameterBundle, int]:
        """
        Normalize, re-analyzing while the estimated output peak is unsafe.

        A clamped analysis peak only bounds the real peak from below, so
        settling continues until the analysis is unclamped.
        """
        cfg = self.config.normalize
        settle_cfg = cfg.for_settling()
        current = read_bundle(self.store)
        first = normalize(instrument, analysis, current, rng, cfg)
        bundle = self._quantize(first, analysis, current)
        passes = 1

        while passes < cfg.max_passes:
            est = estimated_output_peak(analysis, bundle, current)
            if est <= cfg.safety_threshold and not self._clamped(analysis):
                break
            logger.debug(f"Settle pass {passes + 1}: estimated peak {est:.3f}")

            inputs = dict(inputs, y_scale=bundle.y_scale)
            analysis = analyze(expr, compiler=self.compiler, config=self.analyzer_config, **inputs)
            if not analysis.ok:
                break
            settled = normalize(instrument, analysis, bundle, config=settle_cfg, glide=False)
            current, bundle = bundle, carry_glide(self._quantize(settled, analysis, bundle), bundle)
            passes += 1

        est = estimated_output_peak(analysis, bundle, current)
        if est > cfg.safety_threshold or self._clamped(analysis):
            logger.warning(f"Peak still {est:.3f} after {passes} normalization passes")
        return bundle, passes

    def _quantize(
        self,
        bundle: ParameterBundle,
        analysis: AnalysisResult,
        current: ParameterBundle,
    ) -> ParameterBundle:
        """
        Snap y_scale to the value the store will hold.

        Rounds down when rounding up would push the estimated peak over
        the safety threshold, and never reaches zero, which would mute
        the oscillator for every later run.
        """
        precision = precision_for(FIELD_KEYS["y_scale"])
        step = 10.0 ** -precision
        y_scale = round_for_write(bundle.y_scale, precision)
        if y_scale > bundle.y_scale:
            est = estimated_output_peak(analysis, replace(bundle, y_scale=y_scale), current)
            if est > self.config.normalize.safety_threshold:
                y_scale = round_for_write(y_scale - step, precision)
        return replace(bundle, y_scale=max(step, y_scale))

    def _clamped(self, analysis: AnalysisResult) -> bool:
        return analysis.ok and analysis.peak >= self.analyzer_config.sample_clamp

    def _write(self, fields: Mapping[str, float]) -> Dict[str, float]:
        self.store.update(fields)
        return dict(fields)


# =============================================================================
# Convenience entry points
# =============================================================================

def broaden_now(
    expression: str,
    instrument: ClassName = None,
    seed: Optional[str] = None,
    amount: float = 0.55,
    complexity: float = 7,
    randomness: float = 0.5,
    fields: Optional[Mapping[str, float]] = None,
    strategy: Optional[str] = None,
    widen: Optional[bool] = None,
    tag: str = TAG_BROADENED,
) -> BroadenResult:
    """One-shot broaden against a fresh in-memory store."""
    engine = BroadeningEngine(DictFieldStore(fields), strategy=strategy, widen=widen)
    return engine.broaden_now(expression, instrument, seed, amount, complexity, randomness, tag=tag)


def widen_now(
    instrument: ClassName = None,
    seed: Optional[str] = None,
    amount: float = 0.55,
) -> RangeBounds:
    """One-shot range widening against a fresh in-memory store."""
    return BroadeningEngine(DictFieldStore()).widen_now(instrument, seed, amount)
