"""
Tests for eqforge.synth.grammar
Grammar broadening: determinism, guard shapes, magnitude limiter, finiteness
"""

import math
import re

import pytest

from eqforge.compiler import compile_expression
from eqforge.config import GRAMMAR_CONFIG
from eqforge.models import InstrumentClass
from eqforge.profiles import flavor_for
from eqforge.safety import probe_finite
from eqforge.seeds import make_rng
from eqforge.synth.grammar import (
    Fragment,
    GrammarBroadener,
    Intensity,
    _Builder,
    blend_weight,
)

IC = InstrumentClass
CLASSES = list(IC)


def broaden(expr="sin(x)", seed="t1", instrument=IC.FX, amount=0.55, complexity=7, randomness=0.5):
    return GrammarBroadener().generate(expr, make_rng(seed), instrument, amount, complexity, randomness)


def builder(seed="b1", instrument=IC.FX, amount=0.5, complexity=5, randomness=0.5):
    k = Intensity.from_dials(amount, complexity, randomness)
    return _Builder(make_rng(seed), flavor_for(instrument), k, GRAMMAR_CONFIG)


class TestIntensity:
    """Dial-derived intensities."""

    def test_max_dials(self):
        k = Intensity.from_dials(1.0, 10, 1.0)
        assert k.dense == pytest.approx(1.0)
        assert k.egregious == pytest.approx(1.0)
        assert k.loosen == pytest.approx(1.6)

    def test_superlinear(self):
        k8 = Intensity.from_dials(0.5, 8, 0.5)
        assert k8.egregious == pytest.approx(0.8 ** 6)
        assert k8.egregious < k8.dense < 0.8

    def test_dials_clamped(self):
        k = Intensity.from_dials(3.0, 50, -1.0)
        assert (k.amount, k.complexity, k.randomness) == (1.0, 10, 0.0)

    def test_blend_weight_range(self):
        assert blend_weight(0.0, 0.0) == pytest.approx(0.05)
        assert blend_weight(1.0, 1.0) == pytest.approx(0.70)


class TestShape:
    """Output structure."""

    def test_blends_into_base(self):
        out = broaden("sin(x)")
        assert out.startswith("(sin(x) + (") or out.startswith("(tanh((sin(x) + (")

    def test_blank_base_is_x(self):
        out = broaden("  ")
        assert out.startswith("(x + (") or out.startswith("(tanh((x + (")

    def test_compiles(self):
        compile_expression(broaden())

    def test_deterministic(self):
        assert broaden(seed="same") == broaden(seed="same")

    def test_seed_changes_output(self):
        assert broaden(seed="one") != broaden(seed="two")

    def test_instrument_changes_output(self):
        outs = {broaden(seed="cls", instrument=ic) for ic in CLASSES}
        assert len(outs) > 1

    def test_complexity_grows_output(self):
        low = sum(len(broaden(seed=f"c{i}", amount=0.8, complexity=2)) for i in range(20))
        high = sum(len(broaden(seed=f"c{i}", amount=0.8, complexity=9)) for i in range(20))
        assert high > low


class TestGuards:
    """Every risky primitive appears only in its guarded form."""

    @pytest.fixture(scope="class")
    def outputs(self):
        return [
            broaden(seed=f"guard{i}", instrument=CLASSES[i % len(CLASSES)],
                    amount=0.9, complexity=9, randomness=0.9)
            for i in range(25)
        ]

    def test_exp_is_bounded(self, outputs):
        for out in outputs:
            for m in re.finditer(r"exp\(", out):
                assert out[m.end():].startswith("tanh(")

    def test_division_guarded(self, outputs):
        for out in outputs:
            for m in re.finditer(r" / ", out):
                rest = out[m.end():]
                assert rest.startswith("(abs(") or rest.startswith("500000000000)")

    def test_pow_guarded(self, outputs):
        for out in outputs:
            for m in re.finditer(r"pow\(", out):
                assert out[m.end():].startswith("abs(")

    def test_log_and_sqrt_guarded(self, outputs):
        for out in outputs:
            for m in re.finditer(r"(log|sqrt)\(", out):
                assert out[m.end():].startswith("abs(")

    def test_some_guards_exercised(self, outputs):
        joined = "".join(outputs)
        assert "abs(" in joined
        assert "tanh(" in joined or "atan(" in joined


class TestMagnitudeLimiter:
    """Fragments past the ceiling go through the atan limiter."""

    def test_small_fragment_untouched(self):
        b = builder()
        f = Fragment("x", 1e6)
        assert b.settle(f) is f

    def test_large_fragment_limited(self):
        b = builder()
        f = b.settle(Fragment("(x * a)", 1e12 * 10))
        assert f.text == "(atan(((x * a)) / 500000000000) * 500000000000)"
        assert f.bound == pytest.approx(5e11 * math.pi / 2)
        assert f.bound <= GRAMMAR_CONFIG.magnitude_ceiling

    def test_product_of_variables_limited(self):
        b = builder()
        big = Fragment("3*x", 3e6)
        joined = b.join(big, "*", Fragment("4*a", 4e6))
        assert joined.text.startswith("(atan(")

    def test_sum_bound_adds(self):
        b = builder()
        joined = b.join(Fragment("x", 1e6), "+", Fragment("a", 1e6))
        assert joined.text == "(x + a)"
        assert joined.bound == 2e6

    def test_every_term_settled(self):
        b = builder(seed="terms", amount=1.0, complexity=10, randomness=1.0)
        for _ in range(20):
            assert b.term().bound <= GRAMMAR_CONFIG.magnitude_ceiling

    def test_coeff_bound_matches_text(self):
        b = builder(seed="coeffs")
        for _ in range(100):
            c = b.coeff()
            assert c.bound == abs(float(c.text))

    def test_limiter_keeps_huge_inputs_finite(self):
        b = builder()
        prod = Fragment("x", 1e6)
        for _ in range(6):
            prod = b.join(prod, "*", Fragment("x", 1e6))
        f = compile_expression(prod.text)
        assert math.isfinite(f(1e6, 0, 0, 0, 0))


def _sweep():
    cases = []
    for i in range(300):
        cases.append((
            f"sweep{i}",
            CLASSES[i % len(CLASSES)],
            (i % 11) / 10,
            1 + i % 10,
            ((i * 7) % 11) / 10,
        ))
    # Egregious corner
    for i in range(12):
        cases.append((f"max{i}", CLASSES[i % len(CLASSES)], 1.0, 10, 1.0))
    return cases


class TestFiniteness:
    """Generated expressions evaluate finite for finite inputs."""

    @pytest.mark.parametrize("seed,instrument,amount,complexity,randomness", _sweep())
    def test_probe(self, seed, instrument, amount, complexity, randomness):
        out = broaden("sin(x)", seed, instrument, amount, complexity, randomness)
        result = probe_finite(out, n_points=200)
        assert result.passed, out[:200]

    @pytest.mark.parametrize("seed", [f"box{i}" for i in range(8)])
    def test_edge_of_input_box(self, seed):
        out = broaden("x", seed, IC.FX, 1.0, 10, 1.0)
        f = compile_expression(out)
        bound = GRAMMAR_CONFIG.input_bound
        for x in (-bound, bound, 0.0):
            for p in (-bound, bound, 0.0):
                assert math.isfinite(f(x, p, -p, p, -p))


class TestDefinition:
    def test_name(self):
        assert GrammarBroadener().name == "grammar"
