"""
Tests for eqforge.ranges
Range widening: growth curve, midpoints, monotonicity, draw order
"""

import pytest

from eqforge.config import RANGE_FIELD_KEYS
from eqforge.models import InstrumentClass
from eqforge.profiles import TARGET_PROFILES
from eqforge.ranges import RANGE_ORDER, growth, widen_range, widen_ranges
from eqforge.seeds import make_rng

IC = InstrumentClass


class TestGrowth:
    def test_zero_amount_no_growth(self):
        assert growth(0.0) == 1.0

    def test_full_amount(self):
        assert growth(1.0) == pytest.approx(3.2)

    def test_gentle_at_small_amounts(self):
        assert growth(0.1) - 1 < 0.1 * 2.2


class TestWidenRange:
    def test_midpoint_preserved(self):
        lo, hi = widen_range((0.4, 3.2), 2.0, 1.1, 0.3)
        assert (lo + hi) / 2 == pytest.approx(1.8)

    def test_half_width(self):
        lo, hi = widen_range((-1.0, 1.0), 2.0, 1.0, 0.5)
        assert (lo, hi) == (-2.5, 2.5)


class TestWidenRanges:
    """Per-class widening of a, b, c, d and x offset."""

    @pytest.mark.parametrize("instrument", list(IC))
    def test_midpoints_preserved(self, instrument):
        bounds = widen_ranges(instrument, make_rng("mid"), 0.8)
        base = TARGET_PROFILES[instrument].param_ranges
        for name, mid in bounds.midpoints().items():
            lo, hi = base[name]
            assert mid == pytest.approx((lo + hi) / 2)

    @pytest.mark.parametrize("instrument", list(IC))
    def test_monotone_in_amount(self, instrument):
        widths = [
            widen_ranges(instrument, make_rng("mono"), amount).half_widths()
            for amount in (0.0, 0.25, 0.5, 0.75, 1.0)
        ]
        for name in RANGE_ORDER:
            series = [w[name] for w in widths]
            assert series == sorted(series)

    def test_zero_amount_stays_near_baseline(self):
        bounds = widen_ranges(IC.BASS, make_rng("zero"), 0.0)
        base_half = (3.2 - 0.4) / 2
        assert 0.85 * base_half <= bounds.half_widths()["a"] <= 1.15 * base_half

    def test_fx_extra_wider(self):
        fx = widen_ranges(IC.FX, make_rng("x"), 1.0).half_widths()["c"]
        # jitter 0.85..1.15, baseline half 6, grow 3.2, extra 5 * 0.35
        assert fx >= 6 * 3.2 * 0.85 + 1.75 - 1e-9

    def test_five_draws(self):
        r1, r2 = make_rng("order"), make_rng("order")
        widen_ranges(IC.PAD, r1, 0.5)
        for _ in range(5):
            r2()
        assert r1() == r2()

    def test_deterministic(self):
        assert widen_ranges(IC.LEAD, make_rng("d"), 0.6) == widen_ranges(IC.LEAD, make_rng("d"), 0.6)

    def test_amount_clamped(self):
        assert widen_ranges(IC.PAD, make_rng("c"), 7.0) == widen_ranges(IC.PAD, make_rng("c"), 1.0)

    def test_to_fields_keys(self):
        fields = widen_ranges(IC.PLUCK, make_rng("f"), 0.5).to_fields()
        expected = {k for pair in RANGE_FIELD_KEYS.values() for k in pair}
        assert set(fields) == expected
        assert fields["paramARangeMin"] < fields["paramARangeMax"]
