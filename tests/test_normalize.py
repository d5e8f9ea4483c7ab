"""
Tests for eqforge.normalize
Gain staging bands, filter clamps, glide, peak estimate
"""

import pytest

from eqforge.config import NormalizeConfig
from eqforge.models import AnalysisResult, AnalysisStatus, InstrumentClass, ParameterBundle
from eqforge.normalize import (
    carry_glide,
    clamp_filter,
    estimated_output_peak,
    normalize,
)
from eqforge.profiles import TARGET_PROFILES
from eqforge.seeds import make_rng

IC = InstrumentClass


def ok(rms, peak, mean=0.0):
    return AnalysisResult(status=AnalysisStatus.OK, rms=rms, peak=peak, mean=mean, valid=1024)


def bundle(y_scale=1.0, main_volume=0.95, cutoff=0.5, resonance=0.15, glide=0.0):
    return ParameterBundle(
        y_scale=y_scale,
        main_volume=main_volume,
        filter_cutoff=cutoff,
        filter_resonance=resonance,
        glide_time=glide,
    )


class TestGain:
    """RMS scaling and peak safety."""

    def test_quiet_signal_scaled_up_bounded(self):
        out = normalize(IC.PAD, ok(rms=0.01, peak=0.02), bundle())
        assert out.y_scale == pytest.approx(1.35)

    def test_loud_signal_scaled_down_bounded(self):
        out = normalize(IC.BASS, ok(rms=2.0, peak=3.0), bundle())
        assert out.y_scale <= 0.55 + 1e-12

    def test_on_target_signal_untouched(self):
        # Pad target 0.20
        out = normalize(IC.PAD, ok(rms=0.20, peak=0.5), bundle())
        assert out.y_scale == pytest.approx(1.0)
        assert out.main_volume == pytest.approx(0.95)

    def test_zero_rms_uses_floor(self):
        out = normalize(IC.LEAD, ok(rms=0.0, peak=0.0), bundle(), glide=False)
        assert out.y_scale == pytest.approx(1.35)

    def test_hot_peak_lowers_volume(self):
        # scale 1.0, est_peak 1.5 > 0.98
        out = normalize(IC.PAD, ok(rms=0.2, peak=1.5), bundle())
        assert out.main_volume == pytest.approx(0.98 / 1.5)

    def test_volume_clamped_to_band(self):
        out = normalize(IC.BASS, ok(rms=5.0, peak=50.0), bundle())
        assert out.main_volume == pytest.approx(0.55)
        low = normalize(IC.PAD, ok(rms=0.2, peak=0.2), bundle(main_volume=0.1))
        assert low.main_volume == pytest.approx(0.55)

    def test_trim_applied_when_still_hot(self):
        # Bass: scale 0.55, est 1.65, volume 0.98/1.65, est*vol 0.98 -> no trim
        calm = normalize(IC.BASS, ok(rms=2.0, peak=3.0), bundle())
        assert calm.y_scale == pytest.approx(0.55)
        # est 27.5, est*vol 15.1 -> trim clamped at 0.7
        hot = normalize(IC.BASS, ok(rms=40.0, peak=50.0), bundle())
        assert hot.y_scale == pytest.approx(0.55 * 0.7)

    def test_scales_from_current_y_scale(self):
        out = normalize(IC.PAD, ok(rms=0.01, peak=0.02), bundle(y_scale=0.5))
        assert out.y_scale == pytest.approx(0.675)

    def test_custom_config(self):
        cfg = NormalizeConfig(scale_range=(0.9, 1.1))
        out = normalize(IC.PAD, ok(rms=0.01, peak=0.02), bundle(), config=cfg)
        assert out.y_scale == pytest.approx(1.1)

    def test_failed_analysis_rejected(self):
        with pytest.raises(ValueError):
            normalize(IC.PAD, AnalysisResult.failed(AnalysisStatus.NAN_INF), bundle())


class TestPeakBound:
    """Estimated output peak after a pass."""

    @pytest.mark.parametrize("instrument", list(IC))
    @pytest.mark.parametrize("rms,peak", [(0.7, 1.0), (2.0, 3.0), (0.05, 0.3), (0.3, 0.9)])
    def test_moderate_signals_bounded(self, instrument, rms, peak):
        current = bundle()
        analysis = ok(rms=rms, peak=peak)
        out = normalize(instrument, analysis, current, glide=False)
        assert estimated_output_peak(analysis, out, current) <= 1.10

    def test_estimate_matches_formula(self):
        current = bundle(y_scale=2.0)
        out = bundle(y_scale=1.0, main_volume=0.8)
        assert estimated_output_peak(ok(0.5, 1.5), out, current) == pytest.approx(1.5 * 0.5 * 0.8)

    def test_estimate_zero_for_zero_scale(self):
        assert estimated_output_peak(ok(0.5, 1.5), bundle(), bundle(y_scale=0.0)) == 0.0


class TestFilter:
    """Class band clamps."""

    @pytest.mark.parametrize("instrument", list(IC))
    def test_within_band(self, instrument):
        target = TARGET_PROFILES[instrument]
        for cutoff in (0.0, 0.5, 1.0):
            for res in (0.0, 0.5, 1.0):
                c, r = clamp_filter(instrument, cutoff, res)
                assert target.cutoff_range[0] <= c <= target.cutoff_range[1]
                assert target.resonance_range[0] <= r <= target.resonance_range[1]

    @pytest.mark.parametrize("instrument", list(IC))
    def test_idempotent(self, instrument):
        once = clamp_filter(instrument, 0.99, 0.01)
        assert clamp_filter(instrument, *once) == once

    def test_bass_band(self):
        assert clamp_filter(IC.BASS, 0.9, 0.9) == (0.38, 0.22)

    def test_drone_uses_pad_band(self):
        assert clamp_filter(IC.DRONE, 0.9, 0.9) == clamp_filter(IC.PAD, 0.9, 0.9)

    def test_nan_maps_to_low_end(self):
        assert clamp_filter(IC.PERC, float("nan"), float("nan")) == (0.40, 0.03)


class TestGlide:
    """Occasional glide for Lead/FX only."""

    def test_no_rng_draw_for_other_classes(self):
        r1, r2 = make_rng("g"), make_rng("g")
        out = normalize(IC.PAD, ok(0.2, 0.5), bundle(), r1)
        assert out.glide_time is None
        assert r1() == r2()

    def test_no_draw_when_glide_already_set(self):
        r1, r2 = make_rng("g"), make_rng("g")
        out = normalize(IC.LEAD, ok(0.2, 0.5), bundle(glide=0.2), r1)
        assert out.glide_time is None
        assert r1() == r2()

    def test_glide_sometimes_set_in_range(self):
        hits = 0
        for i in range(200):
            out = normalize(IC.FX, ok(0.2, 0.5), bundle(), make_rng(f"glide{i}"))
            if out.glide_time is not None:
                hits += 1
                assert 0.01 <= out.glide_time < 0.07
        # chance 0.35
        assert 40 < hits < 100

    def test_glide_disabled(self):
        for i in range(50):
            out = normalize(IC.LEAD, ok(0.2, 0.5), bundle(), make_rng(f"g{i}"), glide=False)
            assert out.glide_time is None

    def test_carry_glide(self):
        first = bundle(glide=0.03)
        later = bundle(y_scale=0.5, glide=None)
        assert carry_glide(later, first).glide_time == 0.03
        assert carry_glide(first, later) is first


class TestBundleFields:
    """Write-back mapping."""

    def test_to_fields_rounded(self):
        fields = bundle(y_scale=1 / 3, main_volume=2 / 3, glide=None).to_fields()
        assert fields["mainVolume"] == 0.666667
        assert fields["yScale"] == 0.333333333333
        assert "glideTime" not in fields

    def test_tiny_y_scale_survives_write(self):
        assert bundle(y_scale=4.5e-7).to_fields()["yScale"] == 4.5e-7

    def test_glide_written_when_set(self):
        assert bundle(glide=0.0421234567).to_fields()["glideTime"] == 0.042123
