"""
Unit tests for the signal pipeline stages and SignalProcessor.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from pulse_monitor.config import MeasurementConfig
from pulse_monitor.errors import (
    DegenerateDurationError,
    EmptyInputError,
    InvalidSignalError,
)
from pulse_monitor.signal_processor import (
    SignalProcessor,
    check_validity,
    detect_peaks,
    detrend,
    estimate_bpm,
    signal_amplitude,
    smooth,
    trim,
)


def _sine_window(n: int, interval_s: float, hz: float, baseline=128.0, amplitude=10.0):
    t = np.arange(n) * interval_s
    return baseline + amplitude * np.sin(2 * np.pi * hz * t)


# ---------------------------------------------------------------------------
# Detrend / smooth / trim
# ---------------------------------------------------------------------------

class TestDetrend:

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_output_mean_is_zero(self, seed):
        rng = np.random.default_rng(seed)
        samples = rng.uniform(0, 255, size=137)
        out = detrend(samples)
        assert len(out) == len(samples)
        assert abs(out.mean()) < 1e-9

    def test_single_sample(self):
        assert detrend([42.0]).tolist() == [0.0]

    def test_input_not_mutated(self):
        samples = np.array([1.0, 2.0, 6.0])
        detrend(samples)
        assert samples.tolist() == [1.0, 2.0, 6.0]

    def test_empty_raises(self):
        with pytest.raises(EmptyInputError):
            detrend([])


class TestSmooth:

    def test_interior_is_three_tap_mean(self):
        out = smooth([0.0, 3.0, 6.0, 3.0, 0.0])
        assert out.tolist() == pytest.approx([0.0, 3.0, 4.0, 3.0, 0.0])

    @pytest.mark.parametrize("n", [2, 3, 10, 451])
    def test_length_and_boundaries_preserved(self, n):
        values = np.random.default_rng(n).normal(size=n)
        out = smooth(values)
        assert len(out) == n
        assert out[0] == values[0]
        assert out[-1] == values[-1]

    def test_short_input_passes_through(self):
        assert smooth([5.0]).tolist() == [5.0]
        assert smooth([]).size == 0

    def test_returns_new_array(self):
        values = np.array([1.0, 4.0, 1.0])
        out = smooth(values)
        assert out is not values
        assert values.tolist() == [1.0, 4.0, 1.0]

    def test_trim_drops_leading_samples(self):
        values = np.arange(10.0)
        assert trim(values, 3).tolist() == [3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0]
        assert trim(values, 0) is values


# ---------------------------------------------------------------------------
# Peak detection
# ---------------------------------------------------------------------------

class TestDetectPeaks:

    UNIMODAL = [0.0, 1.0, 2.0, 5.0, 2.0, 1.0, 0.0]   # prominence 3 at index 3

    @pytest.mark.parametrize("threshold", [0.0, 1.0, 2.9])
    def test_unimodal_detected_below_prominence(self, threshold):
        peaks = detect_peaks(self.UNIMODAL, threshold)
        assert peaks.count == 1
        assert peaks.indices.tolist() == [3]

    @pytest.mark.parametrize("threshold", [3.0, 3.5, 10.0])
    def test_unimodal_rejected_at_or_above_prominence(self, threshold):
        assert detect_peaks(self.UNIMODAL, threshold).count == 0

    def test_both_sides_must_exceed_threshold(self):
        assert detect_peaks([0.0, 5.0, 4.0], 1.0).count == 0
        assert detect_peaks([0.0, 5.0, 4.0], 0.5).count == 1

    def test_plateau_is_not_a_peak(self):
        assert detect_peaks([0.0, 2.0, 2.0, 0.0], 0.0).count == 0

    def test_edges_are_never_peaks(self):
        assert detect_peaks([9.0, 1.0, 0.0, 1.0, 9.0], 0.0).count == 0

    def test_multiple_peaks(self):
        peaks = detect_peaks([0.0, 3.0, 0.0, 3.0, 0.0, 0.5, 0.0], 1.0)
        assert peaks.count == 2
        assert peaks.indices.tolist() == [1, 3]

    def test_too_short(self):
        assert detect_peaks([1.0, 2.0], 0.0).count == 0


# ---------------------------------------------------------------------------
# Validity gate and BPM
# ---------------------------------------------------------------------------

class TestValidityGate:

    def test_amplitude(self):
        assert signal_amplitude([-2.0, 0.5, 3.0]) == pytest.approx(5.0)

    @pytest.mark.parametrize("threshold", [0.01, 2.0, 5.0])
    def test_constant_signal_rejected(self, threshold):
        with pytest.raises(InvalidSignalError) as info:
            check_validity(np.full(50, 7.0), threshold)
        assert info.value.amplitude == 0.0
        assert "reposition finger" in str(info.value)

    def test_zero_threshold_accepts_flat_signal(self):
        assert check_validity(np.zeros(10), 0.0) == 0.0

    def test_amplitude_above_threshold_passes(self):
        assert check_validity([0.0, 3.0, -1.0], 2.0) == pytest.approx(4.0)

    def test_empty_raises(self):
        with pytest.raises(EmptyInputError):
            signal_amplitude([])


class TestEstimateBpm:

    def test_ten_peaks_in_fifteen_seconds(self):
        assert estimate_bpm(10, 15.0) == 40

    def test_twenty_peaks_in_ten_seconds(self):
        assert estimate_bpm(20, 10.0) == 120

    def test_halves_round_up(self):
        assert estimate_bpm(29, 24.0) == 73    # 72.5

    def test_no_peaks(self):
        assert estimate_bpm(0, 14.85) == 0

    @pytest.mark.parametrize("duration", [0.0, -1.0])
    def test_degenerate_duration(self, duration):
        with pytest.raises(DegenerateDurationError):
            estimate_bpm(10, duration)


# ---------------------------------------------------------------------------
# SignalProcessor
# ---------------------------------------------------------------------------

class TestSignalProcessor:

    def test_synthetic_sine_detected(self):
        """Feed a 1.2 Hz sine (72 BPM) through a full 450-sample window."""
        # A clean sine sampled at ~30 Hz rises well under one unit per
        # sample near its crest, so every local maximum has to count.
        config = MeasurementConfig(peak_threshold=0.0)
        samples = _sine_window(450, 0.033, 1.2)

        analysis = SignalProcessor(config).analyze(samples)

        assert abs(analysis.bpm - 72) <= 5, f"Expected ~72 BPM, got {analysis.bpm}"
        assert len(analysis.processed) == 450 - config.trim_offset
        assert analysis.duration_s == pytest.approx(14.85)
        assert analysis.amplitude > config.validity_threshold
        assert analysis.peak_count == len(analysis.peaks)

    def test_duration_uses_untrimmed_window(self):
        config = MeasurementConfig(
            window_capacity=100, sample_interval_ms=100.0, trim_offset=50,
            peak_threshold=0.0, validity_threshold=0.0, sliding_window=False,
        )
        analysis = SignalProcessor(config).analyze(_sine_window(100, 0.1, 1.0))
        assert analysis.duration_s == pytest.approx(10.0)
        assert analysis.bpm == estimate_bpm(analysis.peak_count, 10.0)

    @pytest.mark.parametrize("peak_threshold", [0.0, 1.0, 2.0])
    def test_constant_window_is_invalid(self, peak_threshold):
        config = MeasurementConfig(peak_threshold=peak_threshold)
        with pytest.raises(InvalidSignalError):
            SignalProcessor(config).analyze(np.full(450, 128.0))

    def test_empty_window_raises(self):
        with pytest.raises(EmptyInputError):
            SignalProcessor().analyze([])

    def test_preview_is_detrended(self):
        preview = SignalProcessor().preview([10.0, 20.0, 30.0])
        assert preview.tolist() == pytest.approx([-10.0, 0.0, 10.0])

    def test_preview_empty(self):
        assert SignalProcessor().preview([]).size == 0
