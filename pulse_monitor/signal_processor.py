"""
PPG signal processor.

Algorithm
---------
1. Remove the DC offset by subtracting the window mean.
2. Smooth with a symmetric 3-tap moving average; the first and last samples
   pass through unchanged.
3. Drop the first ``trim_offset`` samples, which still carry the camera's
   exposure / white-balance settling.
4. Reject the window if its peak-to-peak amplitude is below
   ``validity_threshold`` (no finger, or finger not covering the lens).
5. Count local maxima that rise more than ``peak_threshold`` above both
   neighbours.
6. ``bpm = peaks × 60 / window_duration``, where the duration is that of the
   full, untrimmed window.

Notes
-----
There is no minimum spacing between peaks.  With a low ``peak_threshold``
noise near a crest can be counted twice, which biases the estimate upwards
on noisy signals.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

import numpy as np
from scipy.signal import detrend as _scipy_detrend
from scipy.signal import find_peaks

from pulse_monitor.config import MeasurementConfig
from pulse_monitor.errors import (
    DegenerateDurationError,
    EmptyInputError,
    InvalidSignalError,
)

logger = logging.getLogger(__name__)


class PeakDetection(NamedTuple):
    count: int
    indices: np.ndarray


@dataclass(frozen=True)
class SignalAnalysis:
    """
    Outcome of one analysis pass over a full window.

    Attributes
    ----------
    processed:
        Detrended, smoothed and trimmed signal that peaks were searched in.
    peaks:
        Indices into *processed* of the detected peaks.
    amplitude:
        Peak-to-peak amplitude of *processed*.
    duration_s:
        Duration of the full window used for the rate.
    bpm:
        Rounded heart-rate estimate.
    """

    processed: np.ndarray
    peaks: np.ndarray
    amplitude: float
    duration_s: float
    bpm: int

    @property
    def peak_count(self) -> int:
        return int(len(self.peaks))


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

def detrend(samples: Sequence[float]) -> np.ndarray:
    """Return *samples* with their arithmetic mean subtracted."""
    values = np.asarray(samples, dtype=np.float64)
    if values.size == 0:
        raise EmptyInputError("cannot detrend an empty signal")
    return _scipy_detrend(values, type="constant")


def smooth(values: Sequence[float]) -> np.ndarray:
    """
    3-tap moving average with pass-through boundaries.

    ``out[i] = (in[i-1] + in[i] + in[i+1]) / 3`` for interior samples;
    ``out[0]`` and ``out[-1]`` are copied from the input.
    """
    values = np.asarray(values, dtype=np.float64)
    out = values.copy()
    if values.size >= 3:
        out[1:-1] = (values[:-2] + values[1:-1] + values[2:]) / 3.0
    return out


def trim(values: np.ndarray, offset: int) -> np.ndarray:
    """Drop the first *offset* samples."""
    if offset <= 0:
        return values
    return values[offset:]


def detect_peaks(values: Sequence[float], threshold: float) -> PeakDetection:
    """
    Find interior local maxima rising more than *threshold* above both
    neighbours.

    ``find_peaks`` accepts rises equal to the threshold and flat-topped
    peaks, so its candidates are re-checked against the strict
    inequalities on the immediate neighbours.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size < 3:
        return PeakDetection(0, np.array([], dtype=np.intp))

    candidates, _ = find_peaks(values, threshold=threshold)
    left_rise = values[candidates] - values[candidates - 1]
    right_rise = values[candidates] - values[candidates + 1]
    keep = (
        (left_rise > 0)
        & (right_rise > 0)
        & (left_rise > threshold)
        & (right_rise > threshold)
    )
    indices = candidates[keep]
    return PeakDetection(int(indices.size), indices)


def signal_amplitude(values: Sequence[float]) -> float:
    """Peak-to-peak amplitude (max − min)."""
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        raise EmptyInputError("cannot measure the amplitude of an empty signal")
    return float(np.max(values) - np.min(values))


def check_validity(values: Sequence[float], threshold: float) -> float:
    """
    Return the amplitude of *values*, or raise :class:`InvalidSignalError`
    when it is below *threshold*.
    """
    amplitude = signal_amplitude(values)
    if amplitude < threshold:
        raise InvalidSignalError(amplitude, threshold)
    return amplitude


def estimate_bpm(peak_count: int, duration_s: float) -> int:
    """
    Convert a peak count over *duration_s* seconds into beats per minute.

    Halves round up (``72.5 → 73``).
    """
    if duration_s <= 0:
        raise DegenerateDurationError(
            f"window duration is {duration_s} s; BPM cannot be computed"
        )
    return int(math.floor(peak_count * 60.0 / duration_s + 0.5))


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

class SignalProcessor:
    """
    Runs the full pipeline over one window snapshot.

    Parameters
    ----------
    config:
        Measurement configuration; thresholds, trim and window duration are
        read from it.  Defaults to :class:`MeasurementConfig` defaults.
    """

    def __init__(self, config: Optional[MeasurementConfig] = None) -> None:
        self.config = config if config is not None else MeasurementConfig()

    def analyze(self, samples: Sequence[float]) -> SignalAnalysis:
        """
        Analyse a full window of raw samples.

        Raises
        ------
        EmptyInputError
            *samples* is empty, or nothing is left after trimming.
        InvalidSignalError
            The trimmed signal is too flat.
        """
        cfg = self.config
        smoothed = smooth(detrend(samples))
        processed = trim(smoothed, cfg.trim_offset)

        amplitude = check_validity(processed, cfg.validity_threshold)
        peaks = detect_peaks(processed, cfg.peak_threshold)
        bpm = estimate_bpm(peaks.count, cfg.duration_s)

        logger.debug(
            "Analysed %d samples: amplitude=%.2f peaks=%d bpm=%d",
            len(processed), amplitude, peaks.count, bpm,
        )
        return SignalAnalysis(
            processed=processed,
            peaks=peaks.indices,
            amplitude=amplitude,
            duration_s=cfg.duration_s,
            bpm=bpm,
        )

    def preview(self, samples: Sequence[float]) -> np.ndarray:
        """
        Detrended copy of *samples* for plotting.
        Returns an empty array if there is no data yet.
        """
        if len(samples) == 0:
            return np.array([])
        return detrend(samples)
