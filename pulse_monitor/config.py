"""
Measurement configuration.

A single frozen dataclass describes one measurement run: how often a sample
is taken, how many samples make up the analysis window and the thresholds
used by the peak detector and validity gate.  The four presets reproduce
the baselines the algorithm was tuned with.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict

from pulse_monitor.errors import ConfigurationError, DegenerateDurationError

# Peak search looks at interior samples only.
_MIN_ANALYSED_SAMPLES = 3


@dataclass(frozen=True)
class MeasurementConfig:
    """
    Parameters for one measurement session.

    Parameters
    ----------
    sample_interval_ms:
        Cadence at which samples are pulled from the source (33 – 100 ms).
    window_capacity:
        Number of samples in the analysis window (100 – 450).
    sliding_window:
        When *True* a full window evicts its oldest sample on every push;
        when *False* pushes on a full window are rejected.
    trim_offset:
        Samples dropped from the start of the smoothed signal before peak
        search, to skip exposure warm-up.  Does not change the duration
        used for BPM.
    peak_threshold:
        Minimum rise above *both* neighbours for a local maximum to count.
    validity_threshold:
        Minimum peak-to-peak amplitude of the trimmed signal.  ``0``
        disables the gate.
    max_missed_samples:
        Consecutive dropped samples tolerated before the source is
        considered unavailable.
    """

    sample_interval_ms: float = 33.0
    window_capacity: int = 450
    sliding_window: bool = True
    trim_offset: int = 30
    peak_threshold: float = 1.0
    validity_threshold: float = 2.0
    max_missed_samples: int = 10

    def __post_init__(self) -> None:
        for name in ("sample_interval_ms", "peak_threshold", "validity_threshold"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value}")
        if self.window_capacity <= 0:
            raise ConfigurationError(
                f"window_capacity must be positive, got {self.window_capacity}"
            )
        if self.sample_interval_ms <= 0:
            raise ConfigurationError(
                f"sample_interval_ms must be positive, got {self.sample_interval_ms}"
            )
        if self.trim_offset < 0:
            raise ConfigurationError(f"trim_offset must be >= 0, got {self.trim_offset}")
        if self.window_capacity - self.trim_offset < _MIN_ANALYSED_SAMPLES:
            raise ConfigurationError(
                f"trim_offset={self.trim_offset} leaves fewer than "
                f"{_MIN_ANALYSED_SAMPLES} samples of a {self.window_capacity}-sample window"
            )
        if self.peak_threshold < 0:
            raise ConfigurationError(
                f"peak_threshold must be >= 0, got {self.peak_threshold}"
            )
        if self.validity_threshold < 0:
            raise ConfigurationError(
                f"validity_threshold must be >= 0, got {self.validity_threshold}"
            )
        if self.max_missed_samples < 1:
            raise ConfigurationError(
                f"max_missed_samples must be >= 1, got {self.max_missed_samples}"
            )
        if self.duration_s <= 0:
            raise DegenerateDurationError(
                f"window duration is {self.duration_s} s; BPM cannot be computed"
            )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def sample_interval_s(self) -> float:
        return self.sample_interval_ms / 1000.0

    @property
    def duration_s(self) -> float:
        """Length of the full (untrimmed) window in seconds."""
        return self.window_capacity * self.sample_interval_s

    def with_overrides(self, **overrides: Any) -> "MeasurementConfig":
        """Return a copy with the non-``None`` *overrides* applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    @classmethod
    def preset(cls, name: str) -> "MeasurementConfig":
        """
        Look up one of the baseline configurations by name.

        Raises
        ------
        ConfigurationError
            If *name* is not a known preset.
        """
        try:
            return PRESETS[name]
        except KeyError:
            known = ", ".join(sorted(PRESETS))
            raise ConfigurationError(f"Unknown preset {name!r} (known: {known})") from None


PRESETS: Dict[str, MeasurementConfig] = {
    # ~15 s sliding window at ~30 Hz, warm-up trimmed.
    "fingertip": MeasurementConfig(),
    # 20 s batch window at 10 Hz with stricter thresholds.
    "steady": MeasurementConfig(
        sample_interval_ms=100.0,
        window_capacity=200,
        sliding_window=False,
        trim_offset=0,
        peak_threshold=2.0,
        validity_threshold=5.0,
    ),
    # 10 s batch window, every local maximum counts, no gate.
    "basic": MeasurementConfig(
        sample_interval_ms=100.0,
        window_capacity=100,
        sliding_window=False,
        trim_offset=0,
        peak_threshold=0.0,
        validity_threshold=0.0,
    ),
    # As "basic", with the amplitude gate enabled.
    "gated": MeasurementConfig(
        sample_interval_ms=100.0,
        window_capacity=100,
        sliding_window=False,
        trim_offset=0,
        peak_threshold=0.0,
        validity_threshold=2.0,
    ),
}
