"""
Synthetic PPG sample source for demos and tests.

Produces ``baseline + amplitude · sin(2π · f · t) + noise`` with
``t = n · interval``, i.e. time advances by one sample interval per read
regardless of wall-clock time.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np

from pulse_monitor.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


class SyntheticSampleSource:
    """
    Deterministic sinusoidal pulse.

    Parameters
    ----------
    bpm:
        Simulated heart rate (frequency = bpm / 60 Hz).
    sample_interval_s:
        Time step between consecutive samples.
    baseline:
        DC level (mean channel intensity).
    amplitude:
        Pulse amplitude; ``0`` gives a constant, pulse-free signal.
    noise_std:
        Standard deviation of additive Gaussian noise.
    seed:
        Seed for the noise generator.
    fail_on_start:
        Report failure instead of readiness when started.
    """

    def __init__(
        self,
        bpm: float = 72.0,
        sample_interval_s: float = 0.033,
        baseline: float = 128.0,
        amplitude: float = 10.0,
        noise_std: float = 0.0,
        seed: Optional[int] = None,
        fail_on_start: bool = False,
    ) -> None:
        self.bpm = bpm
        self.sample_interval_s = sample_interval_s
        self.baseline = baseline
        self.amplitude = amplitude
        self.noise_std = noise_std
        self.seed = seed
        self.fail_on_start = fail_on_start

        self._rng = np.random.default_rng(seed)
        self._index = 0
        self._running = False

    def start(
        self,
        on_ready: Callable[[], None],
        on_failed: Callable[..., None],
    ) -> None:
        if self.fail_on_start:
            on_failed("synthetic source configured to fail")
            return
        self._rng = np.random.default_rng(self.seed)
        self._index = 0
        self._running = True
        logger.info("Synthetic source started – %.1f BPM, amplitude %.1f.", self.bpm, self.amplitude)
        on_ready()

    def read_sample(self) -> Optional[float]:
        if not self._running:
            raise SourceUnavailableError("Synthetic source is not running.")
        t = self._index * self.sample_interval_s
        self._index += 1
        value = self.baseline + self.amplitude * np.sin(2 * np.pi * (self.bpm / 60.0) * t)
        if self.noise_std > 0:
            value += self._rng.normal(0.0, self.noise_std)
        return float(np.clip(value, 0.0, 255.0))

    def close(self) -> None:
        self._running = False

    @property
    def samples_read(self) -> int:
        return self._index
