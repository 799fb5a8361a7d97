"""
Fixed-capacity sample buffer.

In sliding mode the window behaves like the rolling buffer of a live
monitor: once full, every push evicts the oldest sample.  In batch mode the
window fills once and further pushes are rejected until ``clear()``.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Tuple

from pulse_monitor.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SamplingWindow:
    """
    Ordered buffer of raw intensity samples.

    Parameters
    ----------
    capacity:
        Maximum number of samples held.
    sample_interval_s:
        Time between consecutive samples, in seconds.
    sliding:
        FIFO eviction on a full window instead of rejecting the push.
    """

    def __init__(
        self,
        capacity: int,
        sample_interval_s: float,
        sliding: bool = False,
    ) -> None:
        if capacity <= 0:
            raise ConfigurationError(f"capacity must be positive, got {capacity}")
        if sample_interval_s <= 0:
            raise ConfigurationError(
                f"sample_interval_s must be positive, got {sample_interval_s}"
            )
        self._capacity = int(capacity)
        self._sample_interval_s = float(sample_interval_s)
        self._sliding = bool(sliding)
        self._buffer: Deque[float] = deque(maxlen=self._capacity)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def push(self, sample: float) -> bool:
        """
        Append *sample*.

        Returns *False* when the window is full in batch mode and the sample
        was dropped; *True* otherwise.
        """
        if not self._sliding and len(self._buffer) >= self._capacity:
            logger.debug("Batch window full – sample dropped.")
            return False
        self._buffer.append(float(sample))
        return True

    def is_full(self) -> bool:
        return len(self._buffer) >= self._capacity

    def snapshot(self) -> Tuple[float, ...]:
        """Immutable copy of the samples, oldest first."""
        return tuple(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def fill_ratio(self) -> float:
        """How full the window is (0 – 1)."""
        return len(self._buffer) / self._capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def sample_interval_s(self) -> float:
        return self._sample_interval_s

    @property
    def sliding(self) -> bool:
        return self._sliding
