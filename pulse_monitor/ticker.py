"""
Fixed-period cadence driver.

The ticker calls a single callback on the thread that called ``run()``, once
per period, until ``stop()`` is called.  Deadlines are scheduled from a
monotonic clock so jitter does not accumulate; when a callback overruns its
period the schedule is re-anchored instead of firing a burst of late ticks.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from pulse_monitor.errors import ConfigurationError

logger = logging.getLogger(__name__)


class CadenceTicker:
    """
    Scoped periodic driver.

    Parameters
    ----------
    interval_s:
        Period between callback invocations, in seconds.
    callback:
        Zero-argument callable invoked once per period.
    clock:
        Monotonic time source (overridable for tests).

    Usage::

        with CadenceTicker(0.033, session.tick) as ticker:
            ticker.run()
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not interval_s > 0:
            raise ConfigurationError(f"interval_s must be positive, got {interval_s}")
        self.interval_s = interval_s
        self._callback = callback
        self._clock = clock
        self._stop_event = threading.Event()
        self._ticks = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Block, invoking the callback every period until stopped."""
        deadline = self._clock()
        while not self._stop_event.is_set():
            self._callback()
            self._ticks += 1
            if self._stop_event.is_set():
                break

            deadline += self.interval_s
            delay = deadline - self._clock()
            if delay < 0:
                logger.debug("Tick %d overran its period by %.1f ms.", self._ticks, -delay * 1000)
                deadline = self._clock()
                delay = 0.0
            self._stop_event.wait(delay)

    def stop(self) -> None:
        """Stop the ticker.  Safe to call more than once, from any thread."""
        if not self._stop_event.is_set():
            self._stop_event.set()
            logger.debug("Ticker stopped after %d ticks.", self._ticks)

    @property
    def active(self) -> bool:
        return not self._stop_event.is_set()

    @property
    def ticks(self) -> int:
        return self._ticks

    # Context-manager support
    def __enter__(self) -> "CadenceTicker":
        return self

    def __exit__(self, *_) -> None:
        self.stop()
