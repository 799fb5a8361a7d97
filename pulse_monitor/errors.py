"""
Exception hierarchy for the measurement pipeline.

Configuration problems are raised when a config, window or session is
built, never mid-run.  Everything raised while a session is running is
caught by the session and turned into a terminal ``MeasurementResult``.
"""

from __future__ import annotations


class PulseMonitorError(Exception):
    """Base class for all errors raised by ``pulse_monitor``."""


class ConfigurationError(PulseMonitorError, ValueError):
    """Invalid capacity, interval, threshold or trim value."""


class DegenerateDurationError(ConfigurationError):
    """The analysis window would span zero (or negative) seconds."""


class EmptyInputError(PulseMonitorError, ValueError):
    """A signal stage received an empty sequence.

    Analysis only runs on a full window, so this indicates a bug rather
    than a user-recoverable condition.
    """


class InvalidSignalError(PulseMonitorError):
    """
    The signal is too flat to contain a pulse.

    Parameters
    ----------
    amplitude:
        Peak-to-peak amplitude of the rejected signal.
    threshold:
        Minimum amplitude that would have been accepted.
    """

    def __init__(
        self,
        amplitude: float,
        threshold: float,
        message: str = "no valid signal detected - reposition finger",
    ) -> None:
        super().__init__(message)
        self.amplitude = amplitude
        self.threshold = threshold
        self.message = message


class SourceUnavailableError(PulseMonitorError, RuntimeError):
    """The sample source cannot produce samples."""
