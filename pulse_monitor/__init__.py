"""
Pulse Monitor — fingertip PPG heart-rate measurement.
Place your finger over the camera lens; each frame is reduced to the mean
intensity of one colour channel, a fixed window of those samples is
collected, and the beats inside the window are counted to give BPM.
"""

from pulse_monitor.config import MeasurementConfig, PRESETS
from pulse_monitor.errors import (
    ConfigurationError,
    DegenerateDurationError,
    EmptyInputError,
    InvalidSignalError,
    PulseMonitorError,
    SourceUnavailableError,
)
from pulse_monitor.session import (
    MeasurementResult,
    MeasurementSession,
    MeasurementStatus,
    SessionState,
)
from pulse_monitor.signal_processor import SignalProcessor
from pulse_monitor.window import SamplingWindow

__version__ = "0.1.0"
__author__ = "pulse_monitor"

__all__ = [
    "ConfigurationError",
    "DegenerateDurationError",
    "EmptyInputError",
    "InvalidSignalError",
    "MeasurementConfig",
    "MeasurementResult",
    "MeasurementSession",
    "MeasurementStatus",
    "PRESETS",
    "PulseMonitorError",
    "SamplingWindow",
    "SessionState",
    "SignalProcessor",
    "SourceUnavailableError",
]
