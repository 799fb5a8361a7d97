"""
Measurement session state machine.

One session drives one measurement at a time::

    IDLE → ACQUIRING → SAMPLING → ANALYZING → COMPLETE | INVALID | ERROR

``start()`` allocates a fresh window and a cadence ticker and asks the sample
source to start.  Once the source reports it is ready, every tick pulls one
sample into the window.  When the window is full the pipeline runs once,
synchronously, and the session settles in a terminal state with exactly one
:class:`MeasurementResult`.  ``stop()`` returns to ``IDLE`` from anywhere.

Each run carries a generation number.  Ticks and source callbacks bound to
an older generation are ignored, so nothing from a stopped run can reach a
later window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Optional, Protocol

import numpy as np

from pulse_monitor.config import MeasurementConfig
from pulse_monitor.errors import (
    InvalidSignalError,
    PulseMonitorError,
    SourceUnavailableError,
)
from pulse_monitor.signal_processor import SignalAnalysis, SignalProcessor
from pulse_monitor.ticker import CadenceTicker
from pulse_monitor.window import SamplingWindow

logger = logging.getLogger(__name__)

SOURCE_UNAVAILABLE = "source unavailable"


# ---------------------------------------------------------------------------
# States and results
# ---------------------------------------------------------------------------

class SessionState(Enum):
    IDLE      = "idle"
    ACQUIRING = "acquiring"   # waiting for the source to become ready
    SAMPLING  = "sampling"
    ANALYZING = "analyzing"
    COMPLETE  = "complete"
    INVALID   = "invalid"
    ERROR     = "error"


_BUSY_STATES = frozenset(
    {SessionState.ACQUIRING, SessionState.SAMPLING, SessionState.ANALYZING}
)


class MeasurementStatus(Enum):
    COMPLETE = "complete"
    INVALID  = "invalid"
    ERROR    = "error"


@dataclass(frozen=True)
class MeasurementResult:
    """Terminal outcome of one run.  ``bpm`` is set only when complete."""

    status: MeasurementStatus
    bpm: Optional[int]
    message: str

    @classmethod
    def complete(cls, bpm: int) -> "MeasurementResult":
        return cls(MeasurementStatus.COMPLETE, int(bpm), "measurement complete")

    @classmethod
    def invalid(cls, message: str) -> "MeasurementResult":
        return cls(MeasurementStatus.INVALID, None, message)

    @classmethod
    def error(cls, message: str) -> "MeasurementResult":
        return cls(MeasurementStatus.ERROR, None, message)


class SampleSource(Protocol):
    """
    Anything that can deliver one intensity value per tick.

    ``start`` must eventually call exactly one of *on_ready* or *on_failed*
    (it may do so before returning).  ``read_sample`` returns *None* for a
    dropped frame and raises :class:`SourceUnavailableError` when the source
    is gone for good.  ``close`` must be safe to call more than once.
    """

    def start(
        self,
        on_ready: Callable[[], None],
        on_failed: Callable[..., None],
    ) -> None: ...

    def read_sample(self) -> Optional[float]: ...

    def close(self) -> None: ...


TickerFactory = Callable[[float, Callable[[], None]], CadenceTicker]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class MeasurementSession:
    """
    Single-flight measurement run.

    Parameters
    ----------
    source:
        Sample source, owned by the session while a run is in progress.
    config:
        Measurement configuration.  Validated on construction.
    on_result:
        Called once with the :class:`MeasurementResult` of every run.
    on_signal:
        Optional; called with the detrended window after each accepted
        sample (for live charts).
    ticker_factory:
        Builds the cadence ticker for a run from ``(interval_s, callback)``.
    """

    def __init__(
        self,
        source: SampleSource,
        config: Optional[MeasurementConfig] = None,
        on_result: Optional[Callable[[MeasurementResult], None]] = None,
        on_signal: Optional[Callable[[np.ndarray], None]] = None,
        ticker_factory: TickerFactory = CadenceTicker,
    ) -> None:
        self.config = config if config is not None else MeasurementConfig()
        self._source = source
        self._processor = SignalProcessor(self.config)
        self._on_result = on_result
        self._on_signal = on_signal
        self._ticker_factory = ticker_factory

        self._state = SessionState.IDLE
        self._window: Optional[SamplingWindow] = None
        self._ticker: Optional[CadenceTicker] = None
        self._source_open = False
        self._generation = 0
        self._missed = 0

        self._result: Optional[MeasurementResult] = None
        self._analysis: Optional[SignalAnalysis] = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Begin a new run.

        Returns *False*, leaving the current run untouched, when a run is
        already in progress.
        """
        if self.is_busy:
            logger.warning("start() rejected – session is %s.", self._state.value)
            return False

        self._release()
        self._generation += 1
        generation = self._generation

        cfg = self.config
        if self._window is not None:
            self._window.clear()
        self._window = SamplingWindow(
            cfg.window_capacity, cfg.sample_interval_s, sliding=cfg.sliding_window
        )
        self._result = None
        self._analysis = None
        self._missed = 0
        self._state = SessionState.ACQUIRING
        self._ticker = self._ticker_factory(
            cfg.sample_interval_s, partial(self._on_tick, generation)
        )
        logger.info(
            "Session started – %d samples @ %.0f ms (%.2f s window).",
            cfg.window_capacity, cfg.sample_interval_ms, cfg.duration_s,
        )

        self._source_open = True
        try:
            self._source.start(
                partial(self._on_source_ready, generation),
                partial(self._on_source_failed, generation),
            )
        except SourceUnavailableError as exc:
            self._on_source_failed(generation, str(exc))
        return True

    def tick(self) -> None:
        """Advance the current run by one cadence period."""
        self._on_tick(self._generation)

    def run(self) -> Optional[MeasurementResult]:
        """
        Drive the current run's ticker until the run ends or is stopped.

        If anything interrupts the loop (including ``KeyboardInterrupt``)
        the session is stopped before the exception propagates.
        """
        ticker = self._ticker
        if ticker is None:
            return self._result
        try:
            ticker.run()
        except BaseException:
            self.stop()
            raise
        return self._result

    def stop(self) -> None:
        """Abandon any run in progress, discard the window and go idle."""
        self._generation += 1
        self._release()
        if self._window is not None:
            self._window.clear()
            self._window = None
        previous = self._state
        self._state = SessionState.IDLE
        self._result = None
        self._analysis = None
        self._missed = 0
        if previous is not SessionState.IDLE:
            logger.info("Session stopped (was %s).", previous.value)

    reset = stop

    # Context-manager support
    def __enter__(self) -> "MeasurementSession":
        return self

    def __exit__(self, *_) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def result(self) -> Optional[MeasurementResult]:
        return self._result

    @property
    def window(self) -> Optional[SamplingWindow]:
        return self._window

    @property
    def last_analysis(self) -> Optional[SignalAnalysis]:
        """Intermediate signals of the last completed analysis, if any."""
        return self._analysis

    @property
    def is_busy(self) -> bool:
        return self._state in _BUSY_STATES

    @property
    def is_measuring(self) -> bool:
        """True from ``start()`` until the run settles or is stopped."""
        return self._state in _BUSY_STATES

    @property
    def has_error(self) -> bool:
        return self._state is SessionState.ERROR

    @property
    def progress(self) -> float:
        """Window fill ratio (0 – 1); 0 when no run is active."""
        return self._window.fill_ratio if self._window is not None else 0.0

    # ------------------------------------------------------------------
    # Source callbacks and ticks
    # ------------------------------------------------------------------

    def _on_source_ready(self, generation: int) -> None:
        if generation != self._generation or self._state is not SessionState.ACQUIRING:
            logger.debug("Ignoring stale source-ready signal.")
            return
        self._state = SessionState.SAMPLING
        logger.info("Source ready – sampling.")

    def _on_source_failed(self, generation: int, reason: str = SOURCE_UNAVAILABLE) -> None:
        if generation != self._generation or not self.is_busy:
            logger.debug("Ignoring stale source-failure signal (%s).", reason)
            return
        logger.warning("Sample source failed: %s", reason)
        self._finish(SessionState.ERROR, MeasurementResult.error(SOURCE_UNAVAILABLE))

    def _on_tick(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Ignoring tick from a previous run.")
            return
        if self._state is not SessionState.SAMPLING:
            return

        try:
            sample = self._source.read_sample()
        except SourceUnavailableError as exc:
            logger.warning("Sample source lost: %s", exc)
            self._finish(SessionState.ERROR, MeasurementResult.error(SOURCE_UNAVAILABLE))
            return

        if sample is None:
            self._missed += 1
            if self._missed >= self.config.max_missed_samples:
                logger.error("Source missed %d consecutive samples – aborting.", self._missed)
                self._finish(SessionState.ERROR, MeasurementResult.error(SOURCE_UNAVAILABLE))
            return
        self._missed = 0

        window = self._window
        window.push(sample)
        if self._on_signal is not None:
            self._on_signal(self._processor.preview(window.snapshot()))
            # The consumer may have stopped or restarted the session.
            if generation != self._generation or self._state is not SessionState.SAMPLING:
                return

        if window.is_full():
            self._analyze()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _analyze(self) -> None:
        self._state = SessionState.ANALYZING
        try:
            analysis = self._processor.analyze(self._window.snapshot())
        except InvalidSignalError as exc:
            logger.info(
                "Signal rejected: amplitude %.2f < %.2f.", exc.amplitude, exc.threshold
            )
            self._finish(SessionState.INVALID, MeasurementResult.invalid(exc.message))
            return
        except PulseMonitorError as exc:
            logger.exception("Analysis failed.")
            self._finish(SessionState.ERROR, MeasurementResult.error(str(exc)))
            return
        except Exception as exc:                             # noqa: BLE001
            logger.exception("Unexpected failure during analysis.")
            self._finish(
                SessionState.ERROR, MeasurementResult.error(f"analysis failed: {exc}")
            )
            return

        self._analysis = analysis
        self._finish(SessionState.COMPLETE, MeasurementResult.complete(analysis.bpm))

    def _finish(self, state: SessionState, result: MeasurementResult) -> None:
        self._release()
        self._state = state
        self._result = result
        logger.info("Session %s – bpm=%s (%s).", state.value, result.bpm, result.message)
        if self._on_result is not None:
            self._on_result(result)

    def _release(self) -> None:
        """Stop the ticker and close the source, at most once per run."""
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()
        if self._source_open:
            self._source_open = False
            try:
                self._source.close()
            except Exception as exc:                         # noqa: BLE001
                logger.warning("Closing the sample source failed: %s", exc)
