"""
Camera sample source.

Wraps OpenCV ``VideoCapture`` (any webcam or phone camera exposed as a
video device) and reduces each frame to a single intensity: the mean of one
colour channel, optionally over a centred region of interest.  Red is the
default channel since a fingertip over the lens passes mostly red light.

Torch / flash control is deliberately absent: ``VideoCapture`` has no
portable way to drive it, so light the fingertip externally if needed.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from pulse_monitor.errors import ConfigurationError, SourceUnavailableError

logger = logging.getLogger(__name__)

# OpenCV frames are BGR.
CHANNELS = {"blue": 0, "green": 1, "red": 2}


class CameraSampleSource:
    """
    Mean channel intensity of live camera frames.

    Parameters
    ----------
    camera_index:
        OpenCV ``VideoCapture`` device index.
    resolution:
        (width, height) requested from the device.
    fps:
        Frame rate requested from the device.  Samples are pulled at the
        session's cadence regardless.
    channel:
        ``"red"``, ``"green"`` or ``"blue"``.
    roi_fraction:
        Fraction of the shorter frame dimension used for a centred square
        region of interest; *None* averages the whole frame.
    warmup_frames:
        Frames discarded after opening so auto-exposure can settle.
    """

    def __init__(
        self,
        camera_index: int = 0,
        resolution: Tuple[int, int] = (640, 480),
        fps: int = 30,
        channel: str = "red",
        roi_fraction: Optional[float] = None,
        warmup_frames: int = 8,
    ) -> None:
        if channel not in CHANNELS:
            raise ConfigurationError(
                f"channel must be one of {sorted(CHANNELS)}, got {channel!r}"
            )
        if roi_fraction is not None and not 0.0 < roi_fraction <= 1.0:
            raise ConfigurationError(f"roi_fraction must be in (0, 1], got {roi_fraction}")
        self.camera_index = camera_index
        self.resolution = resolution
        self.fps = fps
        self.channel = channel
        self.roi_fraction = roi_fraction
        self.warmup_frames = warmup_frames

        self._cap: "cv2.VideoCapture | None" = None

    # ------------------------------------------------------------------
    # SampleSource interface
    # ------------------------------------------------------------------

    def start(
        self,
        on_ready: Callable[[], None],
        on_failed: Callable[..., None],
    ) -> None:
        """Open the camera, then report readiness or failure."""
        try:
            self.open()
        except SourceUnavailableError as exc:
            logger.error("%s", exc)
            on_failed(str(exc))
            return
        on_ready()

    def read_sample(self) -> Optional[float]:
        """
        Capture one frame and return its mean channel intensity (0 – 255),
        or *None* when the frame could not be read.
        """
        if self._cap is None:
            raise SourceUnavailableError("Camera is not open.  Call open() first.")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            logger.warning("VideoCapture.read() returned no frame.")
            return None
        return self.frame_intensity(frame)

    def close(self) -> None:
        """Release the camera."""
        if self._cap is None:
            return
        self._cap.release()
        self._cap = None
        logger.info("Camera closed.")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Initialise the capture device and let exposure settle."""
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise SourceUnavailableError(
                f"Cannot open video capture device index={self.camera_index}"
            )
        w, h = self.resolution
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        cap.set(cv2.CAP_PROP_FPS, self.fps)
        for _ in range(self.warmup_frames):
            cap.read()
        self._cap = cap
        logger.info(
            "Camera opened – index=%d resolution=%s fps=%d channel=%s",
            self.camera_index, self.resolution, self.fps, self.channel,
        )

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    # Context-manager support
    def __enter__(self) -> "CameraSampleSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Frame reduction
    # ------------------------------------------------------------------

    def frame_intensity(self, frame: np.ndarray) -> float:
        """
        Mean intensity of the configured channel.

        Parameters
        ----------
        frame:
            BGR image array (H × W × 3, uint8).
        """
        if self.roi_fraction is not None:
            h, w = frame.shape[:2]
            side = max(1, int(min(w, h) * self.roi_fraction))
            x0, y0 = (w - side) // 2, (h - side) // 2
            frame = frame[y0:y0 + side, x0:x0 + side]
        return float(np.mean(frame[:, :, CHANNELS[self.channel]]))
