#!/usr/bin/env python3
"""
Pulse Monitor – main entry point.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --preset NAME            Baseline configuration (default: fingertip)
    --capacity INT           Samples per analysis window
    --interval-ms FLOAT      Sample cadence in milliseconds
    --trim INT               Warm-up samples dropped before peak search
    --peak-threshold FLOAT   Minimum rise above both neighbours for a peak
    --validity-threshold F   Minimum peak-to-peak amplitude (0 disables)
    --sliding / --batch      Window eviction mode
    --camera-index INT       OpenCV camera index (default: 0)
    --resolution WxH         Camera resolution (default: 640x480)
    --channel NAME           Colour channel to average (default: red)
    --synthetic              Use a synthetic pulse instead of the camera
    --synthetic-bpm FLOAT    Heart rate of the synthetic pulse (default: 72)
    --repeat INT             Number of measurements to take (default: 1)
    --verbose                Debug logging

Exit status is 0 when the last measurement completed, 1 when it was invalid
or failed, and 2 for bad options.
"""

from __future__ import annotations

import argparse
import logging
import sys

from pulse_monitor.camera import CHANNELS, CameraSampleSource
from pulse_monitor.config import PRESETS, MeasurementConfig
from pulse_monitor.errors import ConfigurationError
from pulse_monitor.session import MeasurementSession, MeasurementStatus
from pulse_monitor.synthetic import SyntheticSampleSource

logger = logging.getLogger("pulse_monitor")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fingertip heart-rate measurement from camera intensity (PPG)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), default="fingertip",
                        help="Baseline measurement configuration")
    parser.add_argument("--capacity", type=int, default=None,
                        help="Samples per analysis window (overrides preset)")
    parser.add_argument("--interval-ms", type=float, default=None,
                        help="Sample cadence in ms (overrides preset)")
    parser.add_argument("--trim", type=int, default=None,
                        help="Warm-up samples dropped before peak search")
    parser.add_argument("--peak-threshold", type=float, default=None,
                        help="Minimum rise above both neighbours for a peak")
    parser.add_argument("--validity-threshold", type=float, default=None,
                        help="Minimum peak-to-peak amplitude; 0 disables the gate")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--sliding", dest="sliding", action="store_true", default=None,
                      help="Evict the oldest sample when the window is full")
    mode.add_argument("--batch", dest="sliding", action="store_false",
                      help="Fill the window once")
    parser.add_argument("--camera-index", type=int, default=0,
                        help="OpenCV VideoCapture index")
    parser.add_argument("--resolution", default="640x480",
                        help="Camera resolution, e.g. 640x480")
    parser.add_argument("--channel", choices=sorted(CHANNELS), default="red",
                        help="Colour channel to average")
    parser.add_argument("--synthetic", action="store_true",
                        help="Measure a synthetic pulse instead of the camera")
    parser.add_argument("--synthetic-bpm", type=float, default=72.0,
                        help="Heart rate of the synthetic pulse")
    parser.add_argument("--repeat", type=int, default=1,
                        help="Number of measurements to take")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MeasurementConfig:
    return MeasurementConfig.preset(args.preset).with_overrides(
        window_capacity=args.capacity,
        sample_interval_ms=args.interval_ms,
        trim_offset=args.trim,
        peak_threshold=args.peak_threshold,
        validity_threshold=args.validity_threshold,
        sliding_window=args.sliding,
    )


def build_source(args: argparse.Namespace, config: MeasurementConfig):
    if args.synthetic:
        return SyntheticSampleSource(
            bpm=args.synthetic_bpm,
            sample_interval_s=config.sample_interval_s,
            noise_std=0.3,
        )
    try:
        res_w, res_h = (int(v) for v in args.resolution.lower().split("x"))
    except ValueError:
        raise ConfigurationError(
            "Invalid --resolution format.  Use WxH, e.g. 640x480."
        ) from None
    return CameraSampleSource(
        camera_index=args.camera_index,
        resolution=(res_w, res_h),
        fps=max(1, round(1000.0 / config.sample_interval_ms)),
        channel=args.channel,
    )


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
        source = build_source(args, config)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    logger.info("Configuration: %s", config.as_dict())
    logger.info("Place your finger over the camera.  Press Ctrl+C to abort.")

    session = MeasurementSession(source, config)
    result = None
    try:
        for attempt in range(1, max(1, args.repeat) + 1):
            session.start()
            result = session.run()
            if result is None:
                break
            if result.status is MeasurementStatus.COMPLETE:
                print(f"[{attempt}] BPM={result.bpm}")
            else:
                print(f"[{attempt}] {result.status.value}: {result.message}")
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        session.stop()

    if result is not None and result.status is MeasurementStatus.COMPLETE:
        return 0
    return 1


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
