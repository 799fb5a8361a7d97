"""
Tests for the command-line entry point.
"""

from __future__ import annotations

import main
from pulse_monitor.camera import CameraSampleSource
from pulse_monitor.synthetic import SyntheticSampleSource


class TestCli:

    def test_preset_with_overrides(self):
        args = main.parse_args(["--preset", "steady", "--capacity", "150", "--sliding"])
        cfg = main.build_config(args)
        assert cfg.window_capacity == 150
        assert cfg.sample_interval_ms == 100.0
        assert cfg.sliding_window is True
        assert cfg.validity_threshold == 5.0

    def test_defaults_are_fingertip(self):
        cfg = main.build_config(main.parse_args([]))
        assert cfg.window_capacity == 450
        assert cfg.sliding_window is True

    def test_batch_flag(self):
        cfg = main.build_config(main.parse_args(["--batch"]))
        assert cfg.sliding_window is False

    def test_source_selection(self):
        args = main.parse_args(["--synthetic", "--synthetic-bpm", "90"])
        src = main.build_source(args, main.build_config(args))
        assert isinstance(src, SyntheticSampleSource)
        assert src.bpm == 90.0

        args = main.parse_args(["--resolution", "320x240", "--channel", "green"])
        src = main.build_source(args, main.build_config(args))
        assert isinstance(src, CameraSampleSource)
        assert src.resolution == (320, 240)
        assert src.fps == 30

    def test_bad_resolution_exits_2(self):
        assert main.run(main.parse_args(["--resolution", "wide"])) == 2

    def test_bad_config_exits_2(self):
        assert main.run(main.parse_args(["--capacity", "0"])) == 2

    def test_synthetic_measurement_completes(self, capsys):
        args = main.parse_args([
            "--synthetic", "--capacity", "40", "--interval-ms", "1",
            "--trim", "0", "--peak-threshold", "0", "--validity-threshold", "0",
            "--repeat", "2",
        ])
        assert main.run(args) == 0
        out = capsys.readouterr().out
        assert "[1] BPM=" in out
        assert "[2] BPM=" in out
