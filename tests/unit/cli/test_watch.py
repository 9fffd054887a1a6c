"""Unit tests for the watch command."""

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from mountwatch.cli.main import app
from mountwatch.core.config import MonitorConfig
from mountwatch.volumes.models import BlockDeviceRecord
from typer.testing import CliRunner

runner = CliRunner()


class TestWatchCommand:
    """Tests for mountwatch watch."""

    def test_help(self) -> None:
        """Watch command shows help."""
        result = runner.invoke(app, ["watch", "--help"])

        assert result.exit_code == 0
        assert "Print volume events as they happen" in result.stdout

    def test_interval_minimum(self) -> None:
        """Intervals below one second are rejected."""
        result = runner.invoke(app, ["watch", "--interval", "0.1"])

        assert result.exit_code != 0

    @pytest.mark.skipif(sys.platform == "darwin", reason="temporary paths are ignored on macOS")
    def test_prints_first_pass_events(
        self,
        tmp_path: Path,
        fake_provider: Any,
        make_device: Callable[..., BlockDeviceRecord],
    ) -> None:
        """Volumes present at start are reported as mounted."""
        (tmp_path / "usb").mkdir()
        fake_provider.devices = [make_device(str(tmp_path / "usb"), uuid="u1", label="USB")]

        with (
            patch("mountwatch.cli.commands.watch.get_provider", return_value=fake_provider),
            patch(
                "mountwatch.cli.commands.watch.load_config_or_exit",
                return_value=MonitorConfig(),
            ),
        ):
            result = runner.invoke(
                app,
                ["watch", "--strategy", "polling", "--count", "1", "--format", "json"],
            )

        assert result.exit_code == 0
        event = json.loads(result.stdout)
        assert event["type"] == "mount"
        assert event["filesystem"]["uuid"] == "u1"

    @pytest.mark.skipif(sys.platform == "darwin", reason="temporary paths are ignored on macOS")
    def test_table_output(
        self,
        tmp_path: Path,
        fake_provider: Any,
        make_device: Callable[..., BlockDeviceRecord],
    ) -> None:
        """Table output prints a banner and one line per event."""
        (tmp_path / "usb").mkdir()
        fake_provider.devices = [make_device(str(tmp_path / "usb"), label="USB")]

        with (
            patch("mountwatch.cli.commands.watch.get_provider", return_value=fake_provider),
            patch(
                "mountwatch.cli.commands.watch.load_config_or_exit",
                return_value=MonitorConfig(),
            ),
        ):
            result = runner.invoke(
                app, ["watch", "--strategy", "polling", "--interval", "2", "--count", "1"]
            )

        assert result.exit_code == 0
        assert "Watching volumes every 2s" in result.stdout
        assert "+mount" in result.stdout
