"""Unit tests for the list command."""

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import typer
from mountwatch.cli.main import app
from mountwatch.cli.types import run_single_pass
from mountwatch.core.config import MonitorConfig, MonitorConfigParseError
from mountwatch.volumes.models import BlockDeviceRecord, Volume
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def mock_pass(make_volume: Callable[..., Volume]) -> Any:
    """Patch the single pass to report two volumes."""
    reconciler = MagicMock()
    reconciler.current_state.return_value = [
        make_volume("/media/usb", label="USB", identity="u1"),
        make_volume("/mnt/media", label="media", identity="u2"),
    ]
    with (
        patch("mountwatch.cli.commands.volumes.load_config_or_exit", return_value=MonitorConfig()),
        patch("mountwatch.cli.commands.volumes.run_single_pass", return_value=reconciler),
    ):
        yield reconciler


class TestListCommand:
    """Tests for mountwatch list."""

    def test_help(self) -> None:
        """List command shows help."""
        result = runner.invoke(app, ["list", "--help"])

        assert result.exit_code == 0
        assert "List the currently mounted volumes" in result.stdout

    @pytest.mark.usefixtures("mock_pass")
    def test_table(self) -> None:
        """Volumes are shown as a table with a count."""
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "USB" in result.stdout
        assert "2 volume(s)" in result.stdout

    @pytest.mark.usefixtures("mock_pass")
    def test_json(self) -> None:
        """--format json prints the volumes as JSON."""
        result = runner.invoke(app, ["list", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [v["uuid"] for v in data] == ["u1", "u2"]

    def test_no_volumes(self, mock_pass: Any) -> None:
        """An empty state prints a notice."""
        mock_pass.current_state.return_value = []

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No mounted volumes found" in result.stdout

    def test_invalid_config(self) -> None:
        """An invalid config file exits with code 1."""
        with patch(
            "mountwatch.cli.types.load_config_or_default",
            side_effect=MonitorConfigParseError("Invalid TOML syntax"),
        ):
            result = runner.invoke(app, ["list"])

        assert result.exit_code == 1
        assert "Invalid TOML syntax" in result.output


class TestRunSinglePass:
    """Tests for run_single_pass helper."""

    @pytest.mark.skipif(sys.platform == "darwin", reason="temporary paths are ignored on macOS")
    def test_collects_volumes(
        self,
        tmp_path: Path,
        fake_provider: Any,
        make_device: Callable[..., BlockDeviceRecord],
    ) -> None:
        """One pass reports the existing mount folders."""
        (tmp_path / "usb").mkdir()
        fake_provider.devices = [make_device(str(tmp_path / "usb"), uuid="u1")]

        with patch("mountwatch.cli.types.get_provider", return_value=fake_provider):
            reconciler = run_single_pass(MonitorConfig())

        assert [v.identity for v in reconciler.current_state()] == ["u1"]
        assert not reconciler.running
        assert all(w.stopped for w in reconciler.state.watchers.values())

    def test_enumeration_error_exits(self, fake_provider: Any) -> None:
        """Enumeration failures exit with code 1."""
        fake_provider.fail()

        with (
            patch("mountwatch.cli.types.get_provider", return_value=fake_provider),
            pytest.raises(typer.Exit) as exc_info,
        ):
            run_single_pass(MonitorConfig())

        assert exc_info.value.exit_code == 1
