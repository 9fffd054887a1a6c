"""Monitor configuration and settings.

This module provides the configuration model and I/O functions for the
volume monitor: reconciliation interval, deletion detection strategy,
sorting and additional ignored mount paths.

Configuration is stored in ~/.config/mountwatch/config.toml
"""

import logging
import os
import re
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mountwatch.core.paths import get_config_path

logger = logging.getLogger(__name__)

# Deletion detection strategy names (see mountwatch.deletion.DeletionStrategy)
StrategyName = Literal["ancestors", "polling"]

DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_POLLING_INTERVAL_SECONDS = 5.0


class MonitorConfig(BaseModel):
    """Configuration for the volume monitor.

    Attributes:
        interval_seconds: Time between reconciliation passes.
        deletion_strategy: How mounted folders are watched for deletion.
            "ancestors" watches every parent directory for entry removal,
            "polling" re-checks the folder on a fixed interval.
        polling_interval_seconds: Probe interval of the polling strategy.
        sort_volumes: Sort volumes by the platform sort policy.
        ignore_patterns: Extra mount path regexes to ignore, on top of the
            built-in platform list.
    """

    model_config = ConfigDict(extra="forbid")

    interval_seconds: Annotated[
        float,
        Field(ge=1.0, le=3600.0, description="Seconds between reconciliation passes"),
    ] = DEFAULT_INTERVAL_SECONDS
    deletion_strategy: Annotated[
        StrategyName,
        Field(description="Folder deletion detection strategy"),
    ] = "ancestors"
    polling_interval_seconds: Annotated[
        float,
        Field(gt=0.0, le=3600.0, description="Polling strategy probe interval"),
    ] = DEFAULT_POLLING_INTERVAL_SECONDS
    sort_volumes: Annotated[
        bool,
        Field(description="Sort volumes by label (macOS) or mount path"),
    ] = True
    ignore_patterns: Annotated[
        list[str],
        Field(description="Additional mount path regexes to ignore"),
    ] = []

    @field_validator("ignore_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        """Validate that every ignore pattern compiles."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                msg = f"Invalid ignore pattern {pattern!r}: {e}"
                raise ValueError(msg) from e
        return v


class MonitorConfigError(Exception):
    """Base exception for monitor configuration errors."""


class MonitorConfigNotFoundError(MonitorConfigError):
    """Raised when the config file is not found."""


class MonitorConfigParseError(MonitorConfigError):
    """Raised when the config file cannot be parsed."""


def load_monitor_config(path: Path | None = None) -> MonitorConfig:
    """Load monitor configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated MonitorConfig object.

    Raises:
        MonitorConfigNotFoundError: If the config file doesn't exist.
        MonitorConfigParseError: If the TOML syntax is invalid.
        MonitorConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise MonitorConfigNotFoundError(f"Monitor config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise MonitorConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise MonitorConfigError(f"Failed to read monitor config: {e}") from e

    try:
        return MonitorConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise MonitorConfigError(f"Invalid monitor config content: {e}") from e


def load_config_or_default(path: Path | None = None) -> MonitorConfig:
    """Load the monitor configuration, falling back to defaults if absent.

    A missing file is not an error; invalid files still raise.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Loaded or default MonitorConfig.

    Raises:
        MonitorConfigError: If the file exists but is invalid.
    """
    try:
        return load_monitor_config(path)
    except MonitorConfigNotFoundError:
        logger.debug("No monitor config found, using defaults")
        return MonitorConfig()


def save_monitor_config(config: MonitorConfig, path: Path | None = None) -> Path:
    """Save monitor configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The MonitorConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        MonitorConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = _config_to_dict(config)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        # os.replace() is atomic on POSIX
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise MonitorConfigError(f"Failed to write monitor config: {e}") from e

    return config_path


def _config_to_dict(config: MonitorConfig) -> dict[str, object]:
    """Convert MonitorConfig to a dictionary for TOML serialization.

    Args:
        config: The MonitorConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    result: dict[str, object] = {
        "interval_seconds": config.interval_seconds,
        "deletion_strategy": config.deletion_strategy,
        "polling_interval_seconds": config.polling_interval_seconds,
        "sort_volumes": config.sort_volumes,
    }

    if config.ignore_patterns:
        result["ignore_patterns"] = list(config.ignore_patterns)

    return result
