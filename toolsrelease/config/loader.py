# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader. Reads YAML from disk and produces a validated, frozen ReleaseConfig.

The loading pipeline is deliberately simple and linear:
  1. Read raw bytes from the file
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen, immutable config object

If anything goes wrong at any step, we fail immediately with a clear error.
There is no fallback: a broken config must stop a release before it uploads
anything.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from toolsrelease.config.exceptions import ConfigLoadError, ConfigValidationError
from toolsrelease.config.schema import ReleaseConfig


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    An empty file is treated as an empty mapping, which yields the defaults.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if parsed is None:
        return {}

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Optional[Path] = None) -> ReleaseConfig:
    """
    Load, validate, and freeze a config file into a ReleaseConfig object.

    Args:
        config_path: Path to a YAML config file, or None for the built-in defaults.

    Returns:
        A fully validated, frozen ReleaseConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (wrong types, unknown keys, bad platforms).
    """
    raw_data: dict[str, Any] = {} if config_path is None else _read_yaml_file(config_path)

    try:
        config = ReleaseConfig.model_validate(raw_data)
    except ValidationError as err:
        source = config_path if config_path is not None else "<defaults>"
        raise ConfigValidationError(f"Config validation failed for {source}:\n{err}") from err

    return config
