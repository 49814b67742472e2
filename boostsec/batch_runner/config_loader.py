"""Load supervisor configuration from YAML files."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from boostsec.batch_runner.models.config import SupervisorConfig


def load_config(config_path: Path | None) -> SupervisorConfig:
    """Load the supervisor configuration.

    Args:
        config_path: Path to a YAML configuration file, or None for defaults

    Returns:
        Parsed configuration

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        ValueError: If YAML is invalid or doesn't match schema

    """
    if config_path is None:
        return SupervisorConfig()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return SupervisorConfig()

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    try:
        return SupervisorConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration schema in {config_path}: {e}") from e
