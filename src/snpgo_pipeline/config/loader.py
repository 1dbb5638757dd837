"""Configuration loading with YAML parsing and validation."""

from pathlib import Path
from typing import Any

import pydantic_yaml

from .schema import PipelineConfig


def load_config(config_path: Path | str) -> PipelineConfig:
    """
    Load and validate pipeline configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated PipelineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    yaml_content = config_path.read_text()

    return pydantic_yaml.parse_yaml_raw_as(PipelineConfig, yaml_content)


def _apply_override(config_dict: dict[str, Any], key: str, value: Any) -> None:
    """Set a dotted key such as "ontology.shallow_depth" in a nested dict."""
    *parents, leaf = key.split(".")
    target = config_dict
    for part in parents:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Unknown config section in override: {key}")
        target = target[part]
    target[leaf] = value


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> PipelineConfig:
    """
    Load config from YAML and apply dictionary overrides.

    Useful for CLI flags that override config file values.

    Args:
        config_path: Path to YAML configuration file
        overrides: Values to override; nested keys use dots
            (e.g. {"compute.max_workers": 4})

    Returns:
        Validated PipelineConfig with overrides applied

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If an override names an unknown section
        pydantic.ValidationError: If final config is invalid
    """
    config = load_config(config_path)

    config_dict = config.model_dump()
    for key, value in overrides.items():
        _apply_override(config_dict, key, value)

    return PipelineConfig.model_validate(config_dict)
