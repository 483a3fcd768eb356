"""Settings loader: YAML file plus environment."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (Path("config.yaml"), Path("config") / "config.yaml")


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load and validate settings from a YAML file and environment variables.

    Looks for the file in this order:
    1. ``config_path`` when given
    2. ``config.yaml`` in the working directory
    3. ``config/config.yaml``

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If the file is missing or unreadable, or any
            setting or environment variable is invalid
    """
    config_file = _find_config_file(config_path)
    app_config = parse_config(_read_yaml(config_file))
    env_config = load_environment_config()
    return app_config, env_config


def parse_config(config_dict: Optional[Dict[str, Any]]) -> AppConfig:
    """
    Validate a raw settings mapping into an ``AppConfig``.

    An empty document yields the defaults.

    Raises:
        ConfigurationError: If the mapping does not match the schema
    """
    if config_dict is None:
        config_dict = {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            "Configuration must be a mapping at the top level",
            errors=[f"Got {type(config_dict).__name__}"],
            suggestions=["Review config.example.yaml for the expected layout"],
        )

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=_describe_errors(e),
            suggestions=[
                "Review config.example.yaml for correct format",
                "Check that every value has the expected type",
            ],
        ) from e


def _describe_errors(exc: ValidationError) -> List[str]:
    errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"]) or "<root>"
        error_type = error["type"]

        if error_type == "missing":
            errors.append(f"Missing required field: {field_path}")
        elif error_type.endswith("_type") or error_type.endswith("_parsing"):
            errors.append(f"Invalid type for '{field_path}': {error['msg']}, got {error.get('input')!r}")
        elif "enum" in error_type:
            errors.append(f"Invalid value for '{field_path}': {error['msg']}")
        else:
            errors.append(f"{field_path}: {error['msg']}")
    return errors


def _read_yaml(config_file: Path) -> Any:
    try:
        with open(config_file, "r") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[f"Ensure {config_file} exists and is readable"],
        ) from e


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[f"Ensure {config_path} exists", "Check the path and try again"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[f"Tried: {candidate}" for candidate in DEFAULT_CONFIG_LOCATIONS],
        suggestions=[
            "Copy config.example.yaml to config.yaml",
            "Use --config flag to specify a custom location",
        ],
    )
