"""Configuration management for the alert dispatcher."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config
from .models import (
    AppConfig,
    DispatchConfig,
    EventSourceConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    PushConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_config",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "DispatchConfig",
    "PushConfig",
    "EventSourceConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
