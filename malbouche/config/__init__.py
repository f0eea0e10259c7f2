"""Configuration management package."""

from .config_loader import Config, ConfigError, ENV_VAR_MAPPING, apply_env_overrides

__all__ = [
    'Config',
    'ConfigError',
    'ENV_VAR_MAPPING',
    'apply_env_overrides',
]
