"""Configuration loader and validator for the Malbouche scheduler."""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from malbouche.api.api_client import DEFAULT_BASE_URL
from malbouche.devices.device_http import DeviceValidationError, validate_ip


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error exception."""
    pass


def _to_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 'yes', 'on')


# Environment variable to config key mapping
# All environment variables must use the MALBOUCHE_ prefix
ENV_VAR_MAPPING = {
    # Backend API settings
    'MALBOUCHE_API_BASE_URL': ('api', 'base_url', str),
    'MALBOUCHE_API_TOKEN': ('api', 'token', str),
    'MALBOUCHE_API_TOKEN_FILE': ('api', 'token_file', str),
    'MALBOUCHE_API_TIMEOUT_SECONDS': ('api', 'timeout_seconds', float),

    # Clock device settings
    'MALBOUCHE_DEVICE_IP': ('device', 'ip', str),
    'MALBOUCHE_DEVICE_FAMILY': ('device', 'family', str),
    'MALBOUCHE_DEVICE_TIMEOUT_SECONDS': ('device', 'timeout_seconds', float),
    'MALBOUCHE_DEVICE_PROBE_TIMEOUT_SECONDS': ('device', 'probe_timeout_seconds', float),

    # Scheduler settings
    'MALBOUCHE_CHECK_INTERVAL_SECONDS': ('scheduler', 'check_interval_seconds', float),
    'MALBOUCHE_REFRESH_INTERVAL_MINUTES': ('scheduler', 'refresh_interval_minutes', float),
    'MALBOUCHE_FIRING_WINDOW_MINUTES': ('scheduler', 'firing_window_minutes', float),
    'MALBOUCHE_COOLDOWN_SECONDS': ('scheduler', 'cooldown_seconds', float),
    'MALBOUCHE_TIMEZONE': ('scheduler', 'timezone', str),

    # Local state
    'MALBOUCHE_EVENTS_CACHE_FILE': ('storage', 'events_cache_file', str),
    'MALBOUCHE_AUDIT_LOG_FILE': ('storage', 'audit_log_file', str),
    'MALBOUCHE_AUDIT_LOG_MAX_ENTRIES': ('storage', 'audit_log_max_entries', int),

    # Logging settings
    'MALBOUCHE_LOG_LEVEL': ('logging', 'level', str),

    # Health server settings
    'MALBOUCHE_HEALTH_SERVER_ENABLED': ('health_server', 'enabled', _to_bool),
    'MALBOUCHE_HEALTH_SERVER_HOST': ('health_server', 'host', str),
    'MALBOUCHE_HEALTH_SERVER_PORT': ('health_server', 'port', int),
}


DEFAULTS = {
    'api': {
        'base_url': DEFAULT_BASE_URL,
        'token': None,
        'token_file': None,
        'timeout_seconds': 15,
    },
    'device': {
        'ip': None,
        'family': None,
        'timeout_seconds': 10,
        'probe_timeout_seconds': 5,
    },
    'scheduler': {
        'check_interval_seconds': 30,
        'refresh_interval_minutes': 5,
        'firing_window_minutes': 0.5,
        'cooldown_seconds': 60,
        'timezone': None,
    },
    'storage': {
        'events_cache_file': 'state/events_cache.json',
        'audit_log_file': 'state/execution_log.json',
        'audit_log_max_entries': 100,
    },
    'logging': {
        'level': 'INFO',
        'max_file_size_mb': 10,
        'backup_count': 5,
    },
    'health_server': {
        'enabled': False,
        'host': '0.0.0.0',
        'port': 4329,
    },
}


def get_env_var(env_var: str, convert_type) -> Optional[Any]:
    """
    Get environment variable and convert to specified type.

    Returns:
        Converted value or None if not set or not convertible
    """
    value = os.environ.get(env_var)
    if value is None:
        return None

    try:
        return convert_type(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to convert environment variable {env_var}={value}: {e}")
        return None


def apply_env_overrides(config: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, str]]:
    """
    Apply environment variable overrides and track which fields were overridden.

    Returns:
        Tuple of (config with overrides applied, dict mapping config paths to env var names)
    """
    env_overridden_paths = {}

    for env_var, mapping_tuple in ENV_VAR_MAPPING.items():
        value = get_env_var(env_var, mapping_tuple[-1])  # Last element is the convert function
        if value is None:
            continue

        sections = mapping_tuple[:-1]
        current = config
        for section in sections[:-1]:
            if not isinstance(current.get(section), dict):
                current[section] = {}
            current = current[section]
        current[sections[-1]] = value

        path = '.'.join(sections)
        env_overridden_paths[path] = env_var
        if env_var == 'MALBOUCHE_API_TOKEN':
            logger.info(f"Environment variable override: {env_var} -> {path} = ****")
        else:
            logger.info(f"Environment variable override: {env_var} -> {path} = {value}")

    return config, env_overridden_paths


class Config:
    """Configuration manager for the application."""

    def __init__(self, config_path: str = None):
        """
        Initialize configuration from YAML file with environment variable overrides.

        Args:
            config_path: Path to the configuration file (defaults to MALBOUCHE_CONFIG_PATH env var or "config.yaml")
        """
        if config_path is None:
            config_path = os.environ.get('MALBOUCHE_CONFIG_PATH', 'config.yaml')

        logger.info(f"Loading configuration from: {config_path}")
        self.config_path = Path(config_path)
        self._config = self._load_config()
        self._config, self._env_overridden_paths = apply_env_overrides(self._config)

        self._validate_config()
        logger.info("Configuration loaded and validated successfully")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML, or an empty structure if the file doesn't exist."""
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
            logger.info("Using defaults and environment variables for configuration")
            return {section: {} for section in DEFAULTS}

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file: {e}")
            raise ConfigError(f"Error parsing configuration file: {e}")
        except OSError as e:
            logger.error(f"Error reading configuration file: {type(e).__name__}: {e}")
            raise ConfigError(f"Error loading configuration: {e}")

        if config is None:
            logger.warning("Configuration file is empty, using defaults")
            return {section: {} for section in DEFAULTS}

        if not isinstance(config, dict):
            logger.error(f"Configuration must be a dictionary, got: {type(config)}")
            raise ConfigError(f"Invalid configuration format: expected dictionary, got {type(config)}")

        logger.debug(f"Configuration sections: {list(config.keys())}")
        return config

    def _section(self, name: str) -> Dict[str, Any]:
        """Section values layered over its defaults."""
        merged = dict(DEFAULTS[name])
        merged.update(self._config.get(name) or {})
        return merged

    def _validate_config(self):
        """Validate configuration values."""
        for section in DEFAULTS:
            value = self._config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigError(f"'{section}' configuration must be a dictionary")

        base_url = self.api['base_url']
        if not isinstance(base_url, str) or not base_url.startswith(('http://', 'https://')):
            raise ConfigError(f"api.base_url must be an http(s) URL, got: {base_url!r}")

        device = self.device
        if device.get('family') and str(device['family']).lower() not in ('stepper', 'prototype'):
            raise ConfigError(f"device.family must be 'stepper' or 'prototype', got: {device['family']!r}")

        if device.get('ip'):
            try:
                validate_ip(device['ip'])
            except DeviceValidationError as e:
                raise ConfigError(f"device.ip is invalid: {e}")
        else:
            logger.warning("No clock IP configured - events will not be executed until one is set")

        positive_fields = [
            ('api', 'timeout_seconds'),
            ('device', 'timeout_seconds'),
            ('device', 'probe_timeout_seconds'),
            ('scheduler', 'check_interval_seconds'),
            ('scheduler', 'refresh_interval_minutes'),
            ('scheduler', 'firing_window_minutes'),
            ('scheduler', 'cooldown_seconds'),
            ('storage', 'audit_log_max_entries'),
        ]
        for section, field in positive_fields:
            raw = self._section(section)[field]
            try:
                value = float(raw)
            except (ValueError, TypeError) as e:
                raise ConfigError(f"{section}.{field} must be a valid number: {e}")
            if value <= 0:
                raise ConfigError(f"{section}.{field} must be positive, got: {value}")

        timezone = self.scheduler.get('timezone')
        if timezone:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ConfigError(f"Invalid scheduler.timezone '{timezone}': {e}")

        port = self.health_server.get('port')
        if not isinstance(port, int) or not 1 <= port <= 65535:
            raise ConfigError(f"health_server.port must be between 1 and 65535, got: {port!r}")

    @property
    def api(self) -> Dict[str, Any]:
        """Get backend API configuration."""
        return self._section('api')

    @property
    def device(self) -> Dict[str, Any]:
        """Get clock device configuration."""
        return self._section('device')

    @property
    def scheduler(self) -> Dict[str, Any]:
        """Get scheduler configuration."""
        return self._section('scheduler')

    @property
    def storage(self) -> Dict[str, Any]:
        return self._section('storage')

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self._section('logging')

    @property
    def health_server(self) -> Dict[str, Any]:
        """Get health server configuration."""
        return self._section('health_server')

    @property
    def env_overridden_paths(self) -> Dict[str, str]:
        """Mapping of config paths (e.g. 'device.ip') to the env vars that override them."""
        return self._env_overridden_paths
