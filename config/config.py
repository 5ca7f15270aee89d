"""
Configuration settings for the project with precise error handling.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import copy
import os
import threading
from pathlib import Path
from typing import Dict, Any, Optional
import yaml
from dotenv import load_dotenv

_config_lock = threading.Lock()
_app_config: Optional[Dict[str, Any]] = None

DEFAULT_CONFIG: Dict[str, Any] = {
    "auth_url": "https://entrez.enphaseenergy.com",
    "envoy_url": "https://envoy.local",
    "serial_num": None,
    "login_email": None,
    "login_password": None,
    "token_storage": {"path": "token.dat"},
    "http_settings": {"timeout": 15, "debug": False},
    "polling": {"samples": 1, "interval": 5},
    "output": {"csv_path": None},
}

# environment variable -> (section, key); section None means top level
ENV_OVERRIDES = {
    "ENVOY_AUTH_URL": (None, "auth_url"),
    "ENVOY_URL": (None, "envoy_url"),
    "ENVOY_SERIAL_NUM": (None, "serial_num"),
    "ENVOY_LOGIN_EMAIL": (None, "login_email"),
    "ENVOY_LOGIN_PASSWORD": (None, "login_password"),
    "ENVOY_TOKEN_PATH": ("token_storage", "path"),
}


class ConfigError(Exception):
    """Base exception for configuration-related errors"""

    pass


class ConfigValidationError(ConfigError):
    """Exception for configuration validation failures"""

    pass


class ConfigFileError(ConfigError):
    """Exception for configuration file issues"""

    pass


# Load environment variables first (before any config loading)
def _init_environment(env_path: str = ".env") -> bool:
    """
    Load environment variables from .env file

    Args:
        env_path: Path to .env file

    Returns:
        bool: True if loaded successfully, False otherwise
    """
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)
        return True
    return False


# Initialize environment at module import
_init_environment()


def _load_config(config_path: str) -> Dict[str, Any]:
    """
    Load and parse the configuration file (YAML, which also accepts JSON)

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed configuration dictionary (empty for an empty file)

    Raises:
        ConfigFileError: If file is missing or unreadable
        ConfigError: If parsing fails
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise ConfigFileError(f"Config file not found at {config_path}")
    if not config_file.is_file():
        raise ConfigFileError(f"Config path is not a file: {config_path}")

    try:
        with config_file.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {str(e)}") from e
    except OSError as e:
        raise ConfigFileError(f"Error reading config file: {str(e)}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError("Config must be a dictionary")
    return loaded


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay overrides on base; nested sections merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to config

    Args:
        config: Configuration dictionary to modify

    Returns:
        Modified configuration dictionary
    """
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if not value:
            continue
        if section is None:
            config[key] = value
        else:
            config.setdefault(section, {})[key] = value

    return config


def _validate_config(config: Dict[str, Any]):
    """
    Validate the configuration structure, normalising a numeric serial to text

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    for key in ("auth_url", "envoy_url"):
        url = config.get(key)
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise ConfigValidationError(f"'{key}' must be an http(s) URL")

    # YAML reads an all-digit serial as an int
    if isinstance(config.get("serial_num"), int):
        config["serial_num"] = str(config["serial_num"])

    missing = [
        key
        for key in ("serial_num", "login_email", "login_password")
        if not isinstance(config.get(key), str) or not config[key].strip()
    ]
    if missing:
        raise ConfigValidationError(
            f"Missing required config values: {', '.join(missing)}"
        )

    for section in ("token_storage", "http_settings", "polling", "output"):
        if not isinstance(config.get(section), dict):
            raise ConfigValidationError(f"'{section}' must be a mapping")

    timeout = config["http_settings"].get("timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigValidationError("'http_settings.timeout' must be a positive number")

    samples = config["polling"].get("samples")
    if isinstance(samples, bool) or not isinstance(samples, int) or samples < 0:
        raise ConfigValidationError("'polling.samples' must be a non-negative integer")

    interval = config["polling"].get("interval")
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval < 0:
        raise ConfigValidationError("'polling.interval' must be a non-negative number")


def _build_config(config_path: Optional[str], required: bool) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if config_path is not None:
        try:
            overrides = _load_config(config_path)
        except ConfigFileError:
            if required or Path(config_path).exists():
                raise

    config = _apply_env_overrides(_merge(DEFAULT_CONFIG, overrides))
    _validate_config(config)
    return config


def get_config(
    config_path: Optional[str] = "config/config.yaml", required: bool = True
) -> Dict[str, Any]:
    """
    Get the application configuration

    Args:
        config_path: Path to the configuration file
        required: Fail when the file does not exist; otherwise fall back to
            defaults and environment variables

    Returns:
        Loaded and validated configuration dictionary

    Raises:
        ConfigError: If any configuration operation fails
    """
    global _app_config

    with _config_lock:
        if _app_config is None:
            try:
                _app_config = _build_config(config_path, required)
            except ConfigError as e:
                raise ConfigError(
                    f"Configuration initialization failed: {str(e)}"
                ) from e

        return copy.deepcopy(_app_config)  # Return copy to prevent accidental modification


def reload_config(
    config_path: Optional[str] = "config/config.yaml", required: bool = True
) -> Dict[str, Any]:
    """
    Reload the configuration from file

    Args:
        config_path: Path to the configuration file

    Raises:
        ConfigError: If reloading fails
    """
    global _app_config

    with _config_lock:
        try:
            _app_config = _build_config(config_path, required)
        except ConfigError as e:
            raise ConfigError(f"Configuration reload failed: {str(e)}") from e

        return copy.deepcopy(_app_config)


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reads again."""
    global _app_config

    with _config_lock:
        _app_config = None
