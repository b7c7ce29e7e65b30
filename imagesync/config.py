#!/usr/bin/env python3

import json
import logging
import os
import sys
import tomllib
from pathlib import Path

import yaml

logger = logging.getLogger("imagesync")

DEFAULT_LOG_FORMAT = "%(levelname)s: %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

CONFIG_ENV_VAR = "IMAGESYNC_CONFIG"
ENV_PREFIX = "IMAGESYNC_"
CONFIG_FILENAMES = ('config.json', 'config.toml', 'config.yaml', 'config.yml')


def configure_logging(level="INFO", fmt=DEFAULT_LOG_FORMAT):
    """Send imagesync log records to stderr at ``level``."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    logger.handlers = [handler]
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.propagate = False


def get_config_path():
    """Locate the configuration file.

    ``$IMAGESYNC_CONFIG`` wins when it names an existing file; otherwise the
    first ``~/.imagesync/config.*`` found is used. When nothing exists the
    JSON location is returned.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit and Path(explicit).exists():
        return Path(explicit)

    config_dir = Path.home() / '.imagesync'
    for filename in CONFIG_FILENAMES:
        candidate = config_dir / filename
        if candidate.exists():
            return candidate
    return config_dir / CONFIG_FILENAMES[0]


def _read_config_file(path):
    suffix = path.suffix.lower()
    if suffix == '.toml':
        with open(path, 'rb') as f:
            return tomllib.load(f)
    with open(path, 'r') as f:
        if suffix in ('.yaml', '.yml'):
            return yaml.safe_load(f) or {}
        return json.load(f)


def load_config():
    """Defaults, overlaid with the config file, overlaid with the environment."""
    config = get_default_config()

    path = get_config_path()
    if path.exists():
        try:
            config = merge_configs(config, _read_config_file(path))
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {path}: {e}")

    return apply_env_overrides(config)


def get_default_config():
    """Get default configuration."""
    return {
        "registry": {
            "timeout_seconds": 30,
            "page_size": 1000,
            "user_agent": "imagesync",
        },
        "copy": {
            "skopeo_binary": "skopeo",
            "retry_times": 0,
        },
        "logging": {
            "level": "INFO",
            "format": DEFAULT_LOG_FORMAT,
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Nested sections are merged key by key; any other value in
    ``override_config`` replaces the base value.
    """
    merged = dict(base_config)
    for key, value in override_config.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def _coerce_env_value(value, current):
    """Convert an environment string to the type of the value it replaces."""
    if isinstance(current, bool):
        return value.lower() in ('1', 'true', 'yes', 'on')
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring non-integer value {value!r} from the environment")
            return current
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Ignoring non-numeric value {value!r} from the environment")
            return current
    return value


def apply_env_overrides(config):
    """
    Apply ``IMAGESYNC_<SECTION>_<KEY>`` environment overrides.

    For example ``IMAGESYNC_REGISTRY_TIMEOUT_SECONDS=60`` sets
    ``config['registry']['timeout_seconds']``. Only keys that already exist
    are overridden.
    """
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX) or env_key == CONFIG_ENV_VAR:
            continue
        name = env_key[len(ENV_PREFIX):].lower()

        for section, settings in config.items():
            if not isinstance(settings, dict) or not name.startswith(f"{section}_"):
                continue
            key = name[len(section) + 1:]
            if key in settings:
                settings[key] = _coerce_env_value(value, settings[key])
                break

    return config
