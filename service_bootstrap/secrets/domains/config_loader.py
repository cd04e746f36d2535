"""YAML defaults file for local development.

The file supplies configuration values that the environment does not set,
typically database credentials on a developer machine with no secret store:

    env:
      DB_PASSWORD: local-password
      DB_PORT: 3307
"""
import logging
from pathlib import Path
from typing import Dict, Optional

import yaml

from ...errors import ConfigError
from .preferences import get_preference

logger = logging.getLogger(__name__)


def default_config_path() -> Path:
    return Path.home() / ".config" / "service-bootstrap" / "config.yml"


def resolve_config_path(explicit_path: Optional[str] = None) -> Optional[Path]:
    """
    Work out which YAML defaults file to use.

    Priority order:
    1. Explicit path (from --config); must exist
    2. User preference (stored in ~/.config/service-bootstrap/preferences.json)
    3. Default location: ~/.config/service-bootstrap/config.yml

    Returns:
        Path to the file, or None when no file is configured

    Raises:
        ConfigError: If an explicit path does not exist
    """
    if explicit_path:
        path = Path(explicit_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Configuration file not found at: {path}")
        return path

    config_path_pref = get_preference("config_path")
    if config_path_pref:
        path = Path(config_path_pref)
        if path.is_file():
            logger.info(f"Using config from preference: {path}")
            return path
        logger.warning(f"Config path from preference doesn't exist: {path}")

    path = default_config_path()
    if path.is_file():
        logger.info(f"Using default config location: {path}")
        return path

    return None


def load_env_defaults(path: Path) -> Dict[str, str]:
    """
    Load and validate the ``env`` mapping of a YAML defaults file.

    Scalar values are converted to strings, matching environment variables.
    A null value is dropped so the key stays unset.

    Raises:
        ConfigError: If the file is unreadable, not valid YAML, or has no ``env`` mapping
    """
    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {path} is empty")

    if not isinstance(config, dict) or 'env' not in config:
        raise ConfigError(
            f"Missing 'env' section in config at {path}\n"
            f"Required format:\n"
            f"env:\n"
            f"  DB_PASSWORD: your-password"
        )

    env = config['env']
    if not isinstance(env, dict):
        raise ConfigError(f"'env' section in config at {path} must be a mapping")

    values = {}
    for key, value in env.items():
        if isinstance(value, (dict, list)):
            raise ConfigError(f"Value for '{key}' in config at {path} must be a scalar")
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        values[str(key)] = str(value)

    logger.debug(f"Loaded {len(values)} default value(s) from {path}")
    return values


def load_defaults(explicit_path: Optional[str] = None) -> Dict[str, str]:
    """Return configuration defaults from the YAML file in effect, or {} when none is set up."""
    path = resolve_config_path(explicit_path)
    if path is None:
        return {}
    return load_env_defaults(path)
