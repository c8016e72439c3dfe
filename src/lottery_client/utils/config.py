"""
Configuration Management
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("config") / "client.conf"

_ENV_SECTIONS = {
    "BLOCKCHAIN_": "blockchain",
    "ESTIMATOR_": "estimator",
    "WATCHER_": "watcher",
    "SERVER_": "server",
    "LOTTERY_": "lottery",
}


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from the JSON config file and environment variables"""
    config: Dict[str, Any] = {}

    if config_file is None:
        config_file = os.getenv("LOTTERY_CLIENT_CONFIG") or str(DEFAULT_CONFIG_FILE)
    path = Path(config_file)
    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                config.update(json.load(f))
            logger.info(f"Loaded configuration from {path}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
    else:
        logger.warning(f"Config file {path} not found. Will only use environment variables.")

    config = _apply_env_overrides(config)
    logger.debug("Configuration sections after environment overrides: %s", sorted(config))
    return config


def _apply_env_overrides(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    environ = os.environ if environ is None else environ
    for key, value in environ.items():
        # LOTTERY_CLIENT_CONFIG names the file itself, not a setting
        if key == "LOTTERY_CLIENT_CONFIG":
            continue
        for prefix, section in _ENV_SECTIONS.items():
            if key.startswith(prefix):
                name = key[len(prefix):].lower()
                config.setdefault(section, {})[name] = value
                break

    return config


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default
