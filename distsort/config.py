"""
Configuration loading for distsort.

Configuration lives in a YAML file whose sections are merged over the
built-in defaults below, so a file only needs to name what it changes.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from distsort.utils.errors import ConfigError

logger = logging.getLogger(__name__)

PARTIAL_POLICIES = ("abort", "partial")

DEFAULT_CONFIG: Dict[str, Any] = {
    "coordinator": {
        "host": "0.0.0.0",
        "port": 5000,
        "backlog": 16,
    },
    "network": {
        "max_message_size": 100 * 1024 * 1024,
        "compress": False,
        "compress_threshold": 1024,
    },
    "dispatch": {
        "max_threads": None,  # None -> one thread per chunk
        "partial_results": "abort",
    },
    "liveness": {
        "timeout_seconds": 2.0,
        "port": None,  # None -> coordinator port
    },
    "worker": {
        "coordinator_host": "127.0.0.1",
        "coordinator_port": 5000,
        "connect_timeout_seconds": 10.0,
        "connect_retries": 0,
        "retry_interval_seconds": 1.0,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Check values that would otherwise fail deep inside a job."""
    policy = config["dispatch"]["partial_results"]
    if policy not in PARTIAL_POLICIES:
        raise ConfigError(
            f"dispatch.partial_results must be one of {PARTIAL_POLICIES}, got {policy!r}"
        )

    max_threads = config["dispatch"]["max_threads"]
    if max_threads is not None and (not isinstance(max_threads, int) or max_threads < 1):
        raise ConfigError(f"dispatch.max_threads must be a positive integer or null, got {max_threads!r}")

    timeout = config["liveness"]["timeout_seconds"]
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"liveness.timeout_seconds must be positive, got {timeout!r}")

    return config


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration file merged over the defaults.

    Args:
        config_path: Path to a YAML file, or None for defaults only

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        return validate_config(copy.deepcopy(DEFAULT_CONFIG))

    path = Path(config_path)
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Failed to load configuration from {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping, got {type(loaded).__name__}")

    logger.debug(f"Loaded configuration from {path}")
    return validate_config(_deep_merge(DEFAULT_CONFIG, loaded))
